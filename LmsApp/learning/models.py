"""Learning domain models: Task, Submission, TaskUnlockRequest, TaskUnlock, QuickTask, QuickTaskAssignment."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from LmsApp.courses.models import Course
from LmsApp.core.choices import SubmissionStatus, UnlockRequestStatus
from LmsApp.learning.querysets import TaskQuerySet, SubmissionQuerySet, UnlockRequestQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL

class Task(models.Model):
    """An assignment inside a course. Course order (created_at, id) defines the prerequisite sequence."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="tasks")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    deadline = models.DateTimeField(null=True, blank=True)
    max_points = models.PositiveIntegerField(default=100, validators=[MinValueValidator(1)])
    creator = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_tasks")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = TaskQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(max_points__gte=1), name="ck_task_max_points_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"


class Submission(models.Model):
    """A student's single, non-resubmittable answer to a task (unique per task+student).

    Grading overwrites status/points/feedback in place; no grading history is kept.
    """
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    text_response = models.TextField(null=True, blank=True)
    file_urls = models.JSONField(default=list, blank=True)
    points_awarded = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.PENDING)
    submitted_at = models.DateTimeField(auto_now_add=True)
    graded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="graded_submissions")
    graded_at = models.DateTimeField(null=True, blank=True)
    feedback = models.TextField(blank=True)

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["task", "student"], name="uq_submission_task_student"),
        ]

    def __str__(self) -> str:
        return f"Submission({self.student_id} -> task {self.task_id}, {self.status})"


class TaskUnlockRequest(models.Model):
    """A student's appeal to submit after the deadline; reviewed by the course creator."""
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="unlock_requests")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="unlock_requests")
    reason = models.TextField()
    status = models.CharField(max_length=16, choices=UnlockRequestStatus.choices, default=UnlockRequestStatus.PENDING)
    requested_at = models.DateTimeField(auto_now_add=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="reviewed_unlock_requests")

    objects = UnlockRequestQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["task", "student"],
                condition=models.Q(status=UnlockRequestStatus.PENDING),
                name="uq_pending_unlock_request",
            ),
        ]

    def __str__(self) -> str:
        return f"UnlockRequest({self.student_id} -> task {self.task_id}, {self.status})"


class TaskUnlock(models.Model):
    """Post-deadline submission right for one (task, student). Created once, never revoked."""
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="unlocks")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="task_unlocks")
    granted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name="granted_unlocks")
    request = models.OneToOneField(TaskUnlockRequest, on_delete=models.SET_NULL, null=True, blank=True, related_name="unlock")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["task", "student"], name="uq_task_unlock"),
        ]


class QuickTask(models.Model):
    """A course-independent task broadcast to an explicit set of students."""
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    creator = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_quick_tasks")
    created_at = models.DateTimeField(auto_now_add=True)
    students = models.ManyToManyField(User, through="QuickTaskAssignment", related_name="quick_tasks")

    class Meta:
        ordering = ["-created_at", "-id"]


class QuickTaskAssignment(models.Model):
    quick_task = models.ForeignKey(QuickTask, on_delete=models.CASCADE, related_name="assignments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="quick_task_assignments")
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["quick_task", "student"], name="uq_quick_task_assignment"),
        ]
