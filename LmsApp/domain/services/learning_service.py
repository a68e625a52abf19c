"""Domain service functions for tasks, submissions, and grading.

Enforces role/visibility rules:
- Only the course creator (or a superadmin) creates, edits and grades tasks.
- Students with an active enrollment submit, once per task.
State transitions for submissions:
    PENDING -> ACCEPTED | REJECTED (grading may be repeated, last one wins).
Points decay with submission order: the n-th submitter of a task earns
max(floor, max_points * (10 - (n - 1)) / 10) rounded down.
"""

import logging
from datetime import datetime
from typing import Any, Iterable

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.html import format_html
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.core.access import can_access_course, can_manage_roster, can_modify_course
from LmsApp.core.choices import SubmissionStatus
from LmsApp.core.config import lms_setting
from LmsApp.core.exceptions import Conflict
from LmsApp.core.roles import Capability, principal_can
from LmsApp.courses.models import Course
from LmsApp.domain.services import audit_service, gating_service, notifications, storage
from LmsApp.learning.models import Submission, Task
from LmsApp.users.models import User

logger = logging.getLogger(__name__)


def _ensure_modifier(user: User, course: Course) -> None:
    if not can_modify_course(user, course):
        raise PermissionDenied("Only the course creator or a superadmin may manage this course")


def _ensure_max_points(max_points: Any) -> int:
    if max_points is None:
        return lms_setting("DEFAULT_MAX_POINTS")
    if int(max_points) < 1:
        raise ValidationError({"max_points": ["Max points must be a positive integer"]})
    return int(max_points)


@transaction.atomic
def create_task(
    actor: User,
    course: Course,
    title: str,
    description: str = "",
    deadline: datetime | None = None,
    max_points: int | None = None,
) -> Task:
    """Append a task to the end of the course sequence (creator or superadmin)."""
    _ensure_modifier(actor, course)
    task = Task.objects.create(
        course=course,
        title=title,
        description=description or "",
        deadline=deadline,
        max_points=_ensure_max_points(max_points),
        creator=actor,
    )
    audit_service.record(actor, "task_created", "task", task.pk, {"course_id": course.pk, "title": title})
    return task


@transaction.atomic
def update_task(actor: User, task: Task, data: dict[str, Any]) -> Task:
    _ensure_modifier(actor, task.course)
    changed = []
    for field in ("title", "description", "deadline", "max_points"):
        if field not in data:
            continue
        value = data[field]
        if field == "max_points":
            value = _ensure_max_points(value)
        setattr(task, field, value)
        changed.append(field)
    task.save()
    audit_service.record(actor, "task_updated", "task", task.pk, {"fields": changed})
    return task


@transaction.atomic
def delete_task(actor: User, task: Task) -> None:
    _ensure_modifier(actor, task.course)
    task_id, course_id = task.pk, task.course_id
    task.delete()
    audit_service.record(actor, "task_deleted", "task", task_id, {"course_id": course_id})


def list_course_tasks(principal: User, course: Course) -> QuerySet[Task]:
    if not can_access_course(principal, course):
        raise PermissionDenied("You do not have access to this course")
    return Task.objects.in_course_order(course)


def compute_points(max_points: int, order: int) -> int:
    """Points for the ``order``-th (1-based) submitter of a task."""
    decay = lms_setting("POINTS_DECAY_PERCENT")
    floor = lms_setting("POINTS_FLOOR")
    return max(floor, max_points * (100 - (order - 1) * decay) // 100)


def submit(
    student: User,
    task: Task,
    text_response: str | None = None,
    files: Iterable[Any] = (),
) -> Submission:
    """Record the student's single submission for a task.

    Rules:
        - Student role with an active enrollment in the task's course.
        - No prior submission (Conflict), task unlocked (Locked otherwise).
        - Files are stored before the row is written; a failed upload is skipped and
          files of a submission that loses the uniqueness check are removed again.
        - Points depend on how many students submitted before, counted under a row lock on the task.

    Raises:
        PermissionDenied, Conflict, Locked
    """
    if not principal_can(student, Capability.SUBMIT_TASK) or not can_access_course(student, task.course):
        raise PermissionDenied("Not enrolled in course")
    gating_service.ensure_unlocked(student, task)

    stored = storage.store_submission_files(task.pk, student.pk, files)

    try:
        with transaction.atomic():
            locked_task = Task.objects.select_for_update().get(pk=task.pk)
            order = Submission.objects.filter(task=locked_task).count() + 1
            points = compute_points(locked_task.max_points, order)
            submission = Submission.objects.create(
                task=locked_task,
                student=student,
                text_response=text_response or None,
                file_urls=storage.file_urls(stored),
                points_awarded=points,
                status=SubmissionStatus.PENDING,
            )
    except IntegrityError:
        storage.discard_files(stored)
        raise Conflict("Already submitted")

    logger.info("Student %s submitted task %s as #%d (%d points)", student.pk, task.pk, order, points)
    audit_service.record(student, "submission_created", "submission", submission.pk,
                         {"task_id": task.pk, "points_awarded": points, "files": len(stored)})
    return submission


@transaction.atomic
def grade_submission(
    grader: User,
    submission: Submission,
    status: str = SubmissionStatus.ACCEPTED,
    points: int | None = None,
    feedback: str | None = None,
) -> Submission:
    """Accept or reject a submission, optionally overriding points and leaving feedback.

    Validates:
        status is accepted or rejected; points, when given, is not negative.
    """
    task = submission.task
    _ensure_modifier(grader, task.course)
    if status not in (SubmissionStatus.ACCEPTED, SubmissionStatus.REJECTED):
        raise ValidationError({"status": ["Status must be accepted or rejected"]})
    if points is not None and int(points) < 0:
        raise ValidationError({"points": ["Points must not be negative"]})

    submission = Submission.objects.select_for_update().select_related("task", "student").get(pk=submission.pk)
    submission.status = status
    if points is not None:
        submission.points_awarded = int(points)
    if feedback is not None:
        submission.feedback = feedback
    submission.graded_by = grader
    submission.graded_at = timezone.now()
    submission.save(update_fields=["status", "points_awarded", "feedback", "graded_by", "graded_at"])

    notifications.notify(
        [submission.student.email],
        f"Your submission for {task.title} was {status}",
        format_html(
            "<p>Your submission for <b>{}</b> was <b>{}</b>.</p><p>Points: {}</p>",
            task.title, status, submission.points_awarded,
        )
        + (format_html("<p>Feedback: {}</p>", submission.feedback) if submission.feedback else ""),
    )
    audit_service.record(grader, "submission_graded", "submission", submission.pk,
                         {"status": status, "points_awarded": submission.points_awarded})
    return submission


def list_task_submissions(principal: User, task: Task) -> QuerySet[Submission]:
    """All submissions for course managers, only the caller's own for students."""
    qs = task.submissions.select_related("student", "graded_by").order_by("submitted_at", "id")
    if can_manage_roster(principal, task.course):
        return qs
    if can_access_course(principal, task.course):
        return qs.filter(student=principal)
    raise PermissionDenied("You do not have access to this course")
