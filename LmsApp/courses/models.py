"""Course domain models: Course, Enrollment, StaffAssignment."""

from django.db import models
from django.db.models.functions import Upper
from django.conf import settings

from simple_history.models import HistoricalRecords

from LmsApp.core.choices import EnrollmentStatus
from LmsApp.courses.querysets import CourseQuerySet, EnrollmentQuerySet


User = settings.AUTH_USER_MODEL

def normalize_code(code: str) -> str:
    """Join codes match case-insensitively; they are stored stripped and upper-case."""
    return (code or "").strip().upper()

class Course(models.Model):
    """A course owned by its creator and joinable through a short code.

    Fields:
        title: Human readable course title.
        description: Optional longer text.
        code: Join code, unique regardless of case.
        creator: Principal holding default modification rights.
        created_at / updated_at: Timestamps.
        history: Audit history (django-simple-history).
    """
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    code = models.CharField(max_length=12)
    creator = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_courses")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = CourseQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(Upper("code"), name="uq_course_code_ci"),
        ]

    def save(self, *args, **kwargs):
        self.code = normalize_code(self.code)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.title} [{self.code}] (#{self.pk})"

class Enrollment(models.Model):
    """A student's membership in a course.

    Fields:
        course: Target course.
        student: Enrolled (or requesting) student.
        status: pending (request awaiting approval) or active.
        added_by: Principal that created the row (the student for self-service joins).
        enrolled_at: Timestamp.
    Constraints:
        uq_enrollment_course_student: one row per (course, student); duplicate joins fail.
    """
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    status = models.CharField(max_length=16, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE)
    added_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name="enrollments_added")
    enrolled_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "student"], name="uq_enrollment_course_student"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.course} ({self.status})"


class StaffAssignment(models.Model):
    """Grants a staff member access to a course they did not create."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="staff_assignments")
    staff = models.ForeignKey(User, on_delete=models.CASCADE, related_name="staff_assignments")
    assigned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name="staff_assignments_made")
    created_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "staff"], name="uq_staff_assignment"),
        ]

    def __str__(self) -> str:
        return f"{self.staff} @ {self.course}"
