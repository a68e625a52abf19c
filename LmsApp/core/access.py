"""Role & object access helpers.

All predicates are pure reads of current state and return booleans; callers
turn ``False`` into a 403.
"""

from typing import Any
from LmsApp.courses.models import Course, Enrollment, StaffAssignment
from LmsApp.learning.models import (
    Task, Submission, TaskUnlockRequest, TaskUnlock
)
from LmsApp.core.choices import EnrollmentStatus, Role
from LmsApp.core.roles import Capability, has_any_role, principal_can, role_of
from LmsApp.learning.querysets import UNLOCK_REVIEWER_ROLES


def course_from(obj: Any) -> Course | None:
    if obj is None:
        return None
    if isinstance(obj, Course):
        return obj
    if isinstance(obj, Task):
        return obj.course
    if isinstance(obj, (Submission, TaskUnlockRequest, TaskUnlock)):
        return obj.task.course
    return getattr(obj, "course", None)


def is_creator(user, course: Course | None) -> bool:
    return bool(user and course and course.creator_id == user.id)


def is_assigned_staff(user, course: Course | None) -> bool:
    if not (user and course):
        return False
    return StaffAssignment.objects.filter(course=course, staff=user).exists()


def is_enrolled(user, course: Course | None) -> bool:
    if not (user and course):
        return False
    return Enrollment.objects.filter(
        course=course, student=user, status=EnrollmentStatus.ACTIVE
    ).exists()


def can_modify_course(user, course: Course | None) -> bool:
    """Superadmin, or the course creator."""
    if course is None or role_of(user) is None:
        return False
    return role_of(user) == Role.SUPERADMIN or is_creator(user, course)


def can_access_course(user, course: Course | None) -> bool:
    """Admins always; staff when creator or assigned; students with an active enrollment."""
    if course is None:
        return False
    if principal_can(user, Capability.VIEW_ALL_COURSES):
        return True
    role = role_of(user)
    if role == Role.STAFF:
        return is_creator(user, course) or is_assigned_staff(user, course)
    if role == Role.STUDENT:
        return is_enrolled(user, course)
    return False


def can_manage_roster(user, course: Course | None) -> bool:
    """Non-student principals with course access may manage enrollments."""
    return principal_can(user, Capability.MANAGE_ROSTER) and can_access_course(user, course)


def can_review_unlock_requests(user, course: Course | None) -> bool:
    """Only the course creator reviews unlock requests; superadmin has no override on other courses."""
    if course is None:
        return False
    return has_any_role(user, UNLOCK_REVIEWER_ROLES) and is_creator(user, course)


def is_submission_participant(user, submission: Submission) -> bool:
    """Submitting student, or a non-student principal with access to the course."""
    if submission.student_id == user.id:
        return True
    return can_manage_roster(user, course_from(submission))
