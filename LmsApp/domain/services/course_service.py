"""Domain service functions for course lifecycle, enrollment and staff assignment.

These helpers encapsulate business rules (creator-or-superadmin modification,
roster management by course staff, self-service join codes) and keep
view/serializer layers thin. Uniqueness of join codes, enrollments and staff
assignments is guaranteed by database constraints; every insert here catches
IntegrityError and reports it as a Conflict. Pre-checks only pick a friendlier
message.
"""
import logging
import secrets
import string
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LmsApp.core.access import can_manage_roster, can_modify_course
from LmsApp.core.choices import EnrollmentStatus, Role
from LmsApp.core.config import lms_setting
from LmsApp.core.exceptions import Conflict
from LmsApp.core.roles import Capability, principal_can
from LmsApp.courses.models import Course, Enrollment, StaffAssignment, normalize_code
from LmsApp.domain.services import audit_service
from LmsApp.users.models import User

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length: int | None = None) -> str:
    """Random upper-case alphanumeric join code."""
    length = length or lms_setting("JOIN_CODE_LENGTH")
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def code_taken(code: str, exclude_pk: int | None = None) -> bool:
    qs = Course.objects.filter(code__iexact=normalize_code(code))
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()


def _insert_course(creator: User, title: str, description: str, code: str) -> Course:
    with transaction.atomic():
        return Course.objects.create(creator=creator, title=title, description=description, code=code)


def create_course(creator: User, title: str, description: str = "", code: str | None = None) -> Course:
    """Create a course owned by ``creator``.

    A supplied code must be unused (case-insensitive), otherwise Conflict.
    Without a code, random codes are tried until one inserts cleanly.

    Raises:
        PermissionDenied: creator's role may not create courses.
        Conflict: supplied code already in use.
    """
    if not principal_can(creator, Capability.CREATE_COURSE):
        raise PermissionDenied("Staff, admin or superadmin role required")
    if not title:
        raise ValidationError({"title": ["This field is required."]})

    if code:
        try:
            course = _insert_course(creator, title, description, code)
        except IntegrityError:
            raise Conflict("Course code already in use")
    else:
        attempts = lms_setting("JOIN_CODE_ATTEMPTS")
        course = None
        for _ in range(attempts):
            try:
                course = _insert_course(creator, title, description, generate_code())
                break
            except IntegrityError:
                logger.warning("Generated join code collided, retrying")
        if course is None:
            raise Conflict("Could not generate a unique course code")

    logger.info("Course %s created by user %s", course.pk, creator.pk)
    audit_service.record(creator, "course_created", "course", course.pk, {"title": title, "code": course.code})
    return course


def update_course(actor: User, course: Course, data: dict[str, Any]) -> Course:
    """Update title/description/code (creator or superadmin)."""
    if not can_modify_course(actor, course):
        raise PermissionDenied("Only the course creator or a superadmin may modify this course")
    changed = []
    for field in ("title", "description", "code"):
        if field in data and data[field] is not None:
            if field == "code" and not data[field]:
                continue
            setattr(course, field, data[field])
            changed.append(field)
    if "code" in changed and code_taken(course.code, exclude_pk=course.pk):
        raise Conflict("Course code already in use")
    try:
        with transaction.atomic():
            course.save()
    except IntegrityError:
        raise Conflict("Course code already in use")
    audit_service.record(actor, "course_updated", "course", course.pk, {"fields": changed})
    return course


def delete_course(actor: User, course: Course) -> None:
    if not can_modify_course(actor, course):
        raise PermissionDenied("Only the course creator or a superadmin may delete this course")
    course_id, title = course.pk, course.title
    course.delete()
    audit_service.record(actor, "course_deleted", "course", course_id, {"title": title})


def _enrollment_conflict(course: Course, student: User) -> Conflict:
    existing = Enrollment.objects.filter(course=course, student=student).first()
    if existing is not None and existing.status == EnrollmentStatus.PENDING:
        return Conflict("Join request already pending")
    return Conflict("Already enrolled")


def _insert_enrollment(course: Course, student: User, status: str, added_by: User) -> Enrollment:
    """Single atomic insert; the unique constraint is the only duplicate guard."""
    try:
        with transaction.atomic():
            return Enrollment.objects.create(course=course, student=student, status=status, added_by=added_by)
    except IntegrityError:
        raise _enrollment_conflict(course, student)


def join_by_code(student: User, code: str) -> Enrollment:
    """Enroll a student through a course join code.

    Raises:
        PermissionDenied: principal is not a student.
        ValidationError: empty code.
        NotFound: no course has this code.
        Conflict: an enrollment (active or pending) already exists.
    """
    if not principal_can(student, Capability.JOIN_COURSE):
        raise PermissionDenied("Only students can join courses")
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError({"code": ["Course code is required"]})
    course = Course.objects.filter(code__iexact=normalized).first()
    if course is None:
        raise NotFound("Course not found")
    enrollment = _insert_enrollment(course, student, EnrollmentStatus.ACTIVE, added_by=student)
    audit_service.record(student, "course_enrolled", "course", course.pk, {"code": normalized})
    return enrollment


def request_enrollment(student: User, course: Course) -> Enrollment:
    """Create a pending enrollment awaiting approval by course staff."""
    if not principal_can(student, Capability.JOIN_COURSE):
        raise PermissionDenied("Only students can request enrollment")
    existing = Enrollment.objects.filter(course=course, student=student).first()
    if existing is not None:
        raise _enrollment_conflict(course, student)
    enrollment = _insert_enrollment(course, student, EnrollmentStatus.PENDING, added_by=student)
    audit_service.record(student, "enrollment_requested", "course", course.pk)
    return enrollment


@transaction.atomic
def approve_enrollment(actor: User, enrollment: Enrollment) -> Enrollment:
    if not can_manage_roster(actor, enrollment.course):
        raise PermissionDenied("You do not have access to manage this course")
    enrollment = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
    if enrollment.status != EnrollmentStatus.PENDING:
        raise Conflict("Enrollment is not pending")
    enrollment.status = EnrollmentStatus.ACTIVE
    enrollment.save(update_fields=["status"])
    audit_service.record(actor, "enrollment_approved", "enrollment", enrollment.pk,
                         {"course_id": enrollment.course_id, "student_id": enrollment.student_id})
    return enrollment


@transaction.atomic
def reject_enrollment(actor: User, enrollment: Enrollment) -> None:
    """Delete a pending request so the student may ask again later."""
    if not can_manage_roster(actor, enrollment.course):
        raise PermissionDenied("You do not have access to manage this course")
    if enrollment.status != EnrollmentStatus.PENDING:
        raise Conflict("Enrollment is not pending")
    details = {"course_id": enrollment.course_id, "student_id": enrollment.student_id}
    enrollment_id = enrollment.pk
    enrollment.delete()
    audit_service.record(actor, "enrollment_rejected", "enrollment", enrollment_id, details)


def add_student(actor: User, course: Course, student: User) -> Enrollment:
    """Enroll a student directly (course staff, admin, superadmin)."""
    if not can_manage_roster(actor, course):
        raise PermissionDenied("You do not have access to manage this course")
    if student.role != Role.STUDENT:
        raise ValidationError({"student": ["Invalid student ID"]})
    enrollment = _insert_enrollment(course, student, EnrollmentStatus.ACTIVE, added_by=actor)
    audit_service.record(actor, "student_added_to_course", "enrollment", enrollment.pk,
                         {"course_id": course.pk, "student_id": student.pk})
    return enrollment


def remove_student(actor: User, course: Course, student: User) -> None:
    if not can_manage_roster(actor, course):
        raise PermissionDenied("You do not have access to manage this course")
    deleted, _ = Enrollment.objects.filter(course=course, student=student).delete()
    if not deleted:
        raise NotFound("Student is not enrolled in this course")
    audit_service.record(actor, "student_removed_from_course", "enrollment", None,
                         {"course_id": course.pk, "student_id": student.pk})


def assign_staff(actor: User, course: Course, staff: User) -> StaffAssignment:
    """Grant a staff member access to a course (admin/superadmin)."""
    if not principal_can(actor, Capability.ASSIGN_STAFF):
        raise PermissionDenied("Only admins can assign staff to courses")
    if staff.role != Role.STAFF:
        raise ValidationError({"staff": ["Invalid staff ID"]})
    try:
        with transaction.atomic():
            assignment = StaffAssignment.objects.create(course=course, staff=staff, assigned_by=actor)
    except IntegrityError:
        raise Conflict("Staff already assigned to course")
    audit_service.record(actor, "staff_assigned_to_course", "course_staff_assignment", assignment.pk,
                         {"course_id": course.pk, "staff_id": staff.pk})
    return assignment


def unassign_staff(actor: User, course: Course, staff: User) -> None:
    if not principal_can(actor, Capability.ASSIGN_STAFF):
        raise PermissionDenied("Only admins can unassign staff from courses")
    deleted, _ = StaffAssignment.objects.filter(course=course, staff=staff).delete()
    if not deleted:
        raise NotFound("Staff is not assigned to this course")
    audit_service.record(actor, "staff_unassigned_from_course", "course_staff_assignment", None,
                         {"course_id": course.pk, "staff_id": staff.pk})


def list_visible_courses(principal: User) -> QuerySet[Course]:
    """Courses visible to the principal, newest first."""
    return Course.objects.visible_to(principal).select_related("creator").order_by("-created_at", "-id")


def list_roster(actor: User, course: Course, status: str | None = None) -> QuerySet[Enrollment]:
    """Enrollments of a course with student identity (course staff, admin, superadmin)."""
    if not can_manage_roster(actor, course):
        raise PermissionDenied("You do not have access to view this course")
    qs = Enrollment.objects.for_course(course).select_related("student").order_by("enrolled_at", "id")
    if status:
        qs = qs.filter(status=status)
    return qs
