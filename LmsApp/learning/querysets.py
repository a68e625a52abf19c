from django.db.models import QuerySet, Q

from LmsApp.core.choices import EnrollmentStatus, Role, UnlockRequestStatus
from LmsApp.core.roles import Capability, has_any_role, principal_can, role_of

# Roles that may review unlock requests for courses they created.
UNLOCK_REVIEWER_ROLES = (Role.SUPERADMIN, Role.ADMIN, Role.STAFF)


class TaskQuerySet(QuerySet):
    def in_course_order(self, course):
        return self.filter(course=course).order_by("created_at", "id")

    def preceding(self, task):
        """Tasks strictly before ``task`` in its course's creation order."""
        return self.filter(course_id=task.course_id).filter(
            Q(created_at__lt=task.created_at) |
            Q(created_at=task.created_at, id__lt=task.id)
        )

    def visible_to(self, user):
        if principal_can(user, Capability.VIEW_ALL_COURSES):
            return self.all()
        role = role_of(user)
        if role == Role.STAFF:
            return self.filter(
                Q(course__creator=user) |
                Q(course__staff_assignments__staff=user)
            ).distinct()
        if role == Role.STUDENT:
            return self.filter(
                course__enrollments__student=user,
                course__enrollments__status=EnrollmentStatus.ACTIVE,
            )
        return self.none()


class SubmissionQuerySet(QuerySet):
    def for_course(self, course_id):
        return self.filter(task__course_id=course_id)

    def for_student(self, user):
        return self.filter(student=user)


class UnlockRequestQuerySet(QuerySet):
    def pending(self):
        return self.filter(status=UnlockRequestStatus.PENDING)

    def reviewable_by(self, user):
        """Only requests on courses the reviewer created; other courses stay invisible."""
        if not has_any_role(user, UNLOCK_REVIEWER_ROLES):
            return self.none()
        return self.filter(task__course__creator=user)
