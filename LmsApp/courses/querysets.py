from django.db.models import QuerySet, Q

from LmsApp.core.choices import EnrollmentStatus, Role
from LmsApp.core.roles import Capability, principal_can, role_of

class CourseQuerySet(QuerySet):
    def for_creator(self, user):
        return self.filter(creator=user)

    def assigned_to(self, user):
        return self.filter(staff_assignments__staff=user).distinct()

    def enrolled(self, user):
        return self.filter(enrollments__student=user, enrollments__status=EnrollmentStatus.ACTIVE)

    def visible_to(self, user):
        """
        Courses a principal may see:
          - Admin / superadmin: every course
          - Staff: courses they created or are assigned to
          - Student: courses with an active enrollment
          - Anyone else: nothing
        """
        if principal_can(user, Capability.VIEW_ALL_COURSES):
            return self.all()
        role = role_of(user)
        if role == Role.STAFF:
            return self.filter(
                Q(creator=user) |
                Q(staff_assignments__staff=user)
            ).distinct()
        if role == Role.STUDENT:
            return self.enrolled(user)
        return self.none()


class EnrollmentQuerySet(QuerySet):
    def active(self):
        return self.filter(status=EnrollmentStatus.ACTIVE)

    def pending(self):
        return self.filter(status=EnrollmentStatus.PENDING)

    def for_course(self, course):
        return self.filter(course=course)
