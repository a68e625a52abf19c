"""DRF permission classes backed by the capability table and course access predicates."""

from typing import Any

from rest_framework.permissions import BasePermission, SAFE_METHODS
from rest_framework.request import Request

from LmsApp.core.access import (
    can_access_course,
    can_manage_roster,
    can_modify_course,
    course_from,
    is_submission_participant,
)
from LmsApp.core.roles import Capability, principal_can


class HasCapability(BasePermission):
    """Grants access when the requesting principal's role carries ``capability``.

    Use ``HasCapability.for_(Capability.X)`` to bind the capability.
    """
    capability: Capability | None = None
    message = "Your role does not allow this action."

    @classmethod
    def for_(cls, capability: Capability) -> type["HasCapability"]:
        return type(f"Has_{capability.value}", (cls,), {"capability": capability})

    def has_permission(self, request: Request, view: Any) -> bool:
        return bool(self.capability and principal_can(request.user, self.capability))


class CanModifyCourse(BasePermission):
    """Write access for the course creator or a superadmin. Reads require course access."""
    message = "Only the course creator or a superadmin may modify this course."

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        course = course_from(obj)
        if request.method in SAFE_METHODS:
            return can_access_course(request.user, course)
        return can_modify_course(request.user, course)


class CanAccessCourse(BasePermission):
    message = "You do not have access to this course."

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return can_access_course(request.user, course_from(obj))


class CanManageRoster(BasePermission):
    message = "You do not have access to manage this course."

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return can_manage_roster(request.user, course_from(obj))


class IsSubmissionParticipant(BasePermission):
    """Allow access to the submitting student or to course managers."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return is_submission_participant(request.user, obj)
