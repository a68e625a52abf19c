"""Quick tasks: course-independent tasks broadcast to an explicit list of students."""

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import QuerySet
from django.utils.html import format_html
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.core.choices import Role
from LmsApp.core.roles import Capability, principal_can, role_of
from LmsApp.domain.services import audit_service, notifications
from LmsApp.learning.models import QuickTask, QuickTaskAssignment
from LmsApp.users.models import User

logger = logging.getLogger(__name__)


def _ensure_manager(actor: User) -> None:
    if not principal_can(actor, Capability.MANAGE_QUICK_TASKS):
        raise PermissionDenied("Staff, admin or superadmin role required")


def _resolve_students(student_ids: Iterable[int]) -> list[User]:
    ids = {int(pk) for pk in student_ids}
    students = list(User.objects.filter(pk__in=ids, role=Role.STUDENT))
    missing = ids - {s.pk for s in students}
    if missing:
        raise ValidationError({"student_ids": [f"Not students: {sorted(missing)}"]})
    return students


@transaction.atomic
def create_quick_task(actor: User, title: str, description: str = "", student_ids: Iterable[int] = ()) -> QuickTask:
    _ensure_manager(actor)
    quick_task = QuickTask.objects.create(title=title, description=description or "", creator=actor)
    audit_service.record(actor, "quick_task_created", "quick_task", quick_task.pk, {"title": title})
    if student_ids:
        assign_students(actor, quick_task, student_ids)
    return quick_task


@transaction.atomic
def delete_quick_task(actor: User, quick_task: QuickTask) -> None:
    _ensure_manager(actor)
    quick_task_id = quick_task.pk
    quick_task.delete()
    audit_service.record(actor, "quick_task_deleted", "quick_task", quick_task_id)


@transaction.atomic
def assign_students(actor: User, quick_task: QuickTask, student_ids: Iterable[int]) -> int:
    """Assign students; ids already assigned are ignored. Returns the number of new assignments."""
    _ensure_manager(actor)
    students = _resolve_students(student_ids)
    before = quick_task.assignments.count()
    QuickTaskAssignment.objects.bulk_create(
        [QuickTaskAssignment(quick_task=quick_task, student=s) for s in students],
        ignore_conflicts=True,
    )
    added = quick_task.assignments.count() - before
    if added:
        notifications.notify(
            [s.email for s in students],
            f"New quick task: {quick_task.title}",
            format_html("<p>You were assigned <b>{}</b>.</p><p>{}</p>", quick_task.title, quick_task.description),
        )
    audit_service.record(actor, "quick_task_assigned", "quick_task", quick_task.pk,
                         {"student_ids": sorted(s.pk for s in students), "added": added})
    return added


@transaction.atomic
def unassign_students(actor: User, quick_task: QuickTask, student_ids: Iterable[int]) -> int:
    _ensure_manager(actor)
    ids = [int(pk) for pk in student_ids]
    deleted, _ = quick_task.assignments.filter(student_id__in=ids).delete()
    audit_service.record(actor, "quick_task_unassigned", "quick_task", quick_task.pk,
                         {"student_ids": sorted(ids), "removed": deleted})
    return deleted


def list_quick_tasks(principal: User) -> QuerySet[QuickTask]:
    """Managers see every quick task; students only those assigned to them."""
    qs = QuickTask.objects.select_related("creator").prefetch_related("students")
    if principal_can(principal, Capability.MANAGE_QUICK_TASKS):
        return qs
    if role_of(principal) == Role.STUDENT:
        return qs.filter(assignments__student=principal)
    return qs.none()
