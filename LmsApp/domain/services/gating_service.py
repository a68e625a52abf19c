"""Task gating and the deadline unlock workflow.

State of a (task, student) pair, evaluated in this order:
    submitted        -> a submission exists (terminal, no resubmission)
    locked_sequence  -> an earlier task of the course has no submission by the student
    locked_deadline  -> deadline passed and no TaskUnlock exists
    unlocked         -> otherwise

Unlock requests move pending -> approved | rejected. Approval creates the
TaskUnlock that lifts the deadline lock; unlocks are never revoked.
"""

import logging
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.core.access import can_access_course, can_review_unlock_requests
from LmsApp.core.choices import GatingState, UnlockRequestStatus
from LmsApp.core.exceptions import Conflict, Locked
from LmsApp.core.roles import Capability, principal_can
from LmsApp.domain.services import audit_service
from LmsApp.learning.models import Submission, Task, TaskUnlock, TaskUnlockRequest
from LmsApp.users.models import User

logger = logging.getLogger(__name__)

LOCK_MESSAGES = {
    GatingState.LOCKED_SEQUENCE: "Complete previous tasks before attempting this one",
    GatingState.LOCKED_DEADLINE: "Deadline has passed; request an unlock to submit",
    GatingState.SUBMITTED: "Already submitted",
}


def has_unlock(student: User, task: Task) -> bool:
    return TaskUnlock.objects.filter(task=task, student=student).exists()


def prerequisites_met(student: User, task: Task) -> bool:
    """Every earlier task in the course has a submission by this student."""
    return not (
        Task.objects.preceding(task)
        .exclude(submissions__student=student)
        .exists()
    )


def deadline_passed(task: Task, now: datetime | None = None) -> bool:
    if task.deadline is None:
        return False
    return (now or timezone.now()) > task.deadline


def gating_state(student: User, task: Task, now: datetime | None = None) -> GatingState:
    if Submission.objects.filter(task=task, student=student).exists():
        return GatingState.SUBMITTED
    if not prerequisites_met(student, task):
        return GatingState.LOCKED_SEQUENCE
    if deadline_passed(task, now) and not has_unlock(student, task):
        return GatingState.LOCKED_DEADLINE
    return GatingState.UNLOCKED


def ensure_unlocked(student: User, task: Task, now: datetime | None = None) -> None:
    """Raise Locked unless the student may submit the task right now."""
    state = gating_state(student, task, now)
    if state == GatingState.SUBMITTED:
        raise Conflict(LOCK_MESSAGES[state])
    if state != GatingState.UNLOCKED:
        raise Locked(LOCK_MESSAGES[state])


def unlock_status(student: User, task: Task) -> dict:
    state = gating_state(student, task)
    return {
        "task_id": task.pk,
        "state": state.value,
        "unlocked": has_unlock(student, task),
        "can_submit": state == GatingState.UNLOCKED,
    }


def request_unlock(student: User, task: Task, reason: str) -> TaskUnlockRequest:
    """Ask the course creator to lift a deadline lock.

    Raises:
        PermissionDenied: not a student, or no access to the course.
        ValidationError: empty reason.
        Conflict: already submitted, already unlocked, or a request is pending.
        Locked: the task is not locked by its deadline (nothing to unlock, or sequence lock).
    """
    if not principal_can(student, Capability.REQUEST_UNLOCK) or not can_access_course(student, task.course):
        raise PermissionDenied("Not enrolled in course")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": ["A reason is required"]})
    if Submission.objects.filter(task=task, student=student).exists():
        raise Conflict("Already submitted")
    if has_unlock(student, task):
        raise Conflict("Task already unlocked")
    if TaskUnlockRequest.objects.pending().filter(task=task, student=student).exists():
        raise Conflict("Unlock request already pending")

    state = gating_state(student, task)
    if state != GatingState.LOCKED_DEADLINE:
        raise Locked("Unlock requests are only possible for tasks locked by their deadline")

    try:
        with transaction.atomic():
            unlock_request = TaskUnlockRequest.objects.create(task=task, student=student, reason=reason)
    except IntegrityError:
        raise Conflict("Unlock request already pending")
    audit_service.record(student, "unlock_requested", "task_unlock_request", unlock_request.pk, {"task_id": task.pk})
    return unlock_request


def _create_unlock(reviewer: User, task: Task, student: User, unlock_request: TaskUnlockRequest | None = None) -> TaskUnlock:
    unlock, created = TaskUnlock.objects.get_or_create(
        task=task,
        student=student,
        defaults={"granted_by": reviewer, "request": unlock_request},
    )
    if not created:
        logger.info("Task %s already unlocked for student %s", task.pk, student.pk)
    return unlock


@transaction.atomic
def review_unlock_request(reviewer: User, unlock_request: TaskUnlockRequest, status: str) -> TaskUnlockRequest:
    """Approve or reject a pending request (course creator only)."""
    if not can_review_unlock_requests(reviewer, unlock_request.task.course):
        raise PermissionDenied("Only the course creator may review unlock requests")
    if status not in (UnlockRequestStatus.APPROVED, UnlockRequestStatus.REJECTED):
        raise ValidationError({"status": ["Status must be approved or rejected"]})
    unlock_request = TaskUnlockRequest.objects.select_for_update().select_related("task", "student").get(pk=unlock_request.pk)
    if unlock_request.status != UnlockRequestStatus.PENDING:
        raise Conflict("Unlock request already reviewed")

    unlock_request.status = status
    unlock_request.reviewed_by = reviewer
    unlock_request.reviewed_at = timezone.now()
    unlock_request.save(update_fields=["status", "reviewed_by", "reviewed_at"])
    if status == UnlockRequestStatus.APPROVED:
        _create_unlock(reviewer, unlock_request.task, unlock_request.student, unlock_request)

    audit_service.record(reviewer, f"unlock_request_{status}", "task_unlock_request", unlock_request.pk,
                         {"task_id": unlock_request.task_id, "student_id": unlock_request.student_id})
    return unlock_request


@transaction.atomic
def grant_unlock(reviewer: User, task: Task, student: User) -> TaskUnlock:
    """Unlock a task for a student without a request."""
    if not can_review_unlock_requests(reviewer, task.course):
        raise PermissionDenied("Only the course creator may unlock tasks")
    if not can_access_course(student, task.course):
        raise ValidationError({"student_id": ["Student is not enrolled in this course"]})
    unlock = _create_unlock(reviewer, task, student)
    audit_service.record(reviewer, "task_unlocked", "task", task.pk, {"student_id": student.pk})
    return unlock


def list_unlock_requests(reviewer: User, status: str | None = None) -> QuerySet[TaskUnlockRequest]:
    """Requests the reviewer may act on; other creators' courses are filtered out."""
    qs = (
        TaskUnlockRequest.objects.reviewable_by(reviewer)
        .select_related("task", "task__course", "student")
        .order_by("-requested_at", "-id")
    )
    if status:
        if status not in UnlockRequestStatus.values:
            raise ValidationError({"status": [f"Unknown status {status!r}"]})
        qs = qs.filter(status=status)
    return qs
