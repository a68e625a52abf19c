from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.core.choices import GatingState, UnlockRequestStatus
from LmsApp.core.exceptions import Conflict, Locked
from LmsApp.domain.services import course_service, gating_service, learning_service
from LmsApp.learning.models import TaskUnlock

pytestmark = pytest.mark.django_db


@pytest.fixture
def past():
    return timezone.now() - timedelta(days=1)


def test_sequence_gating(course, staff, enrolled):
    t1 = learning_service.create_task(staff, course, "T1")
    t2 = learning_service.create_task(staff, course, "T2")
    assert gating_service.gating_state(enrolled, t1) == GatingState.UNLOCKED
    assert gating_service.gating_state(enrolled, t2) == GatingState.LOCKED_SEQUENCE

    with pytest.raises(Locked) as exc:
        learning_service.submit(enrolled, t2, text_response="skip ahead")
    assert "previous tasks" in str(exc.value.detail)

    learning_service.submit(enrolled, t1, text_response="first")
    assert gating_service.gating_state(enrolled, t1) == GatingState.SUBMITTED
    assert gating_service.gating_state(enrolled, t2) == GatingState.UNLOCKED


def test_sequence_is_checked_before_deadline(course, staff, enrolled, past):
    learning_service.create_task(staff, course, "T1")
    late = learning_service.create_task(staff, course, "T2", deadline=past)
    assert gating_service.gating_state(enrolled, late) == GatingState.LOCKED_SEQUENCE
    with pytest.raises(Locked):
        gating_service.request_unlock(enrolled, late, "I was sick")


def test_future_deadline_is_open(course, staff, enrolled):
    task = learning_service.create_task(staff, course, "T1", deadline=timezone.now() + timedelta(days=3))
    assert gating_service.gating_state(enrolled, task) == GatingState.UNLOCKED
    later = timezone.now() + timedelta(days=4)
    assert gating_service.gating_state(enrolled, task, now=later) == GatingState.LOCKED_DEADLINE


def test_deadline_unlock_workflow(course, staff, enrolled, past):
    task = learning_service.create_task(staff, course, "Late", deadline=past)
    assert gating_service.gating_state(enrolled, task) == GatingState.LOCKED_DEADLINE
    with pytest.raises(Locked):
        learning_service.submit(enrolled, task, text_response="too late")

    unlock_request = gating_service.request_unlock(enrolled, task, "I was sick")
    assert unlock_request.status == UnlockRequestStatus.PENDING
    with pytest.raises(Conflict):
        gating_service.request_unlock(enrolled, task, "Please")

    reviewed = gating_service.review_unlock_request(staff, unlock_request, UnlockRequestStatus.APPROVED)
    assert reviewed.status == UnlockRequestStatus.APPROVED
    assert reviewed.reviewed_by == staff
    assert TaskUnlock.objects.filter(task=task, student=enrolled, request=reviewed).exists()
    assert gating_service.unlock_status(enrolled, task) == {
        "task_id": task.pk, "state": "unlocked", "unlocked": True, "can_submit": True,
    }

    submission = learning_service.submit(enrolled, task, text_response="finally")
    assert submission.points_awarded == 100

    with pytest.raises(Conflict):
        gating_service.review_unlock_request(staff, reviewed, UnlockRequestStatus.REJECTED)
    with pytest.raises(Conflict):
        gating_service.request_unlock(enrolled, task, "again")


def test_rejected_request_keeps_lock_and_allows_new_request(course, staff, enrolled, past):
    task = learning_service.create_task(staff, course, "Late", deadline=past)
    first = gating_service.request_unlock(enrolled, task, "Reason one")
    gating_service.review_unlock_request(staff, first, UnlockRequestStatus.REJECTED)
    assert gating_service.gating_state(enrolled, task) == GatingState.LOCKED_DEADLINE
    second = gating_service.request_unlock(enrolled, task, "Reason two")
    assert second.pk != first.pk


def test_unlock_request_needs_reason_and_deadline_lock(course, staff, enrolled):
    task = learning_service.create_task(staff, course, "Open")
    with pytest.raises(ValidationError):
        gating_service.request_unlock(enrolled, task, "  ")
    with pytest.raises(Locked):
        gating_service.request_unlock(enrolled, task, "Nothing to unlock")


def test_unlock_request_requires_enrollment(course, staff, student, past):
    task = learning_service.create_task(staff, course, "Late", deadline=past)
    with pytest.raises(PermissionDenied):
        gating_service.request_unlock(student, task, "Let me in")


def test_only_creator_reviews_unlock_requests(course, staff, other_staff, admin, superadmin, enrolled, past):
    task = learning_service.create_task(staff, course, "Late", deadline=past)
    unlock_request = gating_service.request_unlock(enrolled, task, "Power outage")
    course_service.assign_staff(admin, course, other_staff)

    for reviewer in (other_staff, admin, superadmin, enrolled):
        with pytest.raises(PermissionDenied):
            gating_service.review_unlock_request(reviewer, unlock_request, UnlockRequestStatus.APPROVED)

    assert list(gating_service.list_unlock_requests(staff)) == [unlock_request]
    assert list(gating_service.list_unlock_requests(other_staff)) == []
    assert list(gating_service.list_unlock_requests(superadmin)) == []
    assert list(gating_service.list_unlock_requests(enrolled)) == []
    assert list(gating_service.list_unlock_requests(staff, status="approved")) == []


def test_grant_unlock_directly(course, staff, enrolled, student_factory, past):
    task = learning_service.create_task(staff, course, "Late", deadline=past)
    unlock = gating_service.grant_unlock(staff, task, enrolled)
    assert unlock.request is None
    assert gating_service.gating_state(enrolled, task) == GatingState.UNLOCKED
    outsider = student_factory()
    with pytest.raises(ValidationError):
        gating_service.grant_unlock(staff, task, outsider)
