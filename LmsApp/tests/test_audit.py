from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from LmsApp.audit.models import AppendOnlyError, AuditLogEntry, LoginHistory
from LmsApp.domain.services import audit_service, course_service

pytestmark = pytest.mark.django_db


def test_entries_are_append_only(staff):
    entry = audit_service.record(staff, "something", "course", 1, {"k": "v"})
    entry.action = "tampered"
    with pytest.raises(AppendOnlyError):
        entry.save()
    entry.refresh_from_db()
    assert entry.action == "something"


def test_record_failure_does_not_abort_primary_write(staff, monkeypatch):
    def broken_create(**kwargs):
        raise DatabaseError("audit table unavailable")

    monkeypatch.setattr(AuditLogEntry.objects, "create", broken_create)
    course = course_service.create_course(staff, "Still created")
    assert course.pk is not None
    assert audit_service.record(staff, "x", "y") is None


def test_list_entries_newest_first_and_clamped(admin, staff, student):
    for i in range(5):
        audit_service.record(staff, f"action_{i}", "thing", i)
    entries = list(audit_service.list_entries(admin, limit=3))
    assert [e.action for e in entries] == ["action_4", "action_3", "action_2"]
    assert len(list(audit_service.list_entries(admin, limit=0))) == 1
    with pytest.raises(PermissionDenied):
        audit_service.list_entries(staff)
    with pytest.raises(PermissionDenied):
        audit_service.list_entries(student)


def test_purge_is_superadmin_only(admin, superadmin, staff):
    audit_service.record(staff, "old", "thing")
    with pytest.raises(PermissionDenied):
        audit_service.purge_entries(admin)
    deleted = audit_service.purge_entries(superadmin, before=timezone.now() + timedelta(seconds=1))
    assert deleted == 1
    assert list(AuditLogEntry.objects.values_list("action", flat=True)) == ["audit_log_purged"]


def test_login_history(superadmin, admin, staff):
    entry = audit_service.record_login(staff, "10.0.0.1", "pytest")
    assert [e.user for e in audit_service.list_login_history(superadmin)] == [staff]
    with pytest.raises(PermissionDenied):
        audit_service.list_login_history(admin)
    audit_service.delete_login_entry(superadmin, entry.pk)
    assert not LoginHistory.objects.exists()
    with pytest.raises(NotFound):
        audit_service.delete_login_entry(superadmin, entry.pk)
