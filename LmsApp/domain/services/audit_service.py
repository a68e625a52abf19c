"""Append-only audit trail and login history.

Writing an audit entry is best-effort: it runs in its own savepoint and a
store failure is logged instead of aborting the primary operation.
"""

import logging
from datetime import datetime
from typing import Any

from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from rest_framework.exceptions import NotFound, PermissionDenied

from LmsApp.audit.models import AuditLogEntry, LoginHistory
from LmsApp.core.config import lms_setting
from LmsApp.core.roles import Capability, principal_can
from LmsApp.users.models import User

logger = logging.getLogger(__name__)


def record(
    actor: User | None,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: dict[str, Any] | None = None,
) -> AuditLogEntry | None:
    """Append an audit entry; returns None when the store rejected it."""
    try:
        with transaction.atomic():
            return AuditLogEntry.objects.create(
                actor=actor if actor is not None and actor.pk else None,
                action=action,
                resource_type=resource_type,
                resource_id="" if resource_id is None else str(resource_id),
                details=details or {},
            )
    except DatabaseError:
        logger.exception("Failed to record audit entry %s %s:%s", action, resource_type, resource_id)
        return None


def list_entries(actor: User, limit: int = 100) -> QuerySet[AuditLogEntry]:
    if not principal_can(actor, Capability.VIEW_AUDIT_LOG):
        raise PermissionDenied("Admin access required")
    limit = max(1, min(int(limit), lms_setting("AUDIT_LOG_MAX_LIMIT")))
    return AuditLogEntry.objects.select_related("actor").order_by("-created_at", "-id")[:limit]


def purge_entries(actor: User, before: datetime | None = None) -> int:
    """Delete audit entries (all, or older than ``before``). Superadmin only."""
    if not principal_can(actor, Capability.PURGE_AUDIT_LOG):
        raise PermissionDenied("SuperAdmin access required")
    qs = AuditLogEntry.objects.all()
    if before is not None:
        qs = qs.filter(created_at__lt=before)
    deleted, _ = qs.delete()
    logger.info("User %s purged %d audit entries", actor.pk, deleted)
    record(actor, "audit_log_purged", "audit_log", None, {"deleted": deleted, "before": before.isoformat() if before else None})
    return deleted


def record_login(user: User, ip_address: str | None = None, user_agent: str = "") -> LoginHistory | None:
    try:
        with transaction.atomic():
            return LoginHistory.objects.create(
                user=user, ip_address=ip_address or None, user_agent=(user_agent or "")[:255]
            )
    except DatabaseError:
        logger.exception("Failed to record login for user %s", user.pk)
        return None


def list_login_history(actor: User, limit: int = 200) -> QuerySet[LoginHistory]:
    if not principal_can(actor, Capability.VIEW_LOGIN_HISTORY):
        raise PermissionDenied("SuperAdmin access required")
    return LoginHistory.objects.select_related("user")[:max(1, int(limit))]


def delete_login_entry(actor: User, entry_id: int) -> None:
    if not principal_can(actor, Capability.VIEW_LOGIN_HISTORY):
        raise PermissionDenied("SuperAdmin access required")
    deleted, _ = LoginHistory.objects.filter(pk=entry_id).delete()
    if not deleted:
        raise NotFound("Login record not found")
    record(actor, "login_history_deleted", "login_history", entry_id)
