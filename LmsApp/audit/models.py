"""Audit domain models: AuditLogEntry (append-only) and LoginHistory."""

from django.conf import settings
from django.db import models

User = settings.AUTH_USER_MODEL


class AppendOnlyError(Exception):
    """Raised when code tries to modify an existing audit entry."""


class AuditLogEntry(models.Model):
    """A record of a privileged action.

    Rows are only ever inserted; ``save`` on an existing row raises AppendOnlyError.
    Deletion happens only through the superadmin purge service.
    """
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_entries")
    action = models.CharField(max_length=64, db_index=True)
    resource_type = models.CharField(max_length=64)
    resource_id = models.CharField(max_length=64, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError("Audit log entries cannot be modified.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.action} {self.resource_type}:{self.resource_id} by {self.actor_id}"


class LoginHistory(models.Model):
    """One successful login of a principal."""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="logins")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
