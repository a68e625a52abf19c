"""Access to the project-specific ``LMS`` settings block."""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "JOIN_CODE_LENGTH": 6,
    "JOIN_CODE_ATTEMPTS": 5,
    "POINTS_DECAY_PERCENT": 10,
    "POINTS_FLOOR": 10,
    "DEFAULT_MAX_POINTS": 100,
    "MAX_SUBMISSION_FILES": 5,
    "MAX_FILE_MB": 10,
    "AUDIT_LOG_MAX_LIMIT": 1000,
    "NOTIFICATION_WORKERS": 2,
    "NOTIFICATIONS_INLINE": False,
    "ADMIN_MASTER_KEY": "",
    "SUPERADMIN_KEY": "",
}


def lms_setting(name: str) -> Any:
    """Return ``settings.LMS[name]`` falling back to the built-in default."""
    overrides = getattr(settings, "LMS", {})
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
