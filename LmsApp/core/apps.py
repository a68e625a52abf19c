"""Core app configuration and startup checks (like the capability table being complete)."""

from django.apps import AppConfig
from django.core.checks import register, Error

class CoreConfig(AppConfig):
    """AppConfig registering a system check that every role has a capability entry."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LmsApp.core"

    def ready(self):
        """Register a Django system check to ensure the role table covers every Role."""
        @register()
        def role_table_check(app_configs, **kwargs):
            from LmsApp.core.choices import Role
            from LmsApp.core.roles import ROLE_CAPABILITIES

            missing = [role for role in Role if role not in ROLE_CAPABILITIES]
            if missing:
                return [Error(f"Roles without capability entry: {missing}", id="core.E001")]
            return []
