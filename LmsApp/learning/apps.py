"""Learning app configuration (registers signal handlers)."""

from django.apps import AppConfig

class LearningConfig(AppConfig):
    """AppConfig for the learning domain (tasks, submissions, unlocks, quick tasks)."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LmsApp.learning"

    def ready(self):
        """Import signal handlers to connect Django model signals."""
        from LmsApp.learning import signals  # noqa: F401
