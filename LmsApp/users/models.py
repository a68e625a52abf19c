"""Principal model: a Django user carrying exactly one LMS role."""

from django.contrib.auth.models import AbstractUser
from django.db import models

from simple_history.models import HistoricalRecords

from LmsApp.core.choices import Role

class User(AbstractUser):
    """An authenticated actor.

    Fields:
        email: Unique login identifier.
        role: Role value; changed only by privileged actions (staff approval/decline).
        display_name: Name shown on rosters and the leaderboard.
        department: Optional department label.
        staff_id / student_id: Optional institutional identifiers.
    Pending and declined staff are stored with ``is_active=False`` so they cannot obtain tokens.
    """
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)
    display_name = models.CharField(max_length=150, blank=True)
    department = models.CharField(max_length=150, blank=True)
    staff_id = models.CharField(max_length=64, blank=True)
    student_id = models.CharField(max_length=64, blank=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords(excluded_fields=["password", "last_login"])

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    @property
    def name(self) -> str:
        return self.display_name or self.get_full_name() or self.email

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"
