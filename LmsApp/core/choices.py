"""Typed enumerations (TextChoices) for roles and the lifecycle states of enrollments, submissions and unlock requests."""
from django.db import models

class Role(models.TextChoices):
    """System-level role of a principal. Exactly one role at a time."""
    SUPERADMIN = "superadmin", "Super admin"
    ADMIN = "admin", "Admin"
    STAFF = "staff", "Staff"
    PENDING_STAFF = "pending_staff", "Pending staff"
    STUDENT = "student", "Student"
    DECLINED = "declined", "Declined"

class EnrollmentStatus(models.TextChoices):
    """Pending rows come from enrollment requests; join-by-code and roster adds are active immediately."""
    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"

class SubmissionStatus(models.TextChoices):
    """Grading state of a submission."""
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"

class UnlockRequestStatus(models.TextChoices):
    """Review state of a deadline unlock request. Approved and rejected are terminal."""
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"

class GatingState(models.TextChoices):
    """Computed submission eligibility of a (task, student) pair."""
    LOCKED_SEQUENCE = "locked_sequence", "Locked: complete previous tasks"
    LOCKED_DEADLINE = "locked_deadline", "Locked: deadline passed"
    UNLOCKED = "unlocked", "Unlocked"
    SUBMITTED = "submitted", "Submitted"
