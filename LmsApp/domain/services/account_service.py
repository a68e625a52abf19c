"""Account registration, staff approval and profile maintenance.

Staff sign up as inactive ``pending_staff`` and wait for a superadmin;
approval turns them into active staff, decline marks them ``declined``.
Admin and superadmin sign-up require a configured access key.
"""

import logging
import secrets

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils.html import format_html
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.core.choices import Role
from LmsApp.core.config import lms_setting
from LmsApp.core.exceptions import Conflict
from LmsApp.core.roles import Capability, principal_can
from LmsApp.domain.services import audit_service, notifications
from LmsApp.users.models import User

logger = logging.getLogger(__name__)


def _create_user(
    email: str,
    password: str,
    display_name: str,
    role: Role,
    is_active: bool = True,
    **extra,
) -> User:
    email = User.objects.normalize_email(email or "").strip().lower()
    if not email or not password:
        raise ValidationError({"non_field_errors": ["Email and password are required"]})
    try:
        with transaction.atomic():
            user = User(
                email=email,
                username=email,
                display_name=display_name or "",
                role=role,
                is_active=is_active,
                **extra,
            )
            user.set_password(password)
            user.save()
    except IntegrityError:
        raise Conflict("A user with this email already exists")
    logger.info("Registered %s account %s", role, user.pk)
    audit_service.record(user, "user_registered", "user", user.pk, {"role": role})
    return user


def register_student(email: str, password: str, display_name: str, student_id: str = "") -> User:
    return _create_user(email, password, display_name, Role.STUDENT, student_id=student_id or "")


def register_staff(email: str, password: str, display_name: str, staff_id: str = "", department: str = "") -> User:
    """Create an inactive pending_staff account and tell every superadmin."""
    user = _create_user(
        email, password, display_name, Role.PENDING_STAFF,
        is_active=False, staff_id=staff_id or "", department=department or "",
    )
    superadmins = User.objects.filter(role=Role.SUPERADMIN, is_active=True).values_list("email", flat=True)
    notifications.notify(
        list(superadmins),
        "New staff registration awaiting approval",
        format_html("<p>{} ({}) registered as staff and awaits approval.</p>", user.name, user.email),
    )
    return user


def _check_key(configured: str, supplied: str | None, label: str) -> None:
    if not configured:
        raise PermissionDenied(f"{label} creation not allowed via API")
    if not supplied or not secrets.compare_digest(configured, supplied):
        raise PermissionDenied(f"Invalid {label} key")


def register_admin(email: str, password: str, display_name: str, access_key: str | None) -> User:
    _check_key(lms_setting("ADMIN_MASTER_KEY"), access_key, "Admin")
    return _create_user(email, password, display_name, Role.ADMIN, is_staff=True)


def register_superadmin(email: str, password: str, display_name: str, access_key: str | None) -> User:
    _check_key(lms_setting("SUPERADMIN_KEY"), access_key, "SuperAdmin")
    return _create_user(email, password, display_name, Role.SUPERADMIN, is_staff=True, is_superuser=True)


def _ensure_reviewer(actor: User) -> None:
    if not principal_can(actor, Capability.REVIEW_STAFF):
        raise PermissionDenied("SuperAdmin access required")


@transaction.atomic
def approve_staff(actor: User, user: User) -> User:
    _ensure_reviewer(actor)
    user = User.objects.select_for_update().get(pk=user.pk)
    if user.role != Role.PENDING_STAFF:
        raise Conflict("User is not awaiting staff approval")
    user.role = Role.STAFF
    user.is_active = True
    user.save(update_fields=["role", "is_active", "updated_at"])
    notifications.notify(
        [user.email],
        "Your staff account was approved",
        "<p>Your staff registration was approved. You can now sign in.</p>",
    )
    audit_service.record(actor, "staff_approved", "user", user.pk)
    return user


@transaction.atomic
def decline_staff(actor: User, user: User, reason: str = "") -> User:
    _ensure_reviewer(actor)
    user = User.objects.select_for_update().get(pk=user.pk)
    if user.role != Role.PENDING_STAFF:
        raise Conflict("User is not awaiting staff approval")
    user.role = Role.DECLINED
    user.is_active = False
    user.save(update_fields=["role", "is_active", "updated_at"])
    notifications.notify(
        [user.email],
        "Your staff registration was declined",
        "<p>Your staff registration was declined.</p>" + (format_html("<p>Reason: {}</p>", reason) if reason else ""),
    )
    audit_service.record(actor, "staff_declined", "user", user.pk, {"reason": reason or ""})
    return user


def update_profile(
    user: User,
    display_name: str | None = None,
    email: str | None = None,
    department: str | None = None,
) -> User:
    """Change the caller's own display name, email or department."""
    changed = []
    previous = {"email": user.email, "username": user.username}
    if display_name is not None:
        user.display_name = display_name
        changed.append("display_name")
    if department is not None:
        user.department = department
        changed.append("department")
    if email is not None:
        user.email = User.objects.normalize_email(email).strip().lower()
        user.username = user.email
        changed += ["email", "username"]
    if not changed:
        return user
    try:
        with transaction.atomic():
            user.save(update_fields=changed + ["updated_at"])
    except IntegrityError:
        user.email, user.username = previous["email"], previous["username"]
        raise Conflict("A user with this email already exists")
    audit_service.record(user, "profile_updated", "user", user.pk, {"fields": changed})
    return user


def list_pending_staff(actor: User) -> QuerySet[User]:
    _ensure_reviewer(actor)
    return User.objects.filter(role=Role.PENDING_STAFF).order_by("date_joined", "id")


def list_staff(actor: User) -> QuerySet[User]:
    if not principal_can(actor, Capability.LIST_STAFF):
        raise PermissionDenied("Admin access required")
    return User.objects.filter(role=Role.STAFF).order_by("display_name", "id")


def list_students(actor: User) -> QuerySet[User]:
    if not principal_can(actor, Capability.LIST_STUDENTS):
        raise PermissionDenied("Staff access required")
    return User.objects.filter(role=Role.STUDENT).order_by("display_name", "id")
