import pytest
from rest_framework.exceptions import PermissionDenied
from rest_framework.test import APIClient

from LmsApp.audit.models import LoginHistory
from LmsApp.core.choices import Role
from LmsApp.core.exceptions import Conflict
from LmsApp.domain.services import account_service
from LmsApp.tests.helpers import PASSWORD

pytestmark = pytest.mark.django_db


def token_response(email, password=PASSWORD):
    return APIClient().post("/api/v1/auth/token/", {"email": email, "password": password}, format="json")


def test_student_signup_and_login():
    client = APIClient()
    resp = client.post("/api/v1/auth/signup/student/", {
        "email": "New@Example.com",
        "password": PASSWORD,
        "display_name": "Newbie",
        "student_id": "S-1",
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["role"] == "student"
    assert resp.data["email"] == "new@example.com"

    login = token_response("new@example.com")
    assert login.status_code == 200
    assert "access" in login.data and "refresh" in login.data
    assert LoginHistory.objects.filter(user__email="new@example.com").count() == 1


def test_duplicate_signup_conflicts(student):
    with pytest.raises(Conflict):
        account_service.register_student(student.email, PASSWORD, "Again")


def test_pending_staff_cannot_obtain_token(superadmin, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        pending = account_service.register_staff("teach@example.com", PASSWORD, "Teacher", staff_id="T-9")
    assert pending.role == Role.PENDING_STAFF
    assert pending.is_active is False
    assert [m.to for m in mailoutbox] == [[superadmin.email]]

    resp = token_response("teach@example.com")
    assert resp.status_code == 401
    assert "error" in resp.data

    account_service.approve_staff(superadmin, pending)
    pending.refresh_from_db()
    assert pending.role == Role.STAFF
    assert token_response("teach@example.com").status_code == 200


def test_decline_staff(superadmin, admin):
    pending = account_service.register_staff("nope@example.com", PASSWORD, "Nope")
    with pytest.raises(PermissionDenied):
        account_service.decline_staff(admin, pending, "no")
    declined = account_service.decline_staff(superadmin, pending, "Unknown applicant")
    assert declined.role == Role.DECLINED
    assert token_response("nope@example.com").status_code == 401
    with pytest.raises(Conflict):
        account_service.approve_staff(superadmin, declined)


def test_admin_signup_requires_configured_key(settings):
    settings.LMS = {**settings.LMS, "ADMIN_MASTER_KEY": ""}
    with pytest.raises(PermissionDenied):
        account_service.register_admin("a@example.com", PASSWORD, "A", "anything")

    settings.LMS = {**settings.LMS, "ADMIN_MASTER_KEY": "s3cret"}
    with pytest.raises(PermissionDenied):
        account_service.register_admin("a@example.com", PASSWORD, "A", "wrong")
    admin = account_service.register_admin("a@example.com", PASSWORD, "A", "s3cret")
    assert admin.role == Role.ADMIN


def test_superadmin_signup_via_api(settings):
    settings.LMS = {**settings.LMS, "SUPERADMIN_KEY": "root-key"}
    payload = {"email": "boss@example.com", "password": PASSWORD, "display_name": "Boss", "access_key": "bad"}
    resp = APIClient().post("/api/v1/auth/signup/superadmin/", payload, format="json")
    assert resp.status_code == 403
    assert resp.data == {"error": "Invalid SuperAdmin key"}
    payload["access_key"] = "root-key"
    resp = APIClient().post("/api/v1/auth/signup/superadmin/", payload, format="json")
    assert resp.status_code == 201
    assert resp.data["role"] == "superadmin"


def test_update_profile(student, staff):
    updated = account_service.update_profile(student, display_name="Renamed", department="CS")
    assert (updated.display_name, updated.department) == ("Renamed", "CS")
    with pytest.raises(Conflict):
        account_service.update_profile(student, email=staff.email)


def test_directories(admin, staff, student):
    assert list(account_service.list_staff(admin)) == [staff]
    assert list(account_service.list_students(staff)) == [student]
    with pytest.raises(PermissionDenied):
        account_service.list_staff(staff)
    with pytest.raises(PermissionDenied):
        account_service.list_students(student)


def test_changed_email_frees_the_old_address():
    user = account_service.register_student("old@example.com", PASSWORD, "Mover")
    account_service.update_profile(user, email="New@Example.com")
    user.refresh_from_db()
    assert (user.email, user.username) == ("new@example.com", "new@example.com")
    again = account_service.register_student("old@example.com", PASSWORD, "Newcomer")
    assert again.pk != user.pk
    assert token_response("new@example.com").status_code == 200


def test_failed_email_change_keeps_current_address(student, staff):
    original = (student.email, student.username)
    with pytest.raises(Conflict):
        account_service.update_profile(student, email=staff.email)
    assert (student.email, student.username) == original
