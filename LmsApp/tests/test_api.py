from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from rest_framework.test import APIClient

from LmsApp.domain.services import learning_service
from LmsApp.tests.helpers import login

pytestmark = pytest.mark.django_db


def test_unauthenticated_requests_get_401():
    resp = APIClient().get("/api/v1/courses/")
    assert resp.status_code == 401
    assert set(resp.data) == {"error"}


def test_health_is_public():
    resp = APIClient().get("/api/v1/health/")
    assert resp.status_code == 200
    assert resp.data == {"status": "ok"}


def test_course_lifecycle_over_http(staff, student):
    staff_client = login(staff)
    created = staff_client.post("/api/v1/courses/", {"title": "Networks", "code": "net42"}, format="json")
    assert created.status_code == 201
    assert created.data["code"] == "NET42"
    course_id = created.data["id"]

    dup = staff_client.post("/api/v1/courses/", {"title": "Again", "code": "NET42"}, format="json")
    assert dup.status_code == 400
    assert dup.data == {"error": "Course code already in use"}

    student_client = login(student)
    assert student_client.get(f"/api/v1/courses/{course_id}/").status_code == 403
    joined = student_client.post("/api/v1/courses/join/", {"code": "Net42"}, format="json")
    assert joined.status_code == 201
    again = student_client.post("/api/v1/courses/join/", {"code": "NET42"}, format="json")
    assert again.status_code == 400
    assert again.data == {"error": "Already enrolled"}
    missing = student_client.post("/api/v1/courses/join/", {"code": "ZZZZ99"}, format="json")
    assert missing.status_code == 404
    assert missing.data == {"error": "Course not found"}

    assert [c["id"] for c in student_client.get("/api/v1/courses/").data] == [course_id]
    assert student_client.patch(f"/api/v1/courses/{course_id}/", {"title": "Mine"}, format="json").status_code == 403

    roster = staff_client.get(f"/api/v1/courses/{course_id}/enrollments/")
    assert [e["student"]["id"] for e in roster.data] == [student.pk]


def test_validation_errors_carry_fields(staff, course):
    resp = login(staff).post(f"/api/v1/courses/{course.pk}/tasks/", {"max_points": 0}, format="json")
    assert resp.status_code == 400
    assert "title" in resp.data["fields"]
    assert "max_points" in resp.data["fields"]
    assert resp.data["error"]


def test_unknown_course_is_404(staff):
    resp = login(staff).get("/api/v1/courses/999999/")
    assert resp.status_code == 404
    assert set(resp.data) == {"error"}


def test_submit_grade_and_leaderboard_over_http(staff, course, enrolled):
    staff_client = login(staff)
    task = staff_client.post(f"/api/v1/courses/{course.pk}/tasks/", {"title": "T1", "max_points": 100}, format="json")
    assert task.status_code == 201
    task_id = task.data["id"]

    student_client = login(enrolled)
    submitted = student_client.post(
        f"/api/v1/tasks/{task_id}/submissions/",
        {"text_response": "my answer", "files": [SimpleUploadedFile("a.txt", b"hello")]},
        format="multipart",
    )
    assert submitted.status_code == 201
    assert submitted.data["points_awarded"] == 100
    assert submitted.data["status"] == "pending"
    assert len(submitted.data["file_urls"]) == 1

    again = student_client.post(f"/api/v1/tasks/{task_id}/submissions/", {"text_response": "v2"}, format="multipart")
    assert again.status_code == 400
    assert again.data == {"error": "Already submitted"}

    sub_id = submitted.data["id"]
    assert student_client.put(f"/api/v1/submissions/{sub_id}/grade/", {"status": "accepted"}, format="json").status_code == 403
    graded = staff_client.put(
        f"/api/v1/submissions/{sub_id}/grade/",
        {"status": "accepted", "points": 95, "feedback": "Well done"},
        format="json",
    )
    assert graded.status_code == 200
    assert graded.data["points_awarded"] == 95

    board = student_client.get(f"/api/v1/leaderboard/?courseId={course.pk}")
    assert board.status_code == 200
    assert board.data[0]["student_id"] == enrolled.pk
    assert board.data[0]["total_points"] == 95
    assert board.data[0]["rank"] == 1


def test_too_many_files_rejected(staff, course, enrolled):
    task = learning_service.create_task(staff, course, "T1")
    files = [SimpleUploadedFile(f"f{i}.txt", b"x") for i in range(6)]
    resp = login(enrolled).post(f"/api/v1/tasks/{task.pk}/submissions/", {"files": files}, format="multipart")
    assert resp.status_code == 400
    assert "files" in resp.data["fields"]


def test_unlock_flow_over_http(staff, other_staff, course, enrolled):
    task = learning_service.create_task(staff, course, "Late", deadline=timezone.now() - timedelta(hours=1))
    student_client = login(enrolled)

    status_resp = student_client.get(f"/api/v1/tasks/{task.pk}/unlock-status/")
    assert status_resp.data["state"] == "locked_deadline"
    assert status_resp.data["unlocked"] is False

    locked = student_client.post(f"/api/v1/tasks/{task.pk}/submissions/", {"text_response": "late"}, format="multipart")
    assert locked.status_code == 400
    assert "Deadline" in locked.data["error"]

    requested = student_client.post(f"/api/v1/tasks/{task.pk}/unlock-request/", {"reason": "Flu"}, format="json")
    assert requested.status_code == 201
    request_id = requested.data["id"]

    assert login(other_staff).get("/api/v1/tasks/unlock-requests/").data == []
    denied = login(other_staff).put(f"/api/v1/tasks/unlock-requests/{request_id}/", {"status": "approved"}, format="json")
    assert denied.status_code == 404
    assert set(denied.data) == {"error"}

    staff_client = login(staff)
    pending = staff_client.get("/api/v1/tasks/unlock-requests/?status=pending")
    assert [r["id"] for r in pending.data] == [request_id]
    approved = staff_client.put(f"/api/v1/tasks/unlock-requests/{request_id}/", {"status": "approved"}, format="json")
    assert approved.status_code == 200
    assert approved.data["status"] == "approved"

    assert student_client.get(f"/api/v1/tasks/{task.pk}/unlock-status/").data["state"] == "unlocked"
    ok = student_client.post(f"/api/v1/tasks/{task.pk}/submissions/", {"text_response": "late"}, format="multipart")
    assert ok.status_code == 201


def test_audit_log_endpoints(admin, superadmin, staff, course):
    logs = login(admin).get("/api/v1/audit-logs/?limit=10")
    assert logs.status_code == 200
    assert logs.data[0]["action"] == "course_created"
    assert login(staff).get("/api/v1/audit-logs/").status_code == 403
    assert login(admin).delete("/api/v1/audit-logs/purge/").status_code == 403
    purged = login(superadmin).delete("/api/v1/audit-logs/purge/")
    assert purged.status_code == 200
    assert purged.data["deleted"] >= 1


def test_staff_review_endpoints(superadmin):
    signup = APIClient().post("/api/v1/auth/signup/staff/", {
        "email": "newstaff@example.com", "password": "pass1234", "display_name": "New", "staff_id": "X1",
    }, format="json")
    assert signup.status_code == 201
    client = login(superadmin)
    pending = client.get("/api/v1/admin/staffs/pending/")
    assert [u["email"] for u in pending.data] == ["newstaff@example.com"]
    approved = client.post(f"/api/v1/admin/staffs/{signup.data['id']}/approve/")
    assert approved.status_code == 200
    assert approved.data["role"] == "staff"
    again = client.post(f"/api/v1/admin/staffs/{signup.data['id']}/approve/")
    assert again.status_code == 400
    assert [u["email"] for u in client.get("/api/v1/admin/staffs/").data] == ["newstaff@example.com"]


def test_profile_roundtrip(student):
    client = login(student)
    assert client.get("/api/v1/profile/").data["email"] == student.email
    resp = client.put("/api/v1/profile/", {"display_name": "Renamed"}, format="json")
    assert resp.status_code == 200
    assert resp.data["name"] == "Renamed"


def test_unrelated_staff_sees_nothing_of_course(other_staff, course, enrolled):
    client = login(other_staff)
    assert client.get("/api/v1/courses/").data == []
    assert client.get(f"/api/v1/courses/{course.pk}/").status_code == 403
    assert client.get(f"/api/v1/courses/{course.pk}/enrollments/").status_code == 403
    assert client.get(f"/api/v1/courses/{course.pk}/tasks/").status_code == 403
    assert client.post(f"/api/v1/courses/{course.pk}/students/{enrolled.pk}/").status_code == 403
