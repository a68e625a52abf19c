import pytest
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.domain.services import quick_task_service
from LmsApp.tests.helpers import login

pytestmark = pytest.mark.django_db


def test_quick_tasks_visible_to_assigned_students_only(staff, student_factory):
    alice, bob = student_factory(), student_factory()
    qt = quick_task_service.create_quick_task(staff, "Read chapter 3", "Before Friday", student_ids=[alice.pk])
    assert list(quick_task_service.list_quick_tasks(alice)) == [qt]
    assert list(quick_task_service.list_quick_tasks(bob)) == []
    assert list(quick_task_service.list_quick_tasks(staff)) == [qt]


def test_assign_ignores_duplicates_and_rejects_non_students(staff, other_staff, student_factory):
    alice, bob = student_factory(), student_factory()
    qt = quick_task_service.create_quick_task(staff, "Quiz")
    assert quick_task_service.assign_students(staff, qt, [alice.pk, bob.pk]) == 2
    assert quick_task_service.assign_students(staff, qt, [alice.pk, alice.pk]) == 0
    assert qt.students.count() == 2
    with pytest.raises(ValidationError):
        quick_task_service.assign_students(staff, qt, [other_staff.pk])
    assert quick_task_service.unassign_students(staff, qt, [bob.pk]) == 1
    assert list(qt.students.all()) == [alice]


def test_students_cannot_manage_quick_tasks(staff, student):
    with pytest.raises(PermissionDenied):
        quick_task_service.create_quick_task(student, "Self-assigned")
    qt = quick_task_service.create_quick_task(staff, "Quiz", student_ids=[student.pk])
    with pytest.raises(PermissionDenied):
        quick_task_service.delete_quick_task(student, qt)


def test_quick_task_routes_are_not_task_ids(staff, student):
    staff_client = login(staff)
    resp = staff_client.post("/api/v1/tasks/quick/", {"title": "Poll", "student_ids": [student.pk]}, format="json")
    assert resp.status_code == 201
    assert resp.data["students"] == [student.pk]

    listing = login(student).get("/api/v1/tasks/quick/")
    assert listing.status_code == 200
    assert [q["title"] for q in listing.data] == ["Poll"]

    assert staff_client.delete(f"/api/v1/tasks/quick/{resp.data['id']}/").status_code == 204


def test_assignment_email_escapes_title(staff, student, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        quick_task_service.create_quick_task(staff, "<b>Quiz</b>", "<img src=x>", student_ids=[student.pk])
    html = mailoutbox[0].alternatives[0][0]
    assert "&lt;b&gt;Quiz&lt;/b&gt;" in html
    assert "<img" not in html
