import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.exceptions import PermissionDenied, ValidationError

from LmsApp.audit.models import AuditLogEntry
from LmsApp.core.choices import SubmissionStatus
from LmsApp.core.exceptions import Conflict
from LmsApp.domain.services import course_service, learning_service, storage
from LmsApp.learning.models import Submission

pytestmark = pytest.mark.django_db


@pytest.fixture
def task(course, staff):
    return learning_service.create_task(staff, course, "Warm-up", "Say hello")


def test_create_task_defaults_and_permissions(course, staff, other_staff, admin):
    task = learning_service.create_task(staff, course, "T1")
    assert task.max_points == 100
    assert task.creator == staff
    with pytest.raises(PermissionDenied):
        learning_service.create_task(other_staff, course, "Nope")
    course_service.assign_staff(admin, course, other_staff)
    with pytest.raises(PermissionDenied):
        learning_service.create_task(other_staff, course, "Still nope")
    with pytest.raises(ValidationError):
        learning_service.create_task(staff, course, "Zero", max_points=0)


def test_update_and_delete_task(task, staff, superadmin):
    updated = learning_service.update_task(staff, task, {"title": "Renamed", "max_points": 50})
    assert (updated.title, updated.max_points) == ("Renamed", 50)
    task_id = task.pk
    learning_service.delete_task(superadmin, task)
    assert AuditLogEntry.objects.filter(action="task_deleted", resource_id=str(task_id)).exists()


def test_points_decay_by_submission_order(course, staff, task, student_factory):
    awarded = []
    for _ in range(12):
        student = student_factory()
        course_service.join_by_code(student, course.code)
        awarded.append(learning_service.submit(student, task, text_response="hi").points_awarded)
    assert awarded == [100, 90, 80, 70, 60, 50, 40, 30, 20, 10, 10, 10]


def test_points_use_task_max_points(course, staff, student_factory):
    task = learning_service.create_task(staff, course, "Big", max_points=55)
    points = []
    for _ in range(3):
        student = student_factory()
        course_service.join_by_code(student, course.code)
        points.append(learning_service.submit(student, task, text_response="x").points_awarded)
    assert points == [55, 49, 44]


def test_submit_once(task, enrolled):
    submission = learning_service.submit(enrolled, task, text_response="v1")
    assert submission.status == SubmissionStatus.PENDING
    with pytest.raises(Conflict):
        learning_service.submit(enrolled, task, text_response="v2")
    assert Submission.objects.filter(task=task, student=enrolled).count() == 1
    assert AuditLogEntry.objects.filter(action="submission_created", resource_id=str(submission.pk)).exists()


def test_submit_requires_enrolled_student(task, student, other_staff):
    with pytest.raises(PermissionDenied):
        learning_service.submit(student, task, text_response="not enrolled")
    with pytest.raises(PermissionDenied):
        learning_service.submit(other_staff, task, text_response="wrong role")


def test_submit_stores_files(task, enrolled):
    files = [
        SimpleUploadedFile("answer.txt", b"42", content_type="text/plain"),
        SimpleUploadedFile("../../etc/notes.md", b"# notes", content_type="text/markdown"),
    ]
    submission = learning_service.submit(enrolled, task, files=files)
    assert len(submission.file_urls) == 2
    prefix = f"submissions/{task.pk}/{enrolled.pk}/"
    assert all(prefix in url for url in submission.file_urls)
    assert submission.file_urls[1].endswith("_notes.md")


def test_failed_upload_is_skipped(task, enrolled, monkeypatch):
    real_save = storage.default_storage.save

    def flaky_save(name, content, *args, **kwargs):
        if name.endswith("bad.txt"):
            raise OSError("disk full")
        return real_save(name, content, *args, **kwargs)

    monkeypatch.setattr(storage.default_storage, "save", flaky_save)
    files = [
        SimpleUploadedFile("bad.txt", b"x"),
        SimpleUploadedFile("good.txt", b"y"),
    ]
    submission = learning_service.submit(enrolled, task, files=files)
    assert len(submission.file_urls) == 1
    assert submission.file_urls[0].endswith("_good.txt")


def test_grade_overwrites(task, staff, enrolled, other_staff):
    submission = learning_service.submit(enrolled, task, text_response="v1")
    graded = learning_service.grade_submission(staff, submission, SubmissionStatus.REJECTED, feedback="Try harder")
    assert graded.status == SubmissionStatus.REJECTED
    assert graded.graded_by == staff
    assert graded.graded_at is not None
    assert graded.points_awarded == 100

    regraded = learning_service.grade_submission(staff, submission, SubmissionStatus.ACCEPTED, points=75)
    assert regraded.status == SubmissionStatus.ACCEPTED
    assert regraded.points_awarded == 75
    assert regraded.feedback == "Try harder"

    with pytest.raises(PermissionDenied):
        learning_service.grade_submission(other_staff, submission)
    with pytest.raises(ValidationError):
        learning_service.grade_submission(staff, submission, SubmissionStatus.PENDING)
    with pytest.raises(ValidationError):
        learning_service.grade_submission(staff, submission, points=-1)


def test_grading_emails_student(task, staff, enrolled, mailoutbox, django_capture_on_commit_callbacks):
    submission = learning_service.submit(enrolled, task, text_response="v1")
    with django_capture_on_commit_callbacks(execute=True):
        learning_service.grade_submission(staff, submission, feedback="Nice")
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == [enrolled.email]
    assert "accepted" in mailoutbox[0].subject


def test_task_creation_emails_enrolled_students(course, staff, enrolled, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        learning_service.create_task(staff, course, "Homework 2")
    assert [m.to for m in mailoutbox] == [[enrolled.email]]


def test_list_task_submissions_scoping(course, task, staff, admin, other_staff, student_factory):
    first, second = student_factory(), student_factory()
    for s in (first, second):
        course_service.join_by_code(s, course.code)
        learning_service.submit(s, task, text_response="x")
    assert learning_service.list_task_submissions(staff, task).count() == 2
    assert learning_service.list_task_submissions(admin, task).count() == 2
    assert [s.student for s in learning_service.list_task_submissions(first, task)] == [first]
    with pytest.raises(PermissionDenied):
        learning_service.list_task_submissions(other_staff, task)


def test_grading_email_escapes_user_text(task, staff, enrolled, mailoutbox, django_capture_on_commit_callbacks):
    submission = learning_service.submit(enrolled, task, text_response="v1")
    with django_capture_on_commit_callbacks(execute=True):
        learning_service.grade_submission(staff, submission, feedback="<script>alert(1)</script>")
    html = mailoutbox[0].alternatives[0][0]
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html


def test_losing_duplicate_submission_removes_its_files(task, enrolled, monkeypatch):
    learning_service.submit(enrolled, task, files=[SimpleUploadedFile("first.txt", b"1")])
    # both requests passed the gating check before either row was written
    monkeypatch.setattr(learning_service.gating_service, "ensure_unlocked", lambda student, task: None)
    with pytest.raises(Conflict):
        learning_service.submit(enrolled, task, files=[SimpleUploadedFile("second.txt", b"2")])
    _, stored = storage.default_storage.listdir(f"submissions/{task.pk}/{enrolled.pk}")
    assert len(stored) == 1
    assert stored[0].endswith("_first.txt")
