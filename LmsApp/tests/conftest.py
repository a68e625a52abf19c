import pytest
from django.core.cache import cache

from LmsApp.tests.helpers import make_user


@pytest.fixture(autouse=True)
def lms_test_settings(settings, tmp_path):
    """Inline notifications, throwaway media root and fresh throttle counters for every test."""
    settings.LMS = {**settings.LMS, "NOTIFICATIONS_INLINE": True}
    settings.MEDIA_ROOT = str(tmp_path / "media")
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def superadmin():
    return make_user("superadmin", email="root@example.com")


@pytest.fixture
def admin():
    return make_user("admin", email="admin@example.com")


@pytest.fixture
def staff():
    return make_user("staff", email="staff@example.com", display_name="Staff One")


@pytest.fixture
def other_staff():
    return make_user("staff", email="staff2@example.com", display_name="Staff Two")


@pytest.fixture
def student():
    return make_user("student", email="student@example.com", display_name="Stu Dent")


@pytest.fixture
def student_factory():
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        kwargs.setdefault("email", f"student{counter['n']}@example.com")
        return make_user("student", **kwargs)
    return _make


@pytest.fixture
def course(staff):
    from LmsApp.domain.services import course_service
    return course_service.create_course(staff, "Algorithms", "Graphs and trees", code="ALGO101")


@pytest.fixture
def enrolled(course, student):
    from LmsApp.domain.services import course_service
    course_service.join_by_code(student, course.code)
    return student
