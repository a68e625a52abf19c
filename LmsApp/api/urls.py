from django.urls import path, include
from rest_framework_nested import routers
from rest_framework_simplejwt.views import TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from LmsApp.api.views import (
    AdminSignupView,
    AdminViewSet,
    AuditLogViewSet,
    CourseTaskViewSet,
    CourseViewSet,
    HealthView,
    LeaderboardView,
    LoginView,
    ProfileView,
    QuickTaskViewSet,
    StaffSignupView,
    StudentSignupView,
    SubmissionViewSet,
    SuperAdminSignupView,
    TaskSubmissionViewSet,
    TaskViewSet,
)

router = routers.SimpleRouter()
router.register(r"courses", CourseViewSet, basename="course")
# Registered before "tasks" so "quick" is never read as a task id.
router.register(r"tasks/quick", QuickTaskViewSet, basename="quick-task")
router.register(r"tasks", TaskViewSet, basename="task")
router.register(r"submissions", SubmissionViewSet, basename="submission")
router.register(r"audit-logs", AuditLogViewSet, basename="audit-log")
router.register(r"admin", AdminViewSet, basename="admin")

courses_router = routers.NestedSimpleRouter(router, r"courses", lookup="course")
courses_router.register(r"tasks", CourseTaskViewSet, basename="course-tasks")

tasks_router = routers.NestedSimpleRouter(router, r"tasks", lookup="task")
tasks_router.register(r"submissions", TaskSubmissionViewSet, basename="task-submissions")

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("auth/token/", LoginView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/signup/student/", StudentSignupView.as_view(), name="signup-student"),
    path("auth/signup/staff/", StaffSignupView.as_view(), name="signup-staff"),
    path("auth/signup/admin/", AdminSignupView.as_view(), name="signup-admin"),
    path("auth/signup/superadmin/", SuperAdminSignupView.as_view(), name="signup-superadmin"),
    path("profile/", ProfileView.as_view(), name="profile"),
    path("leaderboard/", LeaderboardView.as_view(), name="leaderboard"),
    path("health/", HealthView.as_view(), name="health"),
    path("", include(router.urls)),
    path("", include(courses_router.urls)),
    path("", include(tasks_router.urls)),
]
