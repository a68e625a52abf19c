"""REST API views for accounts, courses, enrollment, tasks, submissions, unlocks, leaderboard, quick tasks and audit."""

from django.contrib.auth import get_user_model
from django.db import connection
from django.shortcuts import get_object_or_404

from rest_framework import status, mixins, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from LmsApp.api.mixins import PaginationMixin
from LmsApp.api.throttles import CourseJoinThrottle, SubmissionRateThrottle
from LmsApp.core.access import can_access_course
from LmsApp.core.permissions import (
    CanAccessCourse,
    CanModifyCourse,
    HasCapability,
    IsSubmissionParticipant,
)
from LmsApp.core.roles import Capability
from LmsApp.courses.models import Course, Enrollment
from LmsApp.domain.services import (
    account_service,
    audit_service,
    course_service,
    gating_service,
    leaderboard_service,
    learning_service,
    quick_task_service,
)
from LmsApp.learning.models import QuickTask, Submission, Task, TaskUnlockRequest
from LmsApp.api.serializers import (
    AuditLogEntrySerializer,
    AuditLogQuerySerializer,
    AuditPurgeSerializer,
    CourseReadSerializer,
    CourseWriteSerializer,
    EnrollmentSerializer,
    GradeSerializer,
    GrantUnlockSerializer,
    JoinCourseSerializer,
    KeyedSignupSerializer,
    LeaderboardEntrySerializer,
    LeaderboardQuerySerializer,
    LmsTokenObtainPairSerializer,
    LoginHistorySerializer,
    ProfileUpdateSerializer,
    QuickTaskReadSerializer,
    QuickTaskWriteSerializer,
    RosterQuerySerializer,
    StaffAssignmentSerializer,
    StaffDeclineSerializer,
    StaffSignupSerializer,
    StudentIdsSerializer,
    StudentSignupSerializer,
    SubmissionReadSerializer,
    SubmissionWriteSerializer,
    TaskReadSerializer,
    TaskUnlockSerializer,
    TaskWriteSerializer,
    UnlockRequestQuerySerializer,
    UnlockRequestReadSerializer,
    UnlockRequestReviewSerializer,
    UnlockRequestWriteSerializer,
    UnlockStatusSerializer,
    UserSerializer,
    max_files_help,
)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation error, conflict or locked task."),
}

User = get_user_model()


def _client_ip(request: Request) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


# ---------- Auth ----------
@extend_schema(tags=["Auth"], description="Obtain a JWT pair with email and password. Records login history.")
class LoginView(TokenObtainPairView):
    """Token endpoint; pending and declined staff are inactive and get 401."""
    serializer_class = LmsTokenObtainPairSerializer

    def post(self, request: Request, *args, **kwargs) -> Response:
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])
        audit_service.record_login(serializer.user, _client_ip(request), request.META.get("HTTP_USER_AGENT", ""))
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


@extend_schema(
    tags=["Auth"],
    request=StudentSignupSerializer,
    responses={201: UserSerializer, **VALIDATION_RESPONSE},
    description="Register a student account (active immediately).",
)
class StudentSignupView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = StudentSignupSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.register_student(**ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["Auth"],
    request=StaffSignupSerializer,
    responses={201: UserSerializer, **VALIDATION_RESPONSE},
    description="Register a staff account. It stays inactive until a superadmin approves it.",
)
class StaffSignupView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = StaffSignupSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.register_staff(**ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["Auth"],
    request=KeyedSignupSerializer,
    responses={201: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    description="Register an admin account. Requires the configured admin master key.",
)
class AdminSignupView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = KeyedSignupSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.register_admin(**ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["Auth"],
    request=KeyedSignupSerializer,
    responses={201: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    description="Register a superadmin account. Requires the configured superadmin key.",
)
class SuperAdminSignupView(APIView):
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = KeyedSignupSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.register_superadmin(**ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(tags=["Profile"], responses={200: UserSerializer, **AUTH_RESPONSES}),
    put=extend_schema(
        tags=["Profile"],
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
)
class ProfileView(APIView):
    """The caller's own profile."""

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)

    def put(self, request: Request) -> Response:
        ser = ProfileUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.update_profile(request.user, **ser.validated_data)
        return Response(UserSerializer(user).data)


# ---------- Courses ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Courses"],
        description="Admins see every course, staff the courses they created or are assigned to, students their active enrollments.",
        responses={200: CourseReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Courses"], responses={200: CourseReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={201: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["staff", "admin", "superadmin"], "ownership": "creator-on-create"}},
    ),
    update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator", "superadmin"]}},
    ),
    partial_update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator", "superadmin"]}},
    ),
    destroy=extend_schema(
        tags=["Courses"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["creator", "superadmin"]}},
    ),
    join=extend_schema(
        tags=["Enrollment"],
        request=JoinCourseSerializer,
        responses={
            201: EnrollmentSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    request_enrollment=extend_schema(
        tags=["Enrollment"],
        request=None,
        responses={201: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    enrollments=extend_schema(
        tags=["Enrollment"],
        parameters=[OpenApiParameter("status", str, OpenApiParameter.QUERY, enum=["pending", "active"])],
        responses={200: EnrollmentSerializer(many=True), **AUTH_RESPONSES},
    ),
    approve_enrollment=extend_schema(
        tags=["Enrollment"],
        request=None,
        parameters=[OpenApiParameter("enrollment_id", int, OpenApiParameter.PATH)],
        responses={200: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    reject_enrollment=extend_schema(
        tags=["Enrollment"],
        request=None,
        parameters=[OpenApiParameter("enrollment_id", int, OpenApiParameter.PATH)],
        responses={204: OpenApiResponse(description="Rejected"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    student=extend_schema(
        tags=["Enrollment"],
        request=None,
        parameters=[OpenApiParameter("student_id", int, OpenApiParameter.PATH)],
        responses={201: EnrollmentSerializer, 204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    staff=extend_schema(
        tags=["Staff assignment"],
        request=None,
        parameters=[OpenApiParameter("staff_id", int, OpenApiParameter.PATH)],
        responses={201: StaffAssignmentSerializer, 204: OpenApiResponse(description="Unassigned"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "superadmin"]}},
    ),
)
class CourseViewSet(PaginationMixin, viewsets.ModelViewSet):
    """CRUD, join codes, roster and staff assignment for courses."""
    queryset = Course.objects.all().select_related("creator")
    permission_classes = [IsAuthenticated, CanModifyCourse]
    lookup_value_regex = r"\d+"

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            return CourseReadSerializer
        if self.action == "join":
            return JoinCourseSerializer
        return CourseWriteSerializer

    def get_throttles(self):
        """Join codes are guessable; rate limit attempts."""
        if self.action == "join":
            return [CourseJoinThrottle()]
        return super().get_throttles()

    def list(self, request: Request, *args, **kwargs) -> Response:
        """List courses visible to the requesting user."""
        return self.paginate_and_respond(course_service.list_visible_courses(request.user), CourseReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a course owned by the caller and return read representation."""
        write_ser = self.get_serializer(data=request.data)
        write_ser.is_valid(raise_exception=True)
        course = course_service.create_course(
            request.user,
            title=write_ser.validated_data["title"],
            description=write_ser.validated_data.get("description", ""),
            code=write_ser.validated_data.get("code") or None,
        )
        return Response(CourseReadSerializer(course).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        """Update a course (creator or superadmin)."""
        course = self.get_object()
        partial = kwargs.pop("partial", False)
        ser = CourseWriteSerializer(course, data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        course = course_service.update_course(request.user, course, ser.validated_data)
        return Response(CourseReadSerializer(course).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        """Delete a course (creator or superadmin)."""
        course_service.delete_course(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="join")
    def join(self, request: Request) -> Response:
        """Join a course with its code."""
        ser = JoinCourseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        enrollment = course_service.join_by_code(request.user, ser.validated_data["code"])
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="request-enrollment", permission_classes=[IsAuthenticated])
    def request_enrollment(self, request: Request, pk: int | None = None) -> Response:
        """Ask to be enrolled; course staff approve or reject."""
        course = self.get_object()
        enrollment = course_service.request_enrollment(request.user, course)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="enrollments", permission_classes=[IsAuthenticated])
    def enrollments(self, request: Request, pk: int | None = None) -> Response:
        query = RosterQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        roster = course_service.list_roster(request.user, self.get_object(), query.validated_data.get("status"))
        return self.paginate_and_respond(roster, EnrollmentSerializer)

    @action(detail=True, methods=["post"], url_path=r"enrollments/(?P<enrollment_id>\d+)/approve",
            permission_classes=[IsAuthenticated])
    def approve_enrollment(self, request: Request, pk: int | None = None, enrollment_id: int | None = None) -> Response:
        course = self.get_object()
        enrollment = get_object_or_404(Enrollment, pk=int(enrollment_id), course=course)
        enrollment = course_service.approve_enrollment(request.user, enrollment)
        return Response(EnrollmentSerializer(enrollment).data)

    @action(detail=True, methods=["post"], url_path=r"enrollments/(?P<enrollment_id>\d+)/reject",
            permission_classes=[IsAuthenticated])
    def reject_enrollment(self, request: Request, pk: int | None = None, enrollment_id: int | None = None) -> Response:
        course = self.get_object()
        enrollment = get_object_or_404(Enrollment, pk=int(enrollment_id), course=course)
        course_service.reject_enrollment(request.user, enrollment)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post", "delete"], url_path=r"students/(?P<student_id>\d+)",
            permission_classes=[IsAuthenticated])
    def student(self, request: Request, pk: int | None = None, student_id: int | None = None) -> Response:
        """Add (POST) or remove (DELETE) a student."""
        course = self.get_object()
        student = get_object_or_404(User, pk=int(student_id))
        if request.method == "DELETE":
            course_service.remove_student(request.user, course, student)
            return Response(status=status.HTTP_204_NO_CONTENT)
        enrollment = course_service.add_student(request.user, course, student)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post", "delete"], url_path=r"staff/(?P<staff_id>\d+)",
            permission_classes=[IsAuthenticated])
    def staff(self, request: Request, pk: int | None = None, staff_id: int | None = None) -> Response:
        """Assign (POST) or unassign (DELETE) a staff member."""
        course = self.get_object()
        staff = get_object_or_404(User, pk=int(staff_id))
        if request.method == "DELETE":
            course_service.unassign_staff(request.user, course, staff)
            return Response(status=status.HTTP_204_NO_CONTENT)
        assignment = course_service.assign_staff(request.user, course, staff)
        return Response(StaffAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)


# ---------- Tasks ----------
@extend_schema_view(
    list=extend_schema(tags=["Tasks"], responses={200: TaskReadSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Tasks"],
        request=TaskWriteSerializer,
        responses={201: TaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator", "superadmin"]}},
    ),
)
@extend_schema(parameters=[OpenApiParameter("course_pk", int, OpenApiParameter.PATH)])
class CourseTaskViewSet(PaginationMixin, mixins.ListModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Tasks of one course in sequence order."""
    serializer_class = TaskWriteSerializer
    queryset = Task.objects.none()

    def _course(self) -> Course:
        return get_object_or_404(Course, pk=self.kwargs["course_pk"])

    def list(self, request: Request, *args, **kwargs) -> Response:
        tasks = learning_service.list_course_tasks(request.user, self._course())
        return self.paginate_and_respond(tasks, TaskReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = TaskWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        task = learning_service.create_task(request.user, self._course(), **ser.validated_data)
        return Response(TaskReadSerializer(task).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    retrieve=extend_schema(tags=["Tasks"], responses={200: TaskReadSerializer, **AUTH_RESPONSES}),
    update=extend_schema(
        tags=["Tasks"],
        request=TaskWriteSerializer,
        responses={200: TaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    partial_update=extend_schema(
        tags=["Tasks"],
        request=TaskWriteSerializer,
        responses={200: TaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    destroy=extend_schema(tags=["Tasks"], responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES}),
    unlock_status=extend_schema(tags=["Unlocks"], responses={200: UnlockStatusSerializer, **AUTH_RESPONSES}),
    unlock_request=extend_schema(
        tags=["Unlocks"],
        request=UnlockRequestWriteSerializer,
        responses={201: UnlockRequestReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    unlocks=extend_schema(
        tags=["Unlocks"],
        request=GrantUnlockSerializer,
        responses={201: TaskUnlockSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator"]}},
    ),
    unlock_requests=extend_schema(
        tags=["Unlocks"],
        parameters=[OpenApiParameter("status", str, OpenApiParameter.QUERY, enum=["pending", "approved", "rejected"])],
        responses={200: UnlockRequestReadSerializer(many=True), **AUTH_RESPONSES},
        description="Unlock requests on courses the caller created.",
    ),
    review_unlock_request=extend_schema(
        tags=["Unlocks"],
        request=UnlockRequestReviewSerializer,
        parameters=[OpenApiParameter("request_id", int, OpenApiParameter.PATH)],
        responses={200: UnlockRequestReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator"]}},
    ),
)
class TaskViewSet(
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Single-task operations and the deadline unlock workflow."""
    queryset = Task.objects.select_related("course", "course__creator")
    serializer_class = TaskWriteSerializer
    lookup_value_regex = r"\d+"

    def get_permissions(self) -> list:
        if self.action in ("retrieve", "update", "partial_update", "destroy"):
            return [IsAuthenticated(), CanModifyCourse()]
        if self.action == "unlock_status":
            return [IsAuthenticated(), CanAccessCourse()]
        return [IsAuthenticated()]

    def get_serializer_class(self):
        return TaskReadSerializer if self.action == "retrieve" else TaskWriteSerializer

    def update(self, request: Request, *args, **kwargs) -> Response:
        task = self.get_object()
        ser = TaskWriteSerializer(task, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        task = learning_service.update_task(request.user, task, ser.validated_data)
        return Response(TaskReadSerializer(task).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        learning_service.delete_task(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path="unlock-status")
    def unlock_status(self, request: Request, pk: int | None = None) -> Response:
        task = self.get_object()
        return Response(UnlockStatusSerializer(gating_service.unlock_status(request.user, task)).data)

    @action(detail=True, methods=["post"], url_path="unlock-request")
    def unlock_request(self, request: Request, pk: int | None = None) -> Response:
        ser = UnlockRequestWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        unlock_request = gating_service.request_unlock(request.user, self.get_object(), ser.validated_data["reason"])
        return Response(UnlockRequestReadSerializer(unlock_request).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="unlocks")
    def unlocks(self, request: Request, pk: int | None = None) -> Response:
        """Unlock the task for one student without a request."""
        ser = GrantUnlockSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        student = get_object_or_404(User, pk=ser.validated_data["student_id"])
        unlock = gating_service.grant_unlock(request.user, self.get_object(), student)
        return Response(TaskUnlockSerializer(unlock).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="unlock-requests")
    def unlock_requests(self, request: Request) -> Response:
        query = UnlockRequestQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        qs = gating_service.list_unlock_requests(request.user, query.validated_data.get("status"))
        return Response(UnlockRequestReadSerializer(qs, many=True).data)

    @action(detail=False, methods=["put"], url_path=r"unlock-requests/(?P<request_id>\d+)")
    def review_unlock_request(self, request: Request, request_id: int | None = None) -> Response:
        ser = UnlockRequestReviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        unlock_request = get_object_or_404(
            TaskUnlockRequest.objects.reviewable_by(request.user).select_related("task__course"),
            pk=int(request_id),
        )
        unlock_request = gating_service.review_unlock_request(request.user, unlock_request, ser.validated_data["status"])
        return Response(UnlockRequestReadSerializer(unlock_request).data)


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Submissions"],
        description="Course managers see every submission; students only their own.",
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    create=extend_schema(
        tags=["Submissions"],
        request={"multipart/form-data": SubmissionWriteSerializer},
        description=f"Submit once per task. {max_files_help()}",
        responses={
            201: SubmissionReadSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
)
@extend_schema(parameters=[OpenApiParameter("task_pk", int, OpenApiParameter.PATH)])
class TaskSubmissionViewSet(PaginationMixin, mixins.ListModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Submission creation and listing with throttling."""
    serializer_class = SubmissionWriteSerializer
    queryset = Submission.objects.none()
    throttle_classes: list[type] = []

    def get_throttles(self):
        """Apply rate throttle only on create."""
        if self.action == "create":
            self.throttle_classes = [SubmissionRateThrottle]
        return super().get_throttles()

    def _task(self) -> Task:
        return get_object_or_404(Task.objects.select_related("course"), pk=self.kwargs["task_pk"])

    def list(self, request: Request, *args, **kwargs) -> Response:
        submissions = learning_service.list_task_submissions(request.user, self._task())
        return self.paginate_and_respond(submissions, SubmissionReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = SubmissionWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = learning_service.submit(
            request.user,
            self._task(),
            text_response=ser.validated_data.get("text_response"),
            files=ser.validated_data.get("files", []),
        )
        return Response(SubmissionReadSerializer(submission).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
    grade=extend_schema(
        tags=["Grades"],
        request=GradeSerializer,
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["creator", "superadmin"]}},
    ),
)
class SubmissionViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Submission.objects.select_related("task__course", "student")
    serializer_class = SubmissionReadSerializer
    permission_classes = [IsAuthenticated, IsSubmissionParticipant]
    lookup_value_regex = r"\d+"

    @action(detail=True, methods=["put"], url_path="grade", permission_classes=[IsAuthenticated])
    def grade(self, request: Request, pk: int | None = None) -> Response:
        """Accept or reject a submission (course creator or superadmin)."""
        submission = self.get_object()
        ser = GradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = learning_service.grade_submission(
            request.user,
            submission,
            status=ser.validated_data["status"],
            points=ser.validated_data.get("points"),
            feedback=ser.validated_data.get("feedback"),
        )
        return Response(SubmissionReadSerializer(submission).data)


# ---------- Leaderboard ----------
@extend_schema(
    tags=["Leaderboard"],
    parameters=[OpenApiParameter("courseId", int, OpenApiParameter.QUERY, required=False)],
    responses={200: LeaderboardEntrySerializer(many=True), **AUTH_RESPONSES},
)
class LeaderboardView(APIView):
    """Ranked point totals, across all courses or for one course."""

    def get(self, request: Request) -> Response:
        query = LeaderboardQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        course_id = query.validated_data.get("courseId")
        if course_id is not None:
            course = Course.objects.filter(pk=course_id).first()
            if course is not None and not can_access_course(request.user, course):
                raise PermissionDenied("You do not have access to this course")
        entries = leaderboard_service.leaderboard(course_id)
        return Response(LeaderboardEntrySerializer(entries, many=True).data)


# ---------- Quick tasks ----------
@extend_schema_view(
    list=extend_schema(tags=["Quick tasks"], responses={200: QuickTaskReadSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Quick tasks"],
        request=QuickTaskWriteSerializer,
        responses={201: QuickTaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    destroy=extend_schema(tags=["Quick tasks"], responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES}),
    assign=extend_schema(
        tags=["Quick tasks"],
        request=StudentIdsSerializer,
        responses={200: QuickTaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    unassign=extend_schema(
        tags=["Quick tasks"],
        request=StudentIdsSerializer,
        responses={200: QuickTaskReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
)
class QuickTaskViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Quick tasks; students only ever see those assigned to them."""
    serializer_class = QuickTaskWriteSerializer
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return quick_task_service.list_quick_tasks(self.request.user)

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), QuickTaskReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = QuickTaskWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quick_task = quick_task_service.create_quick_task(request.user, **ser.validated_data)
        return Response(QuickTaskReadSerializer(quick_task).data, status=status.HTTP_201_CREATED)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        quick_task_service.delete_quick_task(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: int | None = None) -> Response:
        quick_task = self.get_object()
        ser = StudentIdsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quick_task_service.assign_students(request.user, quick_task, ser.validated_data["student_ids"])
        return Response(QuickTaskReadSerializer(QuickTask.objects.get(pk=quick_task.pk)).data)

    @action(detail=True, methods=["post"], url_path="unassign")
    def unassign(self, request: Request, pk: int | None = None) -> Response:
        quick_task = self.get_object()
        ser = StudentIdsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quick_task_service.unassign_students(request.user, quick_task, ser.validated_data["student_ids"])
        return Response(QuickTaskReadSerializer(QuickTask.objects.get(pk=quick_task.pk)).data)


# ---------- Administration ----------
@extend_schema_view(
    staffs=extend_schema(tags=["Administration"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}),
    pending_staffs=extend_schema(tags=["Administration"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}),
    approve_staff=extend_schema(
        tags=["Administration"],
        request=None,
        parameters=[OpenApiParameter("user_id", int, OpenApiParameter.PATH)],
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["superadmin"]}},
    ),
    decline_staff=extend_schema(
        tags=["Administration"],
        request=StaffDeclineSerializer,
        parameters=[OpenApiParameter("user_id", int, OpenApiParameter.PATH)],
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["superadmin"]}},
    ),
    students=extend_schema(tags=["Administration"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}),
    login_history=extend_schema(
        tags=["Administration"],
        responses={200: LoginHistorySerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["superadmin"]}},
    ),
    delete_login_entry=extend_schema(
        tags=["Administration"],
        parameters=[OpenApiParameter("entry_id", int, OpenApiParameter.PATH)],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["superadmin"]}},
    ),
)
class AdminViewSet(viewsets.ViewSet):
    """Staff review, user directories and login history."""

    @action(detail=False, methods=["get"], url_path="staffs")
    def staffs(self, request: Request) -> Response:
        return Response(UserSerializer(account_service.list_staff(request.user), many=True).data)

    @action(detail=False, methods=["get"], url_path="staffs/pending")
    def pending_staffs(self, request: Request) -> Response:
        return Response(UserSerializer(account_service.list_pending_staff(request.user), many=True).data)

    @action(detail=False, methods=["post"], url_path=r"staffs/(?P<user_id>\d+)/approve")
    def approve_staff(self, request: Request, user_id: int | None = None) -> Response:
        user = account_service.approve_staff(request.user, get_object_or_404(User, pk=int(user_id)))
        return Response(UserSerializer(user).data)

    @action(detail=False, methods=["post"], url_path=r"staffs/(?P<user_id>\d+)/decline")
    def decline_staff(self, request: Request, user_id: int | None = None) -> Response:
        ser = StaffDeclineSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = account_service.decline_staff(
            request.user, get_object_or_404(User, pk=int(user_id)), ser.validated_data["reason"]
        )
        return Response(UserSerializer(user).data)

    @action(detail=False, methods=["get"], url_path="students")
    def students(self, request: Request) -> Response:
        return Response(UserSerializer(account_service.list_students(request.user), many=True).data)

    @action(detail=False, methods=["get"], url_path="login-history")
    def login_history(self, request: Request) -> Response:
        return Response(LoginHistorySerializer(audit_service.list_login_history(request.user), many=True).data)

    @action(detail=False, methods=["delete"], url_path=r"login-history/(?P<entry_id>\d+)")
    def delete_login_entry(self, request: Request, entry_id: int | None = None) -> Response:
        audit_service.delete_login_entry(request.user, int(entry_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Audit ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Audit"],
        parameters=[OpenApiParameter("limit", int, OpenApiParameter.QUERY, required=False)],
        responses={200: AuditLogEntrySerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin", "superadmin"]}},
    ),
    purge=extend_schema(
        tags=["Audit"],
        parameters=[OpenApiParameter("before", str, OpenApiParameter.QUERY, required=False)],
        responses={200: OpenApiResponse(description="Number of deleted entries."), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["superadmin"]}},
    ),
)
class AuditLogViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, HasCapability.for_(Capability.VIEW_AUDIT_LOG)]

    def list(self, request: Request) -> Response:
        query = AuditLogQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        entries = audit_service.list_entries(request.user, query.validated_data["limit"])
        return Response(AuditLogEntrySerializer(entries, many=True).data)

    @action(detail=False, methods=["delete"], url_path="purge",
            permission_classes=[IsAuthenticated, HasCapability.for_(Capability.PURGE_AUDIT_LOG)])
    def purge(self, request: Request) -> Response:
        query = AuditPurgeSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        deleted = audit_service.purge_entries(request.user, query.validated_data.get("before"))
        return Response({"deleted": deleted})


# ---------- Health ----------
@extend_schema(tags=["Health"], responses={200: OpenApiResponse(description="Service and database are reachable.")})
class HealthView(APIView):
    permission_classes = [AllowAny]
    authentication_classes: list[type] = []

    def get(self, request: Request) -> Response:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        return Response({"status": "ok"})
