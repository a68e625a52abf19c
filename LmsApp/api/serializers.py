"""Serializers for accounts, courses, enrollments, tasks, submissions, unlocks, quick tasks and audit records."""

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from LmsApp.audit.models import AuditLogEntry, LoginHistory
from LmsApp.core.choices import EnrollmentStatus, SubmissionStatus, UnlockRequestStatus
from LmsApp.core.config import lms_setting
from LmsApp.core.validators import validate_file_count, validate_file_size, validate_join_code
from LmsApp.courses.models import Course, Enrollment, StaffAssignment
from LmsApp.learning.models import QuickTask, Submission, Task, TaskUnlock, TaskUnlockRequest

User = get_user_model()


# ---------- Accounts ----------
class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""
    name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "name", "display_name", "role", "department", "staff_id", "student_id"]


class StudentSignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, help_text="Password (write-only).")
    display_name = serializers.CharField(max_length=150)
    student_id = serializers.CharField(max_length=64)


class StaffSignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, help_text="Password (write-only).")
    display_name = serializers.CharField(max_length=150)
    staff_id = serializers.CharField(max_length=64)
    department = serializers.CharField(max_length=150, required=False, allow_blank=True)


class KeyedSignupSerializer(serializers.Serializer):
    """Admin / superadmin sign-up guarded by a configured access key."""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, help_text="Password (write-only).")
    display_name = serializers.CharField(max_length=150)
    access_key = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=150, required=False)
    email = serializers.EmailField(required=False)
    department = serializers.CharField(max_length=150, required=False, allow_blank=True)


class StaffDeclineSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class LmsTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT pair carrying the caller's role claim; inactive (pending/declined staff) accounts are refused."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        return token


# ---------- Courses ----------
class CourseWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a course. Code is generated when omitted."""
    code = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=12,
        help_text="Join code, 4-12 letters or digits, matched case-insensitively.",
    )

    class Meta:
        model = Course
        fields = ["title", "description", "code"]
        extra_kwargs = {
            "title": {"help_text": "Course title."},
            "description": {"required": False, "allow_blank": True},
        }

    def validate_code(self, value: str) -> str:
        if not value:
            return value
        try:
            validate_join_code(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)
        return value.strip().upper()


class CourseReadSerializer(serializers.ModelSerializer):
    """Serializer for reading course details including the creator."""
    creator = UserSerializer(read_only=True)

    class Meta:
        model = Course
        fields = ["id", "title", "description", "code", "creator", "created_at", "updated_at"]


class JoinCourseSerializer(serializers.Serializer):
    code = serializers.CharField(help_text="Course join code (case-insensitive).")


class EnrollmentSerializer(serializers.ModelSerializer):
    student = UserSerializer(read_only=True)

    class Meta:
        model = Enrollment
        fields = ["id", "course", "student", "status", "added_by", "enrolled_at"]
        read_only_fields = fields


class RosterQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EnrollmentStatus.choices, required=False)


class StaffAssignmentSerializer(serializers.ModelSerializer):
    staff = UserSerializer(read_only=True)

    class Meta:
        model = StaffAssignment
        fields = ["id", "course", "staff", "assigned_by", "created_at"]
        read_only_fields = fields


# ---------- Tasks ----------
class TaskWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a task."""
    max_points = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Points for the first submitter; later submitters earn less.",
    )

    class Meta:
        model = Task
        fields = ["title", "description", "deadline", "max_points"]
        extra_kwargs = {
            "description": {"required": False, "allow_blank": True},
            "deadline": {"required": False, "allow_null": True},
        }


class TaskReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Task
        fields = ["id", "course", "title", "description", "deadline", "max_points", "creator", "created_at", "updated_at"]


class SubmissionWriteSerializer(serializers.Serializer):
    """Multipart payload for a submission: optional text plus up to the configured number of files."""
    text_response = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Textual answer.",
    )
    files = serializers.ListField(
        child=serializers.FileField(),
        required=False,
        default=list,
        help_text="Attachments; each file size-checked.",
    )

    def validate_files(self, files: list) -> list:
        try:
            validate_file_count(files)
            for f in files:
                validate_file_size(f)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)
        return files


class SubmissionReadSerializer(serializers.ModelSerializer):
    """Detailed submission view including the student."""
    student = UserSerializer(read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id", "task", "student", "text_response", "file_urls", "points_awarded",
            "status", "submitted_at", "graded_by", "graded_at", "feedback",
        ]
        read_only_fields = fields


class GradeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[SubmissionStatus.ACCEPTED, SubmissionStatus.REJECTED],
        default=SubmissionStatus.ACCEPTED,
    )
    points = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    feedback = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# ---------- Unlocks ----------
class UnlockRequestWriteSerializer(serializers.Serializer):
    reason = serializers.CharField(help_text="Why the deadline should be lifted.")


class UnlockRequestReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[UnlockRequestStatus.APPROVED, UnlockRequestStatus.REJECTED])


class UnlockRequestQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=UnlockRequestStatus.choices, required=False)


class UnlockRequestReadSerializer(serializers.ModelSerializer):
    student = UserSerializer(read_only=True)
    task_title = serializers.CharField(source="task.title", read_only=True)
    course = serializers.IntegerField(source="task.course_id", read_only=True)

    class Meta:
        model = TaskUnlockRequest
        fields = ["id", "task", "task_title", "course", "student", "reason", "status",
                  "requested_at", "reviewed_at", "reviewed_by"]
        read_only_fields = fields


class GrantUnlockSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()


class TaskUnlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskUnlock
        fields = ["id", "task", "student", "granted_by", "request", "created_at"]
        read_only_fields = fields


class UnlockStatusSerializer(serializers.Serializer):
    task_id = serializers.IntegerField()
    state = serializers.CharField()
    unlocked = serializers.BooleanField()
    can_submit = serializers.BooleanField()


# ---------- Leaderboard ----------
class LeaderboardQuerySerializer(serializers.Serializer):
    courseId = serializers.IntegerField(required=False, min_value=1)


class LeaderboardEntrySerializer(serializers.Serializer):
    rank = serializers.IntegerField()
    student_id = serializers.IntegerField()
    email = serializers.EmailField()
    name = serializers.CharField()
    total_points = serializers.IntegerField()
    submissions_count = serializers.IntegerField()


# ---------- Quick tasks ----------
class QuickTaskWriteSerializer(serializers.ModelSerializer):
    student_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    class Meta:
        model = QuickTask
        fields = ["title", "description", "student_ids"]
        extra_kwargs = {"description": {"required": False, "allow_blank": True}}


class QuickTaskReadSerializer(serializers.ModelSerializer):
    students = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = QuickTask
        fields = ["id", "title", "description", "creator", "created_at", "students"]


class StudentIdsSerializer(serializers.Serializer):
    student_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


# ---------- Audit ----------
class AuditLogEntrySerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source="actor.email", read_only=True, default=None)

    class Meta:
        model = AuditLogEntry
        fields = ["id", "actor", "actor_email", "action", "resource_type", "resource_id", "details", "created_at"]
        read_only_fields = fields


class AuditLogQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, default=100, min_value=1)


class AuditPurgeSerializer(serializers.Serializer):
    before = serializers.DateTimeField(required=False, allow_null=True)


class LoginHistorySerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = LoginHistory
        fields = ["id", "user", "email", "ip_address", "user_agent", "created_at"]
        read_only_fields = fields


def max_files_help() -> str:
    return f"At most {lms_setting('MAX_SUBMISSION_FILES')} files of {lms_setting('MAX_FILE_MB')} MB each."
