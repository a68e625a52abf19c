"""API throttling classes. Rates come from ``REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]``."""

from rest_framework.throttling import UserRateThrottle

class SubmissionRateThrottle(UserRateThrottle):
    """Throttle limiting submission create requests per user."""
    scope = "submission_create"

class CourseJoinThrottle(UserRateThrottle):
    """Throttle limiting join-code guesses per user."""
    scope = "course_join"
