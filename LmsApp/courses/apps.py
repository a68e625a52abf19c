"""Courses app configuration."""

from django.apps import AppConfig

class CoursesConfig(AppConfig):
    """AppConfig for the course domain (courses, enrollments, staff assignments)."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LmsApp.courses"
