"""Validation helpers for uploaded files and course join codes."""

import re
from typing import Any, Sequence

from django.core.exceptions import ValidationError

from LmsApp.core.config import lms_setting

JOIN_CODE_RE = re.compile(r"^[A-Za-z0-9]{4,12}$")

def validate_file_size(file_obj: Any, max_mb: int | None = None) -> None:
    """Ensure file size does not exceed max_mb megabytes."""
    limit = max_mb if max_mb is not None else lms_setting("MAX_FILE_MB")
    if file_obj and file_obj.size > limit * 1024 * 1024:
        raise ValidationError(f"File exceeds {limit} MB limit.")

def validate_file_count(files: Sequence[Any]) -> None:
    """Ensure a submission carries no more files than allowed."""
    limit = lms_setting("MAX_SUBMISSION_FILES")
    if len(files) > limit:
        raise ValidationError(f"At most {limit} files per submission.")

def validate_join_code(code: str) -> None:
    """Join codes are 4-12 alphanumeric characters."""
    if not JOIN_CODE_RE.match((code or "").strip()):
        raise ValidationError("Join code must be 4-12 letters or digits.")
