"""Object storage for submission attachments (Django storage backend)."""

import logging
import os
import time
from typing import Any, Iterable

from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename

logger = logging.getLogger(__name__)


def submission_path(task_id: int, student_id: int, filename: str) -> str:
    """``submissions/<task>/<student>/<epoch-ms>_<name>``, namespaced per (task, student)."""
    stamp = int(time.time() * 1000)
    safe_name = get_valid_filename(os.path.basename(filename or "file")) or "file"
    return f"submissions/{task_id}/{student_id}/{stamp}_{safe_name}"


def store_submission_files(task_id: int, student_id: int, files: Iterable[Any]) -> list[str]:
    """Upload files one by one and return their storage names.

    A file that fails to upload is logged and skipped; the remaining files are still attempted.
    """
    names: list[str] = []
    for upload in files:
        path = submission_path(task_id, student_id, getattr(upload, "name", ""))
        try:
            names.append(default_storage.save(path, upload))
        except Exception:
            logger.exception("Upload failed for %s (task %s, student %s)", path, task_id, student_id)
    return names


def file_urls(names: Iterable[str]) -> list[str]:
    return [default_storage.url(name) for name in names]


def discard_files(names: Iterable[str]) -> None:
    """Remove stored files that no submission row refers to."""
    for name in names:
        try:
            default_storage.delete(name)
        except Exception:
            logger.exception("Could not remove orphaned upload %s", name)
