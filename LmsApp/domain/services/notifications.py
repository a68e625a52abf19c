"""Fire-and-forget email notifications.

Messages are handed to a small thread pool after the surrounding transaction
commits, so a slow or failing mail server never delays or fails the primary
write. Delivery order is not guaranteed.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from django.core.mail import send_mail
from django.db import transaction
from django.utils.html import strip_tags

from LmsApp.core.config import lms_setting

logger = logging.getLogger(__name__)

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=lms_setting("NOTIFICATION_WORKERS"),
                thread_name_prefix="lms-notify",
            )
    return _executor


def deliver(recipients: list[str], subject: str, html: str) -> bool:
    """Send one message; failures are logged and reported as False."""
    try:
        send_mail(subject, strip_tags(html), None, recipients, html_message=html)
    except Exception:
        logger.exception("Email delivery failed: %r to %s", subject, recipients)
        return False
    logger.info("Email sent: %r to %d recipient(s)", subject, len(recipients))
    return True


def notify(recipients: Iterable[str | None], subject: str, html: str) -> None:
    """Schedule an email for after commit. Empty recipient lists are ignored."""
    to = sorted({r for r in recipients if r})
    if not to:
        return

    def _dispatch() -> None:
        if lms_setting("NOTIFICATIONS_INLINE"):
            deliver(to, subject, html)
        else:
            _get_executor().submit(deliver, to, subject, html)

    transaction.on_commit(_dispatch)
