"""Signal handlers for learning domain (email course members about new tasks and unlock requests)."""

from typing import Any

from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils.html import format_html

from LmsApp.core.choices import EnrollmentStatus
from LmsApp.courses.models import Enrollment
from LmsApp.domain.services import notifications
from LmsApp.learning.models import Task, TaskUnlockRequest


@receiver(post_save, sender=Task)
def notify_students_of_new_task(
    sender: type[Task],
    instance: Task,
    created: bool,
    **kwargs: Any,
) -> None:
    """Email every actively enrolled student when a task is added to their course."""
    if not created or kwargs.get("raw"):
        return
    recipients = Enrollment.objects.filter(
        course_id=instance.course_id, status=EnrollmentStatus.ACTIVE
    ).values_list("student__email", flat=True)
    deadline = instance.deadline.isoformat() if instance.deadline else "none"
    notifications.notify(
        list(recipients),
        f"New task in {instance.course.title}: {instance.title}",
        format_html(
            "<p>A new task <b>{}</b> was added to <b>{}</b>.</p><p>Max points: {}. Deadline: {}.</p>",
            instance.title, instance.course.title, instance.max_points, deadline,
        ),
    )


@receiver(post_save, sender=TaskUnlockRequest)
def notify_creator_of_unlock_request(
    sender: type[TaskUnlockRequest],
    instance: TaskUnlockRequest,
    created: bool,
    **kwargs: Any,
) -> None:
    """Email the course creator, who is the only reviewer of the request."""
    if not created or kwargs.get("raw"):
        return
    task = instance.task
    notifications.notify(
        [task.course.creator.email],
        f"Unlock request for {task.title}",
        format_html(
            "<p>{} asked to submit <b>{}</b> after its deadline.</p><p>Reason: {}</p>",
            instance.student.email, task.title, instance.reason,
        ),
    )
