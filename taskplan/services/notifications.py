"""
Notification seam for schedule changes.

The engine builds one Notification per schedule change, addressed to the
owner of the moved task, and hands them to a sink after the changes are
committed. Delivery (mail, chat, push) belongs to the sink.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from taskplan.domain.task import ScheduleChange, Task
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)


class Notification:
    """A message telling a user that one of their tasks moved."""

    def __init__(
        self,
        recipient_id,
        task_id,
        title: str,
        message: str,
        change: Optional[ScheduleChange] = None,
        created_at: Optional[datetime] = None,
    ):
        self.recipient_id = recipient_id
        self.task_id = task_id
        self.title = title
        self.message = message
        self.change = change
        self.created_at = created_at or datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipientId": self.recipient_id,
            "taskId": self.task_id,
            "title": self.title,
            "message": self.message,
            "change": self.change.to_dict() if self.change else None,
            "createdAt": self.created_at,
        }

    def __repr__(self) -> str:
        return f"Notification(to={self.recipient_id}, task={self.task_id}, title={self.title!r})"


def _describe(change: ScheduleChange) -> str:
    if change.new_start_date is None and change.new_end_date is None:
        return change.reason
    parts = []
    if change.new_start_date is not None:
        parts.append(f"starts {change.new_start_date:%Y-%m-%d}")
    if change.new_end_date is not None:
        parts.append(f"ends {change.new_end_date:%Y-%m-%d}")
    return f"{change.reason}: now {' and '.join(parts)}"


def notifications_for(changes: List[ScheduleChange], tasks: Dict[Any, Task]) -> List[Notification]:
    """
    Build the notifications for a list of schedule changes.

    Changes to tasks without an assignee, and changes that left a task
    where it was, produce no notification.

    Args:
        changes: Schedule changes of one reschedule
        tasks: The changed tasks keyed by ID

    Returns:
        list: One Notification per change with a recipient
    """
    notifications = []
    for change in changes:
        task = tasks.get(change.task_id)
        if task is None or task.assignee_id is None:
            logger.debug(f"No recipient for change to task {change.task_id}")
            continue
        if change.impact_days == 0 and (
            change.old_start_date, change.old_end_date
        ) == (change.new_start_date, change.new_end_date):
            logger.debug(f"Task {change.task_id} did not move, not notified")
            continue
        notifications.append(
            Notification(
                recipient_id=task.assignee_id,
                task_id=task.id,
                title=f"Schedule changed: {task.title}",
                message=_describe(change),
                change=change,
            )
        )
    return notifications


class NotificationSink(ABC):
    @abstractmethod
    def send(self, notification: Notification):
        """Deliver one notification"""
        pass

    def send_all(self, notifications: List[Notification]) -> int:
        for notification in notifications:
            self.send(notification)
        return len(notifications)


class LoggingNotificationSink(NotificationSink):
    """Writes each notification to the log."""

    def send(self, notification):
        logger.info(
            f"Notify {notification.recipient_id}: {notification.title} ({notification.message})"
        )


class CollectingNotificationSink(NotificationSink):
    """Keeps notifications in memory."""

    def __init__(self):
        self.sent: List[Notification] = []

    def send(self, notification):
        self.sent.append(notification)

    def for_recipient(self, recipient_id) -> List[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]

    def clear(self):
        self.sent = []
