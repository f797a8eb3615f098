"""
Notification Dispatch

The ledger decides WHAT to tell the user; delivery belongs to the host
(a desktop toast, a push service, a chat bot). Components only see the
NotificationSink interface: (title, body, priority). Delivery
guarantees are the sink's business.
"""

from abc import ABC, abstractmethod

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.models.ledger import NotificationPriority


class NotificationSink(ABC):
    """Abstract receiver of user-facing notifications."""

    @abstractmethod
    def send(self, title: str, body: str, priority: NotificationPriority) -> None:
        """
        Deliver one notification.

        Args:
            title: Short headline
            body: Full message text
            priority: Delivery priority hint
        """
        pass


class LoggingNotificationSink(NotificationSink):
    """Default sink: writes each notification to the structured log."""

    def __init__(self):
        self._logger = get_logger("notifications")

    def send(self, title: str, body: str, priority: NotificationPriority) -> None:
        self._logger.info(
            LogEvent.NOTIFICATION_SENT.value,
            title=title,
            body=body,
            priority=priority.value,
        )
