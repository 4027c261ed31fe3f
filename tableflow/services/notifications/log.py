"""
Log and recording notification sinks.

LogNotificationSink writes every notification to the application log; it is
what a headless station uses. RecordingNotificationSink keeps them in a list
so a UI layer (or a test) can drain and display them.
"""

import logging
from typing import Optional

from tableflow.services.notifications.base import BaseNotificationSink, Notification

logger = logging.getLogger(__name__)


class LogNotificationSink(BaseNotificationSink):
    """Notifications go to the log."""

    @property
    def provider_name(self) -> str:
        return "log"

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str, code: Optional[str] = None) -> None:
        logger.warning(f"{message} ({code})" if code else message)


class RecordingNotificationSink(LogNotificationSink):
    """Logs and also keeps notifications until drained."""

    def __init__(self):
        self.notifications: list[Notification] = []

    @property
    def provider_name(self) -> str:
        return "recording"

    def success(self, message: str) -> None:
        super().success(message)
        self.notifications.append(Notification(level="success", message=message))

    def error(self, message: str, code: Optional[str] = None) -> None:
        super().error(message, code)
        self.notifications.append(Notification(level="error", message=message, code=code))

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.notifications if n.level == "error"]

    def drain(self) -> list[Notification]:
        """Return and forget everything recorded so far."""
        drained, self.notifications = self.notifications, []
        return drained
