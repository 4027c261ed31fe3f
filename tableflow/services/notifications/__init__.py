"""
Notification Sink Factory

Development stations keep notifications in memory so the UI layer can show
them; deployed stations log them.
"""

import logging
from functools import lru_cache

from tableflow.core.config import get_settings
from tableflow.services.notifications.base import (
    BaseNotificationSink,
    Notification,
    reports_failures,
)
from tableflow.services.notifications.log import (
    LogNotificationSink,
    RecordingNotificationSink,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_sink() -> BaseNotificationSink:
    """Get the configured notification sink."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Sink: Using RecordingNotificationSink (development mode)")
        return RecordingNotificationSink()
    else:
        logger.info(f"Notification Sink: Using LogNotificationSink ({settings.env_mode.value} mode)")
        return LogNotificationSink()


def reset_notification_sink() -> None:
    """Clear the cached sink instance."""
    get_notification_sink.cache_clear()


__all__ = [
    "get_notification_sink",
    "reset_notification_sink",
    "reports_failures",
    "BaseNotificationSink",
    "Notification",
    "LogNotificationSink",
    "RecordingNotificationSink",
]
