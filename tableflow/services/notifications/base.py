"""
Notification Sink Abstract Base Class

Defines the interface for surfacing operation outcomes to staff (the toast
area of a station, a log, ...). Not required for correctness: a sink that
drops everything is a valid sink.
"""

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from tableflow.core.exceptions import TableflowError

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """A message shown to staff."""
    level: str
    message: str
    code: Optional[str] = None


class BaseNotificationSink(ABC):
    """Abstract base class for notification sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def success(self, message: str) -> None:
        """Report a completed operation."""
        pass

    @abstractmethod
    def error(self, message: str, code: Optional[str] = None) -> None:
        """Report a failed operation."""
        pass


def reports_failures(action: str):
    """
    Decorate an async manager method so a ``TableflowError`` is pushed to the
    manager's ``notifier`` before it propagates to the caller.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except TableflowError as e:
                notifier = getattr(self, "notifier", None)
                if notifier is not None:
                    notifier.error(f"Could not {action}: {e.message}", code=e.code)
                raise
        return wrapper
    return decorator
