"""
Floor-plan attention cues.

When an order becomes ready the table on the floor plan blinks for a while
and a notification sound plays. The listener only keeps the blink deadlines;
a UI asks ``blinking_tables()`` when it repaints.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from tableflow.core.config import get_settings
from tableflow.events import EventBus, LifecycleEvent

logger = logging.getLogger(__name__)

NOTIFICATION_SOUND = "notification"


class BaseCueSink(ABC):
    """Plays named sounds on a station."""

    @abstractmethod
    def play(self, sound: str) -> None:
        pass


class LogCueSink(BaseCueSink):
    def play(self, sound: str) -> None:
        logger.info(f"Cue: {sound}")


class RecordingCueSink(LogCueSink):
    """Remembers what was played."""

    def __init__(self):
        self.played: list[str] = []

    def play(self, sound: str) -> None:
        super().play(sound)
        self.played.append(sound)


class AttentionCueListener:
    """
    Blinks tables whose orders became ready.

    Attributes:
        sink: Where sounds are played
        blink_seconds: How long a table keeps blinking
        clock: Monotonic seconds, injectable for tests
    """

    def __init__(
        self,
        sink: Optional[BaseCueSink] = None,
        blink_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.sink = sink or LogCueSink()
        self.blink_seconds = (
            blink_seconds if blink_seconds is not None else get_settings().attention_blink_seconds
        )
        self.clock = clock or time.monotonic
        self._blink_until: dict[str, float] = {}

    def handle_event(self, event: LifecycleEvent) -> None:
        if not event.attention_required or event.table_id is None:
            return
        self._blink_until[event.table_id] = self.clock() + self.blink_seconds
        logger.debug(f"Table {event.table_id} blinking for {self.blink_seconds}s (order {event.order_id})")
        self.sink.play(NOTIFICATION_SOUND)

    def is_blinking(self, table_id: str) -> bool:
        deadline = self._blink_until.get(table_id)
        if deadline is None:
            return False
        if self.clock() >= deadline:
            del self._blink_until[table_id]
            return False
        return True

    def blinking_tables(self) -> set[str]:
        """Tables still inside their blink window."""
        return {table_id for table_id in list(self._blink_until) if self.is_blinking(table_id)}

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.subscribe(self.handle_event)
