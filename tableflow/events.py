"""
In-process lifecycle event bus.

Managers publish a ``LifecycleEvent`` after every successful mutation; the
table manager, floor-plan cues and any UI listener subscribe. Delivery is
sequential and in subscription order. There is no buffering: a listener that
subscribes after an event was published never sees it.

Usage:
    bus = EventBus()
    unsubscribe = bus.subscribe(lambda event: print(event.kind))
    await bus.publish(LifecycleEvent(kind=EventKind.ORDER_CREATED, ...))
    unsubscribe()
"""

import enum
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_ITEMS_CHANGED = "order_items_changed"
    ORDER_ITEM_STATUS_CHANGED = "order_item_status_changed"
    RESERVATION_CHANGED = "reservation_changed"
    TABLE_STATUS_CHANGED = "table_status_changed"
    BILL_SETTLED = "bill_settled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LifecycleEvent:
    """
    A completed state change.

    Attributes:
        kind: What happened
        table_id: Table the change belongs to
        order_id: Order involved, if any
        previous_status: Status before the change (None on creation)
        new_status: Status after the change
        attention_required: Set when an order became ready; floor cues react
        reservation_id: Reservation involved, if any
        order_item_id: Item involved, if any
        timestamp: When the change completed locally
    """
    kind: EventKind
    table_id: Optional[str]
    order_id: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    attention_required: bool = False
    reservation_id: Optional[str] = None
    order_item_id: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)


Listener = Callable[[LifecycleEvent], Union[None, Awaitable[Any]]]


class _Subscription:
    """One registration of a listener; compared by identity."""

    __slots__ = ("listener",)

    def __init__(self, listener: Listener):
        self.listener = listener


class EventBus:
    """
    Publish/subscribe channel for lifecycle events.

    Each instance is independent; build one per floor (or per test). A bus
    is always truthy, even with no listeners.
    """

    def __init__(self, name: str = "floor"):
        self.name = name
        self._subscriptions: list[_Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __bool__(self) -> bool:
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` for every future event.

        Subscribing the same callable twice registers it twice; each
        returned callable removes only its own registration.

        Returns:
            A callable that removes the registration. Calling it twice is harmless.
        """
        subscription = _Subscription(listener)
        self._subscriptions.append(subscription)
        logger.debug(f"Bus '{self.name}': listener added ({len(self._subscriptions)} total)")

        def unsubscribe() -> None:
            for index, registered in enumerate(self._subscriptions):
                if registered is subscription:
                    del self._subscriptions[index]
                    logger.debug(
                        f"Bus '{self.name}': listener removed ({len(self._subscriptions)} left)"
                    )
                    return

        return unsubscribe

    def _is_registered(self, subscription: _Subscription) -> bool:
        return any(registered is subscription for registered in self._subscriptions)

    async def publish(self, event: LifecycleEvent) -> int:
        """
        Deliver ``event`` to the listeners registered right now.

        A registration removed while this call is running is skipped if it
        has not been reached yet. A listener that raises is logged and the
        remaining listeners still receive the event.

        Returns:
            Number of listeners that handled the event without raising
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not self._is_registered(subscription):
                continue
            listener = subscription.listener
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(
                    f"Bus '{self.name}': listener {listener!r} failed on "
                    f"{event.kind.value} (order={event.order_id}, table={event.table_id})"
                )
        return delivered
