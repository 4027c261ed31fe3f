"""
Status vocabulary shared by every station.

Order workflow:
    pending -> preparing -> ready -> delivered
    pending | preparing -> cancelled

Table status has no inherent graph; staff and the table manager drive it.
"""

import enum
from typing import Optional, TypeVar, Union

# Returned by parse_status() for values this build does not know about
UNRECOGNIZED = "unrecognized"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItemStatus(str, enum.Enum):
    """Kitchen status of a single line; mirrors the order workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TableStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentMethod(str, enum.Enum):
    """How a bill was settled."""
    CASH = "cash"
    CARD = "card"
    APP = "app"


ACTIVE_ORDER_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY}
)
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

ACTIVE_RESERVATION_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)

_FORWARD = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.DELIVERED,
}

E = TypeVar("E", bound=enum.Enum)


def parse_status(enum_cls: type[E], value) -> Union[E, str]:
    """
    Map a raw status value onto ``enum_cls``.

    Unknown or future values come back as ``UNRECOGNIZED`` instead of
    raising, so filters and renderers can skip them.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return UNRECOGNIZED


def next_order_status(status: OrderStatus) -> Optional[OrderStatus]:
    """Direct forward successor, or None from delivered/cancelled."""
    return _FORWARD.get(OrderStatus(status.value))


def can_cancel(status) -> bool:
    return status.value in {s.value for s in CANCELLABLE_STATUSES}


def is_terminal(status) -> bool:
    return status.value in {s.value for s in TERMINAL_STATUSES}


def is_active(status) -> bool:
    return status.value in {s.value for s in ACTIVE_ORDER_STATUSES}
