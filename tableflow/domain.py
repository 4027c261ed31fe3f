"""
Domain records passed between the managers and the store.

Plain dataclasses; the store owns persistence and hands out copies, so a
record held by a caller is a snapshot of what was last observed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from tableflow.status import (
    OrderItemStatus,
    OrderStatus,
    PaymentMethod,
    ReservationStatus,
    TableStatus,
)

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Quantize any numeric value to two decimals, half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class Table:
    """A physical table on the floor plan."""
    id: str
    tenant_id: str
    number: str
    capacity: int = 4
    shape: str = "square"
    x: float = 0.0
    y: float = 0.0
    width: float = 80.0
    height: float = 80.0
    status: TableStatus = TableStatus.AVAILABLE
    server: Optional[str] = None
    start_time: Optional[datetime] = None


@dataclass
class OrderItem:
    """One line of an order. ``price`` is the menu price when ordered."""
    id: str
    order_id: str
    menu_item_id: str
    name: str
    price: Decimal
    quantity: int = 1
    notes: Optional[str] = None
    status: OrderItemStatus = OrderItemStatus.PENDING

    @property
    def line_total(self) -> Decimal:
        return money(self.price * self.quantity)


@dataclass
class Order:
    id: str
    tenant_id: str
    table_id: str
    server: str
    status: OrderStatus = OrderStatus.PENDING
    total: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    items: list[OrderItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def computed_total(self) -> Decimal:
        """Sum of price x quantity over items that are not cancelled."""
        return money(sum(
            (item.line_total for item in self.items if item.status != OrderItemStatus.CANCELLED),
            Decimal("0"),
        ))


@dataclass
class Reservation:
    id: str
    tenant_id: str
    table_id: str
    customer_name: str
    people: int
    date: date
    time: time
    contact: Optional[str] = None
    notes: Optional[str] = None
    status: ReservationStatus = ReservationStatus.PENDING


@dataclass
class Bill:
    """
    Snapshot of a table's billable orders.

    Not persisted; regenerate it after a StaleBillError.
    """
    table: Table
    orders: list[Order]
    generated_at: datetime

    @property
    def subtotal(self) -> Decimal:
        return money(sum((order.total for order in self.orders), Decimal("0")))

    @property
    def order_ids(self) -> list[str]:
        return [order.id for order in self.orders]


@dataclass(frozen=True)
class PaymentTransaction:
    """Validated payment, consumed once by BillAggregator.finalize_bill()."""
    method: PaymentMethod
    subtotal: Decimal
    tip_amount: Decimal
    received_amount: Decimal
    change_amount: Decimal
    total: Decimal


@dataclass
class PaymentRecord:
    """What the store keeps about a settled bill."""
    id: str
    tenant_id: str
    table_id: str
    order_ids: list[str]
    method: PaymentMethod
    total_amount: Decimal
    tip_amount: Decimal
    received_amount: Decimal
    change_amount: Decimal
    processed_by: Optional[str] = None
    created_at: Optional[datetime] = None
