"""
SQLAlchemy Database Models

Rows backing the SQL store:
- Tables on the floor plan
- Orders and their items (items cascade with the order)
- Reservations
- Payments recorded when a bill is settled

Every row carries the owning tenant (admin) id.
"""

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tableflow.database import Base
from tableflow.status import (
    OrderItemStatus,
    OrderStatus,
    PaymentMethod,
    ReservationStatus,
    TableStatus,
)


def _enum(enum_cls, name: str) -> Enum:
    # Store the lowercase values, not the member names
    return Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class TableRow(Base):
    """A table on the floor plan."""
    __tablename__ = "tables"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)

    # =========================================================================
    # LAYOUT
    # =========================================================================
    number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    shape = Column(String(20), nullable=False, default="square")
    x = Column(Float, nullable=False, default=0.0)
    y = Column(Float, nullable=False, default=0.0)
    width = Column(Float, nullable=False, default=80.0)
    height = Column(Float, nullable=False, default=80.0)

    # =========================================================================
    # OCCUPANCY
    # =========================================================================
    status = Column(
        _enum(TableStatus, "table_status"),
        default=TableStatus.AVAILABLE,
        nullable=False,
        index=True,
    )
    server = Column(String(100), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Table {self.number} - {self.status.value}>"


class OrderRow(Base):
    """
    An order placed at a table.

    Tracks the lifecycle from the waiter's tablet to the cashier.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)

    server = Column(String(100), nullable=False)
    status = Column(
        _enum(OrderStatus, "order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    total = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItemRow",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemRow.position",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Order {self.id} - table {self.table_id} - {self.status.value}>"


class OrderItemRow(Base):
    """A line of an order; owned by exactly one order."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)

    menu_item_id = Column(String(36), nullable=False)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    status = Column(
        _enum(OrderItemStatus, "order_item_status"),
        default=OrderItemStatus.PENDING,
        nullable=False,
    )

    order = relationship("OrderRow", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.name} x{self.quantity} - {self.status.value}>"


class ReservationRow(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)

    customer_name = Column(String(100), nullable=False)
    people = Column(Integer, nullable=False)
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    contact = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(
        _enum(ReservationStatus, "reservation_status"),
        default=ReservationStatus.PENDING,
        nullable=False,
    )

    def __repr__(self):
        return f"<Reservation {self.customer_name} {self.date} {self.time} - {self.status.value}>"


class PaymentRow(Base):
    """A settled bill, written once by the cashier station."""
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    table_id = Column(String(36), nullable=False, index=True)
    order_ids = Column(JSON, nullable=False)

    payment_method = Column(_enum(PaymentMethod, "payment_method"), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    tip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    received_amount = Column(Numeric(10, 2), nullable=False)
    change_amount = Column(Numeric(10, 2), nullable=False, default=0)
    processed_by = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Payment {self.id} - {self.payment_method.value} - {self.total_amount}>"
