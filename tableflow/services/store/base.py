"""
Store Abstract Base Class

Defines the interface contract for the persistence collaborator. The core
never talks to a database directly; every read and write goes through a
``BaseStore`` and is scoped by the owning tenant (admin) id.

Design Pattern: Strategy Pattern
    - MemoryStore for development and tests
    - SqlStore for the shared relational database
    - New backends can be added without modifying the managers

Concurrency:
    Every method is a round trip and therefore a suspension point. The
    ``expected_status`` argument on update methods is an optimistic
    compare-and-set: the write only lands if the stored status still equals
    it, and the method returns False otherwise.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from tableflow.domain import Order, OrderItem, PaymentRecord, Reservation, Table
from tableflow.status import OrderItemStatus, OrderStatus, ReservationStatus, TableStatus

# Sentinel for "leave this column alone" where None is a meaningful value
UNSET = object()


class BaseStore(ABC):
    """
    Abstract base class for stores.

    All implementations must inherit from this class and implement every
    abstract method. Returned records are snapshots: mutating them does not
    write anything back.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the backend name (e.g. "memory", "sql")."""
        pass

    # =========================================================================
    # TABLES
    # =========================================================================

    @abstractmethod
    async def add_table(self, table: Table) -> Table:
        pass

    @abstractmethod
    async def get_table(self, tenant_id: str, table_id: str) -> Optional[Table]:
        pass

    @abstractmethod
    async def list_tables(self, tenant_id: str) -> list[Table]:
        pass

    @abstractmethod
    async def update_table(
        self,
        tenant_id: str,
        table_id: str,
        status: TableStatus,
        server=UNSET,
        start_time=UNSET,
        expected_status: Optional[TableStatus] = None,
    ) -> bool:
        """
        Write a table's status (and optionally server / start time).

        Returns:
            bool: False if the table is missing or ``expected_status`` no
            longer matches
        """
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def add_order(self, order: Order) -> Order:
        """Insert an order together with its items."""
        pass

    @abstractmethod
    async def get_order(self, tenant_id: str, order_id: str) -> Optional[Order]:
        """Fetch an order with its items ordered by insertion."""
        pass

    @abstractmethod
    async def list_orders(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> list[Order]:
        """Orders (with items), newest first."""
        pass

    @abstractmethod
    async def update_order_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> bool:
        pass

    @abstractmethod
    async def update_order_total(self, tenant_id: str, order_id: str, total: Decimal) -> bool:
        pass

    # =========================================================================
    # ORDER ITEMS
    # =========================================================================

    @abstractmethod
    async def add_order_item(self, tenant_id: str, item: OrderItem) -> OrderItem:
        pass

    @abstractmethod
    async def get_order_item(self, tenant_id: str, item_id: str) -> Optional[OrderItem]:
        pass

    @abstractmethod
    async def update_order_item(
        self,
        tenant_id: str,
        item_id: str,
        status: Optional[OrderItemStatus] = None,
        quantity: Optional[int] = None,
        expected_status: Optional[OrderItemStatus] = None,
    ) -> bool:
        pass

    @abstractmethod
    async def update_order_items_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderItemStatus,
        only: Iterable[OrderItemStatus],
    ) -> int:
        """
        Move every item of an order whose status is in ``only`` to ``status``.

        Returns:
            int: Number of items changed
        """
        pass

    @abstractmethod
    async def delete_order_item(self, tenant_id: str, item_id: str) -> bool:
        pass

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    @abstractmethod
    async def add_reservation(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def get_reservation(self, tenant_id: str, reservation_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def list_reservations(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        on: Optional[date] = None,
        statuses: Optional[Iterable[ReservationStatus]] = None,
    ) -> list[Reservation]:
        pass

    @abstractmethod
    async def update_reservation_status(
        self,
        tenant_id: str,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        pass

    @abstractmethod
    async def update_reservation(
        self,
        tenant_id: str,
        reservation_id: str,
        changes: dict,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        """
        Overwrite booking fields (table, customer, party size, date, time,
        contact, notes). Status is changed only by update_reservation_status.
        """
        pass

    @abstractmethod
    async def delete_reservation(self, tenant_id: str, reservation_id: str) -> bool:
        pass

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    @abstractmethod
    async def add_payment(self, record: PaymentRecord) -> PaymentRecord:
        pass

    @abstractmethod
    async def list_payments(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[PaymentRecord]:
        """Payments oldest first; ``since`` keeps those created at or after it."""
        pass

    # =========================================================================
    # HEALTH
    # =========================================================================

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the backing store.

        Returns:
            bool: True if the store is reachable
        """
        pass
