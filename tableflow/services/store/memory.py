"""
In-Memory Store Implementation

Keeps every record in process dictionaries. Used in development mode
(ENV_MODE=development) and by the test-suite to:
    - Run the whole floor workflow without a database
    - Simulate the round trip of the shared store (configurable latency)
    - Exercise compare-and-set races deterministically

Behavior:
    - Every call awaits at least once, so it is a real suspension point
    - Records are deep-copied in and out; callers only ever hold snapshots
    - Reads and writes for another tenant behave as if the record is missing
"""

import asyncio
import copy
import logging
import random
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from tableflow.domain import Order, OrderItem, PaymentRecord, Reservation, Table
from tableflow.services.store.base import UNSET, BaseStore
from tableflow.status import OrderItemStatus, OrderStatus, ReservationStatus, TableStatus

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """
    Dictionary-backed store.

    Attributes:
        min_latency: Minimum simulated round trip in seconds
        max_latency: Maximum simulated round trip in seconds

    Example:
        >>> store = MemoryStore()
        >>> await store.add_table(Table(id="t1", tenant_id="admin-1", number="1"))
        >>> (await store.get_table("admin-1", "t1")).status
        <TableStatus.AVAILABLE: 'available'>
    """

    def __init__(self, min_latency: float = 0.0, max_latency: float = 0.0):
        self.min_latency = min_latency
        self.max_latency = max(min_latency, max_latency)

        self._tables: dict[str, Table] = {}
        self._orders: dict[str, Order] = {}
        self._items: dict[str, OrderItem] = {}
        self._item_order: list[str] = []
        self._reservations: dict[str, Reservation] = {}
        self._payments: dict[str, PaymentRecord] = {}
        # order_id -> tenant_id, items carry no tenant of their own
        self._order_tenants: dict[str, str] = {}

        logger.info(
            f"MemoryStore initialized "
            f"(latency={self.min_latency}-{self.max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "memory"

    async def _round_trip(self) -> None:
        """Simulate the network hop to the shared store."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))
        else:
            await asyncio.sleep(0)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _owned(self, record, tenant_id: str):
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    def _assemble(self, order: Order) -> Order:
        snapshot = copy.deepcopy(order)
        snapshot.items = [
            copy.deepcopy(self._items[item_id])
            for item_id in self._item_order
            if self._items[item_id].order_id == order.id
        ]
        return snapshot

    def _item_for(self, tenant_id: str, item_id: str) -> Optional[OrderItem]:
        item = self._items.get(item_id)
        if item is None or self._order_tenants.get(item.order_id) != tenant_id:
            return None
        return item

    # =========================================================================
    # TABLES
    # =========================================================================

    async def add_table(self, table: Table) -> Table:
        await self._round_trip()
        self._tables[table.id] = copy.deepcopy(table)
        return copy.deepcopy(table)

    async def get_table(self, tenant_id: str, table_id: str) -> Optional[Table]:
        await self._round_trip()
        table = self._owned(self._tables.get(table_id), tenant_id)
        return copy.deepcopy(table)

    async def list_tables(self, tenant_id: str) -> list[Table]:
        await self._round_trip()
        return [copy.deepcopy(t) for t in self._tables.values() if t.tenant_id == tenant_id]

    async def update_table(
        self,
        tenant_id: str,
        table_id: str,
        status: TableStatus,
        server=UNSET,
        start_time=UNSET,
        expected_status: Optional[TableStatus] = None,
    ) -> bool:
        await self._round_trip()
        table = self._owned(self._tables.get(table_id), tenant_id)
        if table is None:
            return False
        if expected_status is not None and table.status != expected_status:
            return False
        table.status = status
        if server is not UNSET:
            table.server = server
        if start_time is not UNSET:
            table.start_time = start_time
        return True

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def add_order(self, order: Order) -> Order:
        await self._round_trip()
        stored = copy.deepcopy(order)
        stored.created_at = stored.created_at or self._now()
        stored.updated_at = stored.created_at
        for item in stored.items:
            self._items[item.id] = item
            self._item_order.append(item.id)
        stored.items = []
        self._orders[stored.id] = stored
        self._order_tenants[stored.id] = stored.tenant_id
        return self._assemble(stored)

    async def get_order(self, tenant_id: str, order_id: str) -> Optional[Order]:
        await self._round_trip()
        order = self._owned(self._orders.get(order_id), tenant_id)
        return self._assemble(order) if order else None

    async def list_orders(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> list[Order]:
        await self._round_trip()
        wanted = set(statuses) if statuses is not None else None
        orders = [
            o for o in self._orders.values()
            if o.tenant_id == tenant_id
            and (table_id is None or o.table_id == table_id)
            and (wanted is None or o.status in wanted)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [self._assemble(o) for o in orders]

    async def update_order_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> bool:
        await self._round_trip()
        order = self._owned(self._orders.get(order_id), tenant_id)
        if order is None:
            return False
        if expected_status is not None and order.status != expected_status:
            return False
        order.status = status
        order.updated_at = self._now()
        return True

    async def update_order_total(self, tenant_id: str, order_id: str, total: Decimal) -> bool:
        await self._round_trip()
        order = self._owned(self._orders.get(order_id), tenant_id)
        if order is None:
            return False
        order.total = total
        order.updated_at = self._now()
        return True

    # =========================================================================
    # ORDER ITEMS
    # =========================================================================

    async def add_order_item(self, tenant_id: str, item: OrderItem) -> OrderItem:
        await self._round_trip()
        if self._order_tenants.get(item.order_id) != tenant_id:
            raise KeyError(f"Order {item.order_id} not found")
        self._items[item.id] = copy.deepcopy(item)
        self._item_order.append(item.id)
        return copy.deepcopy(item)

    async def get_order_item(self, tenant_id: str, item_id: str) -> Optional[OrderItem]:
        await self._round_trip()
        return copy.deepcopy(self._item_for(tenant_id, item_id))

    async def update_order_item(
        self,
        tenant_id: str,
        item_id: str,
        status: Optional[OrderItemStatus] = None,
        quantity: Optional[int] = None,
        expected_status: Optional[OrderItemStatus] = None,
    ) -> bool:
        await self._round_trip()
        item = self._item_for(tenant_id, item_id)
        if item is None:
            return False
        if expected_status is not None and item.status != expected_status:
            return False
        if status is not None:
            item.status = status
        if quantity is not None:
            item.quantity = quantity
        return True

    async def update_order_items_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderItemStatus,
        only: Iterable[OrderItemStatus],
    ) -> int:
        await self._round_trip()
        if self._order_tenants.get(order_id) != tenant_id:
            return 0
        only = set(only)
        changed = 0
        for item in self._items.values():
            if item.order_id == order_id and item.status in only:
                item.status = status
                changed += 1
        return changed

    async def delete_order_item(self, tenant_id: str, item_id: str) -> bool:
        await self._round_trip()
        if self._item_for(tenant_id, item_id) is None:
            return False
        del self._items[item_id]
        self._item_order.remove(item_id)
        return True

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        await self._round_trip()
        self._reservations[reservation.id] = copy.deepcopy(reservation)
        return copy.deepcopy(reservation)

    async def get_reservation(self, tenant_id: str, reservation_id: str) -> Optional[Reservation]:
        await self._round_trip()
        return copy.deepcopy(self._owned(self._reservations.get(reservation_id), tenant_id))

    async def list_reservations(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        on: Optional[date] = None,
        statuses: Optional[Iterable[ReservationStatus]] = None,
    ) -> list[Reservation]:
        await self._round_trip()
        wanted = set(statuses) if statuses is not None else None
        found = [
            r for r in self._reservations.values()
            if r.tenant_id == tenant_id
            and (table_id is None or r.table_id == table_id)
            and (on is None or r.date == on)
            and (wanted is None or r.status in wanted)
        ]
        found.sort(key=lambda r: (r.date, r.time))
        return [copy.deepcopy(r) for r in found]

    async def update_reservation_status(
        self,
        tenant_id: str,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        await self._round_trip()
        reservation = self._owned(self._reservations.get(reservation_id), tenant_id)
        if reservation is None:
            return False
        if expected_status is not None and reservation.status != expected_status:
            return False
        reservation.status = status
        return True

    async def update_reservation(
        self,
        tenant_id: str,
        reservation_id: str,
        changes: dict,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        await self._round_trip()
        reservation = self._owned(self._reservations.get(reservation_id), tenant_id)
        if reservation is None:
            return False
        if expected_status is not None and reservation.status != expected_status:
            return False
        for name, value in changes.items():
            setattr(reservation, name, value)
        return True

    async def delete_reservation(self, tenant_id: str, reservation_id: str) -> bool:
        await self._round_trip()
        if self._owned(self._reservations.get(reservation_id), tenant_id) is None:
            return False
        del self._reservations[reservation_id]
        return True

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def add_payment(self, record: PaymentRecord) -> PaymentRecord:
        await self._round_trip()
        stored = copy.deepcopy(record)
        stored.created_at = stored.created_at or self._now()
        self._payments[stored.id] = stored
        return copy.deepcopy(stored)

    async def list_payments(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[PaymentRecord]:
        await self._round_trip()
        found = [
            p for p in self._payments.values()
            if p.tenant_id == tenant_id
            and (table_id is None or p.table_id == table_id)
            and (since is None or p.created_at >= since)
        ]
        found.sort(key=lambda p: p.created_at)
        return [copy.deepcopy(p) for p in found]

    async def health_check(self) -> bool:
        """The in-memory store is always available."""
        return True
