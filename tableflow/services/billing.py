"""
Bill Aggregator

Collects a table's active orders into a bill and settles it:

    bill = await billing.generate_bill(table_id)
    tx = PaymentProcessor().build_transaction("cash", tip, received, bill.subtotal)
    record = await billing.finalize_bill(bill, tx)

Finalizing re-reads every order of the snapshot first. If any of them was
cancelled, delivered or repriced since the bill was generated the bill is
stale and nothing changes. Only one finalize per table runs at a time.

The cashier view lists ``open_bills()`` for every table and the
``recent_payments()`` of the last day.
"""

import asyncio
import contextlib
import logging
import uuid
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Optional

from tableflow.core.config import get_settings
from tableflow.core.exceptions import (
    EmptyBillError,
    InvalidTransitionError,
    StaleBillError,
    ValidationError,
)
from tableflow.domain import Bill, PaymentRecord, PaymentTransaction, money
from tableflow.events import EventBus, EventKind, LifecycleEvent
from tableflow.services.identity import BaseIdentityProvider
from tableflow.services.notifications import BaseNotificationSink, reports_failures
from tableflow.services.orders import OrderLifecycleManager
from tableflow.services.store import BaseStore
from tableflow.services.tables import TableLifecycleManager, Trigger
from tableflow.status import ACTIVE_ORDER_STATUSES, OrderStatus, is_active

logger = logging.getLogger(__name__)

# How far back the cashier view lists settled bills
RECENT_PAYMENTS_WINDOW = timedelta(hours=24)


class _TableLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class BillAggregator:
    """
    Generates and settles table bills.

    Attributes:
        store: Persistence collaborator
        bus: Event bus ``bill_settled`` is published on
        identity: Resolves the tenant and the cashier
        orders: Used to complete the billed orders
        tables: Told to reconcile the table once the bill is paid
        notifier: Optional sink for success/failure messages
        now: Clock for ``Bill.generated_at`` and the payment record
    """

    def __init__(
        self,
        store: BaseStore,
        bus: EventBus,
        identity: BaseIdentityProvider,
        orders: OrderLifecycleManager,
        tables: TableLifecycleManager,
        notifier: Optional[BaseNotificationSink] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.bus = bus
        self.identity = identity
        self.orders = orders
        self.tables = tables
        self.notifier = notifier
        self.now = now or get_settings().now
        self._locks: dict[tuple[str, str], _TableLock] = {}

    @property
    def tenant_id(self) -> str:
        return self.identity.current_actor().tenant_id

    @reports_failures("generate bill")
    async def generate_bill(self, table_id: str) -> Bill:
        """
        Snapshot the billable orders of a table.

        Raises:
            NotFoundError: Unknown table
            EmptyBillError: No pending, preparing or ready order
        """
        table = await self.tables.get_table(table_id)
        orders = await self.store.list_orders(
            self.tenant_id, table_id=table_id, statuses=ACTIVE_ORDER_STATUSES
        )
        if not orders:
            raise EmptyBillError(
                f"Table {table.number} has no orders to bill", {"table_id": table_id}
            )

        bill = Bill(table=table, orders=orders, generated_at=self.now())
        logger.info(f"Bill for table {table.number}: {len(orders)} orders, subtotal {bill.subtotal}")
        return bill

    async def open_bills(self) -> list[Bill]:
        """
        One bill per table of the tenant that has billable orders.

        Tables keep the store's listing order; tables with nothing to bill
        are left out.
        """
        tenant_id = self.tenant_id
        tables = await self.store.list_tables(tenant_id)
        orders = await self.store.list_orders(tenant_id, statuses=ACTIVE_ORDER_STATUSES)

        by_table: dict[str, list] = {}
        for order in orders:
            by_table.setdefault(order.table_id, []).append(order)

        generated_at = self.now()
        bills = [
            Bill(table=table, orders=by_table[table.id], generated_at=generated_at)
            for table in tables
            if table.id in by_table
        ]
        logger.debug(f"{len(bills)} open bills for tenant {tenant_id}")
        return bills

    async def recent_payments(self, since: Optional[datetime] = None) -> list[PaymentRecord]:
        """Payments recorded since ``since`` (default: the last 24 hours), oldest first."""
        if since is None:
            since = self.now() - RECENT_PAYMENTS_WINDOW
        return await self.store.list_payments(self.tenant_id, since=since)

    @reports_failures("process payment")
    async def finalize_bill(self, bill: Bill, transaction: PaymentTransaction) -> PaymentRecord:
        """
        Settle a bill with a validated transaction.

        Completes every billed order, stores the payment, lets the table
        manager free the table and publishes ``bill_settled``.

        Raises:
            ValidationError: Transaction built for a different subtotal
            StaleBillError: The snapshot no longer matches the store
        """
        if money(transaction.subtotal) != bill.subtotal:
            raise ValidationError(
                f"Payment subtotal {transaction.subtotal} does not match the bill subtotal {bill.subtotal}",
                {"bill_subtotal": str(bill.subtotal), "payment_subtotal": str(transaction.subtotal)},
            )

        table_id = bill.table.id
        async with self._table_lock(table_id):
            await self._check_fresh(bill)

            for order in bill.orders:
                try:
                    await self.orders.complete_order(order.id)
                except InvalidTransitionError as e:
                    logger.warning(f"Order {order.id} changed while settling table {bill.table.number}")
                    raise StaleBillError(
                        f"Order {order.id} is now {getattr(e.current, 'value', e.current)}; "
                        f"regenerate the bill",
                        {"order_id": order.id, "table_id": table_id},
                    ) from e

            actor = self.identity.current_actor()
            record = PaymentRecord(
                id=str(uuid.uuid4()),
                tenant_id=actor.tenant_id,
                table_id=table_id,
                order_ids=bill.order_ids,
                method=transaction.method,
                total_amount=bill.subtotal,
                tip_amount=transaction.tip_amount,
                received_amount=transaction.received_amount,
                change_amount=transaction.change_amount,
                processed_by=actor.id,
                created_at=self.now(),
            )
            await self.store.add_payment(record)
            logger.info(
                f"Table {bill.table.number} settled by {transaction.method.value}: "
                f"{transaction.total} (tip {transaction.tip_amount})"
            )

            await self.tables.reconcile(table_id, Trigger.BILL_SETTLED)

        await self.bus.publish(LifecycleEvent(
            kind=EventKind.BILL_SETTLED,
            table_id=table_id,
            new_status=OrderStatus.DELIVERED.value,
        ))
        if self.notifier is not None:
            self.notifier.success("Payment processed")
        return record

    async def _check_fresh(self, bill: Bill) -> None:
        for snapshot in bill.orders:
            current = await self.store.get_order(self.tenant_id, snapshot.id)
            if current is None or not is_active(current.status):
                status = current.status.value if current else "deleted"
                raise StaleBillError(
                    f"Order {snapshot.id} is {status}; regenerate the bill",
                    {"order_id": snapshot.id, "status": status},
                )
            if current.total != snapshot.total:
                raise StaleBillError(
                    f"Order {snapshot.id} changed from {snapshot.total} to {current.total}; "
                    f"regenerate the bill",
                    {"order_id": snapshot.id},
                )

    @contextlib.asynccontextmanager
    async def _table_lock(self, table_id: str) -> AsyncIterator[None]:
        """Serialize finalizes of one table; the entry goes once nobody holds or awaits it."""
        key = (self.tenant_id, table_id)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _TableLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]
