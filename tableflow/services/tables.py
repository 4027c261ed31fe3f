"""
Table Lifecycle Manager

Tables move between available, occupied and reserved. Staff may set any
status at any time (``set_status``). On top of that the manager applies
derived transitions, all through one function, ``reconcile``:

    ORDER_CREATED        available | reserved -> occupied
    RESERVATION_CHANGED  available -> reserved    (active reservation today)
                         reserved  -> available   (none left today)
                         occupied tables are left alone
    BILL_SETTLED         -> reserved if a reservation is still active today,
                         otherwise -> available, once no active order remains

Derived writes are compare-and-set against the status read at the start of
the reconciliation. If a staff member changed the table in between, the
derived transition is dropped: the explicit action wins.
"""

import enum
import logging
from datetime import date, datetime
from typing import Callable, Optional, Union

from tableflow.core.config import get_settings
from tableflow.core.exceptions import NotFoundError, ValidationError
from tableflow.domain import Table
from tableflow.events import EventBus, EventKind, LifecycleEvent
from tableflow.services.identity import BaseIdentityProvider
from tableflow.services.notifications import BaseNotificationSink, reports_failures
from tableflow.services.store import BaseStore
from tableflow.status import (
    ACTIVE_ORDER_STATUSES,
    ACTIVE_RESERVATION_STATUSES,
    TableStatus,
)

logger = logging.getLogger(__name__)


class Trigger(str, enum.Enum):
    """Why a table is being reconciled."""
    ORDER_CREATED = "order_created"
    RESERVATION_CHANGED = "reservation_changed"
    BILL_SETTLED = "bill_settled"


class TableLifecycleManager:
    """
    Owner of table occupancy.

    Attributes:
        store: Persistence collaborator
        bus: Event bus; table changes are published on it
        identity: Resolves the tenant
        notifier: Optional sink for success/failure messages
        now: Clock returning an aware datetime in the restaurant timezone
    """

    def __init__(
        self,
        store: BaseStore,
        bus: EventBus,
        identity: BaseIdentityProvider,
        notifier: Optional[BaseNotificationSink] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.bus = bus
        self.identity = identity
        self.notifier = notifier
        self.now = now or get_settings().now

    @property
    def tenant_id(self) -> str:
        return self.identity.current_actor().tenant_id

    def today(self) -> date:
        return self.now().date()

    async def get_table(self, table_id: str) -> Table:
        table = await self.store.get_table(self.tenant_id, table_id)
        if table is None:
            raise NotFoundError(f"Table {table_id} not found", {"table_id": table_id})
        return table

    async def list_tables(self) -> list[Table]:
        return await self.store.list_tables(self.tenant_id)

    async def _publish(self, table: Table, previous: TableStatus, new: TableStatus) -> None:
        await self.bus.publish(LifecycleEvent(
            kind=EventKind.TABLE_STATUS_CHANGED,
            table_id=table.id,
            previous_status=previous.value,
            new_status=new.value,
        ))

    # =========================================================================
    # EXPLICIT STAFF ACTIONS
    # =========================================================================

    @reports_failures("update table status")
    async def set_status(
        self,
        table_id: str,
        status: Union[TableStatus, str],
        server: Optional[str] = None,
    ) -> Table:
        """
        Apply a staff-chosen status. Always written (last writer wins).

        Occupying a table records the server and the start time; freeing it
        clears both.
        """
        try:
            status = TableStatus(getattr(status, "value", status))
        except ValueError:
            raise ValidationError(f"Unknown table status '{status}'")

        table = await self.get_table(table_id)
        fields = {}
        if status == TableStatus.OCCUPIED:
            if server:
                fields["server"] = server
            if table.status != TableStatus.OCCUPIED:
                fields["start_time"] = self.now()
        elif status == TableStatus.AVAILABLE:
            fields["server"] = None
            fields["start_time"] = None

        await self.store.update_table(self.tenant_id, table_id, status, **fields)
        logger.info(f"Table {table.number}: {table.status.value} -> {status.value} (staff)")

        await self._publish(table, table.status, status)
        if self.notifier is not None:
            self.notifier.success(f"Table status updated to: {status.value}")
        return await self.get_table(table_id)

    # =========================================================================
    # DERIVED TRANSITIONS
    # =========================================================================

    async def has_active_reservation(self, table_id: str, on: Optional[date] = None) -> bool:
        """True while a pending/confirmed reservation exists for the day."""
        reservations = await self.store.list_reservations(
            self.tenant_id,
            table_id=table_id,
            on=on or self.today(),
            statuses=ACTIVE_RESERVATION_STATUSES,
        )
        return bool(reservations)

    async def has_active_orders(self, table_id: str) -> bool:
        orders = await self.store.list_orders(
            self.tenant_id, table_id=table_id, statuses=ACTIVE_ORDER_STATUSES
        )
        return bool(orders)

    async def reconcile(
        self,
        table_id: str,
        trigger: Trigger,
        server: Optional[str] = None,
    ) -> Optional[TableStatus]:
        """
        Apply the derived transition for ``trigger``, if any.

        Returns:
            The status written, or None when the table was left as it is
        """
        table = await self.get_table(table_id)
        observed = table.status
        desired: Optional[TableStatus] = None
        fields = {}

        if trigger == Trigger.ORDER_CREATED:
            if observed in (TableStatus.AVAILABLE, TableStatus.RESERVED):
                desired = TableStatus.OCCUPIED
                fields["start_time"] = self.now()
                if server:
                    fields["server"] = server

        elif trigger == Trigger.RESERVATION_CHANGED:
            if observed != TableStatus.OCCUPIED:
                reserved = await self.has_active_reservation(table_id)
                if reserved and observed == TableStatus.AVAILABLE:
                    desired = TableStatus.RESERVED
                elif not reserved and observed == TableStatus.RESERVED:
                    desired = TableStatus.AVAILABLE

        elif trigger == Trigger.BILL_SETTLED:
            if not await self.has_active_orders(table_id):
                if await self.has_active_reservation(table_id):
                    desired = TableStatus.RESERVED
                else:
                    desired = TableStatus.AVAILABLE
                fields["server"] = None
                fields["start_time"] = None

        if desired is None or desired == observed:
            return None

        written = await self.store.update_table(
            self.tenant_id, table_id, desired, expected_status=observed, **fields
        )
        if not written:
            logger.info(
                f"Table {table.number}: {trigger.value} wanted {desired.value} but the "
                f"table changed since '{observed.value}' was read; leaving it"
            )
            return None

        logger.info(f"Table {table.number}: {observed.value} -> {desired.value} ({trigger.value})")
        await self._publish(table, observed, desired)
        return desired

    # =========================================================================
    # EVENT BUS
    # =========================================================================

    async def handle_event(self, event: LifecycleEvent) -> None:
        """React to order creation and reservation changes published on the bus."""
        if event.table_id is None:
            return

        if event.kind == EventKind.ORDER_CREATED:
            server = None
            if event.order_id:
                order = await self.store.get_order(self.tenant_id, event.order_id)
                server = order.server if order else None
            await self.reconcile(event.table_id, Trigger.ORDER_CREATED, server=server)

        elif event.kind == EventKind.RESERVATION_CHANGED:
            await self.reconcile(event.table_id, Trigger.RESERVATION_CHANGED)

    def attach(self, bus: Optional[EventBus] = None) -> Callable[[], None]:
        """Subscribe ``handle_event``; returns the unsubscribe callable."""
        return (bus if bus is not None else self.bus).subscribe(self.handle_event)
