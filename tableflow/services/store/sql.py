"""
SQL Store Implementation

Production implementation of the persistence collaborator on top of the
SQLAlchemy async ORM. Used when ENV_MODE is production or staging.

Each method opens its own session and transaction: one call, one round
trip. Compare-and-set writes are a single ``UPDATE ... WHERE status = ?``
so the database arbitrates between racing stations.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tableflow.domain import Order, OrderItem, PaymentRecord, Reservation, Table
from tableflow.models import OrderItemRow, OrderRow, PaymentRow, ReservationRow, TableRow
from tableflow.services.store.base import UNSET, BaseStore
from tableflow.status import OrderItemStatus, OrderStatus, ReservationStatus, TableStatus

logger = logging.getLogger(__name__)


# =============================================================================
# ROW <-> RECORD MAPPING
# =============================================================================

def _table(row: TableRow) -> Table:
    return Table(
        id=row.id,
        tenant_id=row.tenant_id,
        number=row.number,
        capacity=row.capacity,
        shape=row.shape,
        x=row.x,
        y=row.y,
        width=row.width,
        height=row.height,
        status=row.status,
        server=row.server,
        start_time=row.start_time,
    )


def _item(row: OrderItemRow) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        menu_item_id=row.menu_item_id,
        name=row.name,
        price=Decimal(row.price),
        quantity=row.quantity,
        notes=row.notes,
        status=row.status,
    )


def _order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        tenant_id=row.tenant_id,
        table_id=row.table_id,
        server=row.server,
        status=row.status,
        total=Decimal(row.total),
        notes=row.notes,
        items=[_item(i) for i in row.items],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _reservation(row: ReservationRow) -> Reservation:
    return Reservation(
        id=row.id,
        tenant_id=row.tenant_id,
        table_id=row.table_id,
        customer_name=row.customer_name,
        people=row.people,
        date=row.date,
        time=row.time,
        contact=row.contact,
        notes=row.notes,
        status=row.status,
    )


def _payment(row: PaymentRow) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        table_id=row.table_id,
        order_ids=list(row.order_ids),
        method=row.payment_method,
        total_amount=Decimal(row.total_amount),
        tip_amount=Decimal(row.tip_amount),
        received_amount=Decimal(row.received_amount),
        change_amount=Decimal(row.change_amount),
        processed_by=row.processed_by,
        created_at=row.created_at,
    )


class SqlStore(BaseStore):
    """
    Relational store.

    Example:
        >>> engine = create_engine()
        >>> store = SqlStore(create_session_maker(engine))
        >>> await store.list_tables("admin-1")
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        logger.info("SqlStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def _write(self, statement) -> int:
        """Run one UPDATE/DELETE in its own transaction; return rows affected."""
        async with self._session_maker() as session:
            async with session.begin():
                result = await session.execute(
                    statement.execution_options(synchronize_session=False)
                )
                return result.rowcount or 0

    async def _order_belongs(self, session: AsyncSession, tenant_id: str, order_id: str) -> bool:
        found = await session.scalar(
            select(OrderRow.id).where(OrderRow.id == order_id, OrderRow.tenant_id == tenant_id)
        )
        return found is not None

    # =========================================================================
    # TABLES
    # =========================================================================

    async def add_table(self, table: Table) -> Table:
        async with self._session_maker() as session:
            async with session.begin():
                session.add(TableRow(
                    id=table.id,
                    tenant_id=table.tenant_id,
                    number=table.number,
                    capacity=table.capacity,
                    shape=table.shape,
                    x=table.x,
                    y=table.y,
                    width=table.width,
                    height=table.height,
                    status=table.status,
                    server=table.server,
                    start_time=table.start_time,
                ))
        return table

    async def get_table(self, tenant_id: str, table_id: str) -> Optional[Table]:
        async with self._session_maker() as session:
            row = await session.scalar(
                select(TableRow).where(TableRow.id == table_id, TableRow.tenant_id == tenant_id)
            )
            return _table(row) if row else None

    async def list_tables(self, tenant_id: str) -> list[Table]:
        async with self._session_maker() as session:
            rows = await session.scalars(
                select(TableRow).where(TableRow.tenant_id == tenant_id).order_by(TableRow.number)
            )
            return [_table(r) for r in rows]

    async def update_table(
        self,
        tenant_id: str,
        table_id: str,
        status: TableStatus,
        server=UNSET,
        start_time=UNSET,
        expected_status: Optional[TableStatus] = None,
    ) -> bool:
        values = {"status": status}
        if server is not UNSET:
            values["server"] = server
        if start_time is not UNSET:
            values["start_time"] = start_time

        statement = update(TableRow).where(
            TableRow.id == table_id, TableRow.tenant_id == tenant_id
        )
        if expected_status is not None:
            statement = statement.where(TableRow.status == expected_status)
        return await self._write(statement.values(**values)) > 0

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def add_order(self, order: Order) -> Order:
        created_at = order.created_at or self._now()
        async with self._session_maker() as session:
            async with session.begin():
                session.add(OrderRow(
                    id=order.id,
                    tenant_id=order.tenant_id,
                    table_id=order.table_id,
                    server=order.server,
                    status=order.status,
                    total=order.total,
                    notes=order.notes,
                    created_at=created_at,
                    updated_at=created_at,
                    items=[
                        OrderItemRow(
                            id=item.id,
                            position=position,
                            menu_item_id=item.menu_item_id,
                            name=item.name,
                            price=item.price,
                            quantity=item.quantity,
                            notes=item.notes,
                            status=item.status,
                        )
                        for position, item in enumerate(order.items)
                    ],
                ))
        order.created_at = created_at
        order.updated_at = created_at
        return order

    async def get_order(self, tenant_id: str, order_id: str) -> Optional[Order]:
        async with self._session_maker() as session:
            row = await session.scalar(
                select(OrderRow).where(OrderRow.id == order_id, OrderRow.tenant_id == tenant_id)
            )
            return _order(row) if row else None

    async def list_orders(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> list[Order]:
        query = select(OrderRow).where(OrderRow.tenant_id == tenant_id)
        if table_id is not None:
            query = query.where(OrderRow.table_id == table_id)
        if statuses is not None:
            query = query.where(OrderRow.status.in_(list(statuses)))
        query = query.order_by(OrderRow.created_at.desc())

        async with self._session_maker() as session:
            rows = await session.scalars(query)
            return [_order(r) for r in rows]

    async def update_order_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderStatus,
        expected_status: Optional[OrderStatus] = None,
    ) -> bool:
        statement = update(OrderRow).where(
            OrderRow.id == order_id, OrderRow.tenant_id == tenant_id
        )
        if expected_status is not None:
            statement = statement.where(OrderRow.status == expected_status)
        return await self._write(statement.values(status=status, updated_at=self._now())) > 0

    async def update_order_total(self, tenant_id: str, order_id: str, total: Decimal) -> bool:
        statement = (
            update(OrderRow)
            .where(OrderRow.id == order_id, OrderRow.tenant_id == tenant_id)
            .values(total=total, updated_at=self._now())
        )
        return await self._write(statement) > 0

    # =========================================================================
    # ORDER ITEMS
    # =========================================================================

    def _items_of_tenant(self, tenant_id: str):
        return select(OrderRow.id).where(OrderRow.tenant_id == tenant_id)

    async def add_order_item(self, tenant_id: str, item: OrderItem) -> OrderItem:
        async with self._session_maker() as session:
            async with session.begin():
                if not await self._order_belongs(session, tenant_id, item.order_id):
                    raise KeyError(f"Order {item.order_id} not found")
                last = await session.scalar(
                    select(func.coalesce(func.max(OrderItemRow.position), -1))
                    .where(OrderItemRow.order_id == item.order_id)
                )
                session.add(OrderItemRow(
                    id=item.id,
                    order_id=item.order_id,
                    position=last + 1,
                    menu_item_id=item.menu_item_id,
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                    notes=item.notes,
                    status=item.status,
                ))
        return item

    async def get_order_item(self, tenant_id: str, item_id: str) -> Optional[OrderItem]:
        async with self._session_maker() as session:
            row = await session.scalar(
                select(OrderItemRow).where(
                    OrderItemRow.id == item_id,
                    OrderItemRow.order_id.in_(self._items_of_tenant(tenant_id)),
                )
            )
            return _item(row) if row else None

    async def update_order_item(
        self,
        tenant_id: str,
        item_id: str,
        status: Optional[OrderItemStatus] = None,
        quantity: Optional[int] = None,
        expected_status: Optional[OrderItemStatus] = None,
    ) -> bool:
        values = {}
        if status is not None:
            values["status"] = status
        if quantity is not None:
            values["quantity"] = quantity
        if not values:
            return await self.get_order_item(tenant_id, item_id) is not None

        statement = update(OrderItemRow).where(
            OrderItemRow.id == item_id,
            OrderItemRow.order_id.in_(self._items_of_tenant(tenant_id)),
        )
        if expected_status is not None:
            statement = statement.where(OrderItemRow.status == expected_status)
        return await self._write(statement.values(**values)) > 0

    async def update_order_items_status(
        self,
        tenant_id: str,
        order_id: str,
        status: OrderItemStatus,
        only: Iterable[OrderItemStatus],
    ) -> int:
        statement = (
            update(OrderItemRow)
            .where(
                OrderItemRow.order_id == order_id,
                OrderItemRow.order_id.in_(self._items_of_tenant(tenant_id)),
                OrderItemRow.status.in_(list(only)),
            )
            .values(status=status)
        )
        return await self._write(statement)

    async def delete_order_item(self, tenant_id: str, item_id: str) -> bool:
        statement = delete(OrderItemRow).where(
            OrderItemRow.id == item_id,
            OrderItemRow.order_id.in_(self._items_of_tenant(tenant_id)),
        )
        return await self._write(statement) > 0

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    async def add_reservation(self, reservation: Reservation) -> Reservation:
        async with self._session_maker() as session:
            async with session.begin():
                session.add(ReservationRow(
                    id=reservation.id,
                    tenant_id=reservation.tenant_id,
                    table_id=reservation.table_id,
                    customer_name=reservation.customer_name,
                    people=reservation.people,
                    date=reservation.date,
                    time=reservation.time,
                    contact=reservation.contact,
                    notes=reservation.notes,
                    status=reservation.status,
                ))
        return reservation

    async def get_reservation(self, tenant_id: str, reservation_id: str) -> Optional[Reservation]:
        async with self._session_maker() as session:
            row = await session.scalar(
                select(ReservationRow).where(
                    ReservationRow.id == reservation_id,
                    ReservationRow.tenant_id == tenant_id,
                )
            )
            return _reservation(row) if row else None

    async def list_reservations(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        on: Optional[date] = None,
        statuses: Optional[Iterable[ReservationStatus]] = None,
    ) -> list[Reservation]:
        query = select(ReservationRow).where(ReservationRow.tenant_id == tenant_id)
        if table_id is not None:
            query = query.where(ReservationRow.table_id == table_id)
        if on is not None:
            query = query.where(ReservationRow.date == on)
        if statuses is not None:
            query = query.where(ReservationRow.status.in_(list(statuses)))
        query = query.order_by(ReservationRow.date, ReservationRow.time)

        async with self._session_maker() as session:
            rows = await session.scalars(query)
            return [_reservation(r) for r in rows]

    async def update_reservation_status(
        self,
        tenant_id: str,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        statement = update(ReservationRow).where(
            ReservationRow.id == reservation_id,
            ReservationRow.tenant_id == tenant_id,
        )
        if expected_status is not None:
            statement = statement.where(ReservationRow.status == expected_status)
        return await self._write(statement.values(status=status)) > 0

    async def update_reservation(
        self,
        tenant_id: str,
        reservation_id: str,
        changes: dict,
        expected_status: Optional[ReservationStatus] = None,
    ) -> bool:
        statement = update(ReservationRow).where(
            ReservationRow.id == reservation_id,
            ReservationRow.tenant_id == tenant_id,
        )
        if expected_status is not None:
            statement = statement.where(ReservationRow.status == expected_status)
        return await self._write(statement.values(**changes)) > 0

    async def delete_reservation(self, tenant_id: str, reservation_id: str) -> bool:
        statement = delete(ReservationRow).where(
            ReservationRow.id == reservation_id,
            ReservationRow.tenant_id == tenant_id,
        )
        return await self._write(statement) > 0

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def add_payment(self, record: PaymentRecord) -> PaymentRecord:
        created_at = record.created_at or self._now()
        async with self._session_maker() as session:
            async with session.begin():
                session.add(PaymentRow(
                    id=record.id,
                    tenant_id=record.tenant_id,
                    table_id=record.table_id,
                    order_ids=list(record.order_ids),
                    payment_method=record.method,
                    total_amount=record.total_amount,
                    tip_amount=record.tip_amount,
                    received_amount=record.received_amount,
                    change_amount=record.change_amount,
                    processed_by=record.processed_by,
                    created_at=created_at,
                ))
        record.created_at = created_at
        return record

    async def list_payments(
        self,
        tenant_id: str,
        table_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[PaymentRecord]:
        query = select(PaymentRow).where(PaymentRow.tenant_id == tenant_id)
        if table_id is not None:
            query = query.where(PaymentRow.table_id == table_id)
        if since is not None:
            query = query.where(PaymentRow.created_at >= since)
        query = query.order_by(PaymentRow.created_at)

        async with self._session_maker() as session:
            rows = await session.scalars(query)
            return [_payment(r) for r in rows]

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def health_check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
