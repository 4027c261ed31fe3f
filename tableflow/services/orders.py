"""
Order Lifecycle Manager

Owns order and order-item status, keeps ``order.total`` equal to the sum of
its non-cancelled lines, and publishes a lifecycle event after every
successful mutation.

Workflow:
    pending -> preparing -> ready -> delivered   (advance_status, one step)
    pending | preparing -> cancelled             (cancel_order)
    pending | preparing | ready -> delivered     (complete_order, settlement)

Status writes are compare-and-set against the status this manager read, so
a station holding a stale view can never move an order backwards.
"""

import logging
import uuid
from decimal import Decimal
from typing import Iterable, Optional, Union

from tableflow.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from tableflow.domain import Order, OrderItem, money
from tableflow.events import EventBus, EventKind, LifecycleEvent
from tableflow.schemas import ItemQuantityUpdate, OrderCreate, OrderItemCreate, validate_input
from tableflow.services.identity import BaseIdentityProvider
from tableflow.services.notifications import BaseNotificationSink, reports_failures
from tableflow.services.store import BaseStore
from tableflow.status import (
    CANCELLABLE_STATUSES,
    OrderItemStatus,
    OrderStatus,
    can_cancel,
    is_active,
    is_terminal,
    next_order_status,
)

logger = logging.getLogger(__name__)

ItemInput = Union[OrderItemCreate, dict]

_CANCELLABLE_ITEMS = frozenset(OrderItemStatus(s.value) for s in CANCELLABLE_STATUSES)


def _new_id() -> str:
    return str(uuid.uuid4())


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown {label} '{value}'")


class OrderLifecycleManager:
    """
    State machine for orders and their items.

    Attributes:
        store: Persistence collaborator
        bus: Event bus the transitions are published on
        identity: Resolves the acting user and therefore the tenant
        notifier: Optional sink for success/failure messages
    """

    def __init__(
        self,
        store: BaseStore,
        bus: EventBus,
        identity: BaseIdentityProvider,
        notifier: Optional[BaseNotificationSink] = None,
    ):
        self.store = store
        self.bus = bus
        self.identity = identity
        self.notifier = notifier

    @property
    def tenant_id(self) -> str:
        return self.identity.current_actor().tenant_id

    def _notify(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier.success(message)

    async def _require_order(self, order_id: str) -> Order:
        order = await self.store.get_order(self.tenant_id, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", {"order_id": order_id})
        return order

    async def _require_item(self, item_id: str) -> tuple[OrderItem, Order]:
        item = await self.store.get_order_item(self.tenant_id, item_id)
        if item is None:
            raise NotFoundError(f"Order item {item_id} not found", {"item_id": item_id})
        return item, await self._require_order(item.order_id)

    @staticmethod
    def _require_editable(order: Order) -> None:
        if is_terminal(order.status):
            raise InvalidTransitionError(
                "order", order.id, order.status, "modified",
                message=f"Order {order.id} is {order.status.value} and can no longer be changed",
            )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        return await self._require_order(order_id)

    async def orders_for_table(
        self,
        table_id: str,
        statuses: Optional[Iterable[OrderStatus]] = None,
    ) -> list[Order]:
        """Orders placed at ``table_id``, newest first."""
        return await self.store.list_orders(self.tenant_id, table_id=table_id, statuses=statuses)

    async def list_orders(self, statuses: Optional[Iterable[OrderStatus]] = None) -> list[Order]:
        """Every order of the tenant, newest first (kitchen display)."""
        return await self.store.list_orders(self.tenant_id, statuses=statuses)

    # =========================================================================
    # ORDER LIFECYCLE
    # =========================================================================

    @reports_failures("create order")
    async def create_order(
        self,
        table_id: str,
        server: str,
        items: list[ItemInput],
        notes: Optional[str] = None,
    ) -> str:
        """
        Place a new order at a table.

        Args:
            table_id: Table the order is for
            server: Name of the attending staff member
            items: At least one line (OrderItemCreate or equivalent dict)
            notes: Free text for the kitchen

        Returns:
            str: The new order id

        Raises:
            ValidationError: No items, blank server, bad line, unknown table
        """
        request = validate_input(
            OrderCreate,
            table_id=table_id,
            server=server,
            items=list(items or []),
            notes=notes,
        )

        tenant_id = self.tenant_id
        table = await self.store.get_table(tenant_id, request.table_id)
        if table is None:
            raise NotFoundError(f"Table {request.table_id} not found", {"table_id": request.table_id})

        order_id = _new_id()
        order = Order(
            id=order_id,
            tenant_id=tenant_id,
            table_id=table.id,
            server=request.server,
            status=OrderStatus.PENDING,
            notes=request.notes,
            items=[
                OrderItem(
                    id=_new_id(),
                    order_id=order_id,
                    menu_item_id=line.menu_item_id,
                    name=line.name,
                    price=money(line.price),
                    quantity=line.quantity,
                    notes=line.notes,
                    status=OrderItemStatus.PENDING,
                )
                for line in request.items
            ],
        )
        order.total = order.computed_total()

        await self.store.add_order(order)
        logger.info(
            f"Order {order_id} created at table {table.number} by {order.server} "
            f"({len(order.items)} items, total {order.total})"
        )

        await self.bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_CREATED,
            table_id=table.id,
            order_id=order_id,
            previous_status=None,
            new_status=OrderStatus.PENDING.value,
        ))
        self._notify(f"Order created for table {table.number}")
        return order_id

    @reports_failures("update order status")
    async def advance_status(self, order_id: str, target_status: Union[OrderStatus, str]) -> Order:
        """
        Move an order one step forward.

        Only the direct successor of the current status is accepted. Moving
        to ``ready`` flags the event as attention-required.

        Raises:
            InvalidTransitionError: Backward, skipping, cancelling, or leaving
                delivered/cancelled
        """
        target = _coerce(OrderStatus, target_status, "order status")
        order = await self._require_order(order_id)

        if next_order_status(order.status) != target:
            raise InvalidTransitionError("order", order_id, order.status, target)

        return await self._transition(order, target)

    @reports_failures("cancel order")
    async def cancel_order(self, order_id: str) -> Order:
        """
        Cancel an order that has not left the kitchen.

        Raises:
            InvalidTransitionError: If the order is ready, delivered or cancelled
        """
        order = await self._require_order(order_id)
        if not can_cancel(order.status):
            raise InvalidTransitionError("order", order_id, order.status, OrderStatus.CANCELLED)
        return await self._transition(order, OrderStatus.CANCELLED)

    @reports_failures("complete order")
    async def complete_order(self, order_id: str) -> Order:
        """
        Mark an active order delivered as part of settling its bill.

        Raises:
            InvalidTransitionError: If the order is already delivered or cancelled
        """
        order = await self._require_order(order_id)
        if not is_active(order.status):
            raise InvalidTransitionError("order", order_id, order.status, OrderStatus.DELIVERED)
        return await self._transition(order, OrderStatus.DELIVERED)

    async def _transition(self, order: Order, target: OrderStatus) -> Order:
        tenant_id = self.tenant_id
        previous = order.status

        written = await self.store.update_order_status(
            tenant_id, order.id, target, expected_status=previous
        )
        if not written:
            # Another station moved it while we were deciding
            current = await self._require_order(order.id)
            logger.warning(
                f"Order {order.id}: expected '{previous.value}' but found "
                f"'{current.status.value}', refusing '{target.value}'"
            )
            raise InvalidTransitionError("order", order.id, current.status, target)

        if target == OrderStatus.DELIVERED:
            await self.store.update_order_items_status(
                tenant_id, order.id, OrderItemStatus.DELIVERED,
                only=[s for s in OrderItemStatus if s != OrderItemStatus.CANCELLED],
            )
        elif target == OrderStatus.CANCELLED:
            await self.store.update_order_items_status(
                tenant_id, order.id, OrderItemStatus.CANCELLED, only=_CANCELLABLE_ITEMS,
            )
            await self.recompute_total(order.id)

        logger.info(f"Order {order.id}: {previous.value} -> {target.value}")

        await self.bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_STATUS_CHANGED,
            table_id=order.table_id,
            order_id=order.id,
            previous_status=previous.value,
            new_status=target.value,
            attention_required=target == OrderStatus.READY,
        ))
        self._notify(f"Order status updated to: {target.value}")
        return await self._require_order(order.id)

    async def recompute_total(self, order_id: str) -> Decimal:
        """
        Recalculate and persist ``order.total`` from its lines.

        Idempotent: nothing is written when the stored total is already right.
        """
        order = await self._require_order(order_id)
        total = order.computed_total()
        if total != order.total:
            await self.store.update_order_total(self.tenant_id, order_id, total)
            logger.debug(f"Order {order_id}: total {order.total} -> {total}")
        return total

    # =========================================================================
    # ORDER ITEMS
    # =========================================================================

    async def _items_changed(self, order: Order, item_id: Optional[str] = None) -> None:
        await self.recompute_total(order.id)
        await self.bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_ITEMS_CHANGED,
            table_id=order.table_id,
            order_id=order.id,
            previous_status=order.status.value,
            new_status=order.status.value,
            order_item_id=item_id,
        ))

    @reports_failures("add item")
    async def add_item(self, order_id: str, item: ItemInput) -> str:
        """Append a line to an active order. Returns the new item id."""
        line = item if isinstance(item, OrderItemCreate) else validate_input(OrderItemCreate, **item)
        order = await self._require_order(order_id)
        self._require_editable(order)

        new_item = OrderItem(
            id=_new_id(),
            order_id=order.id,
            menu_item_id=line.menu_item_id,
            name=line.name,
            price=money(line.price),
            quantity=line.quantity,
            notes=line.notes,
            status=OrderItemStatus.PENDING,
        )
        await self.store.add_order_item(self.tenant_id, new_item)
        logger.info(f"Order {order.id}: added {new_item.quantity} x {new_item.name}")

        await self._items_changed(order, new_item.id)
        self._notify("Item added to order")
        return new_item.id

    @reports_failures("remove item")
    async def remove_item(self, item_id: str) -> None:
        """Delete a line entered by mistake."""
        item, order = await self._require_item(item_id)
        self._require_editable(order)

        await self.store.delete_order_item(self.tenant_id, item_id)
        logger.info(f"Order {order.id}: removed {item.name}")

        await self._items_changed(order, item_id)
        self._notify("Item removed from order")

    @reports_failures("update item quantity")
    async def update_item_quantity(self, item_id: str, quantity: int) -> None:
        request = validate_input(ItemQuantityUpdate, quantity=quantity)
        item, order = await self._require_item(item_id)
        self._require_editable(order)
        if item.status == OrderItemStatus.CANCELLED:
            raise InvalidTransitionError(
                "order item", item_id, item.status, "modified",
                message=f"Item {item.name} is cancelled",
            )

        await self.store.update_order_item(self.tenant_id, item_id, quantity=request.quantity)
        await self._items_changed(order, item_id)

    @reports_failures("update item status")
    async def update_item_status(
        self,
        item_id: str,
        target_status: Union[OrderItemStatus, str],
    ) -> None:
        """
        Move one line through the kitchen workflow.

        Items follow the order graph: one step forward, or ``cancelled``
        (striking the line) while pending or preparing. Nothing moves once
        the order itself is delivered or cancelled.
        """
        target = _coerce(OrderItemStatus, target_status, "item status")
        item, order = await self._require_item(item_id)
        self._require_editable(order)

        if target == OrderItemStatus.CANCELLED:
            legal = item.status in _CANCELLABLE_ITEMS
        else:
            successor = next_order_status(OrderStatus(item.status.value))
            legal = successor is not None and successor.value == target.value
        if not legal:
            raise InvalidTransitionError("order item", item_id, item.status, target)

        written = await self.store.update_order_item(
            self.tenant_id, item_id, status=target, expected_status=item.status
        )
        if not written:
            current = await self.store.get_order_item(self.tenant_id, item_id)
            raise InvalidTransitionError(
                "order item", item_id, current.status if current else item.status, target
            )

        if target == OrderItemStatus.CANCELLED:
            await self.recompute_total(order.id)

        logger.info(f"Item {item_id} ({item.name}): {item.status.value} -> {target.value}")
        await self.bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_ITEM_STATUS_CHANGED,
            table_id=order.table_id,
            order_id=order.id,
            order_item_id=item_id,
            previous_status=item.status.value,
            new_status=target.value,
        ))
        self._notify(f"Item status updated to: {target.value}")
