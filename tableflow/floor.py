"""
Front of house.

Wires one event bus, store, identity, notification sink, cue listener and
the managers together for a station session:

    floor = FrontOfHouse.from_settings(actor)
    order_id = await floor.orders.create_order(table_id, "Ana", items)
    record = await floor.settle_table(table_id, "cash", tip="1.50", received="20")
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union

from tableflow.core.config import get_logger, get_settings
from tableflow.domain import PaymentRecord
from tableflow.events import EventBus
from tableflow.services.billing import BillAggregator
from tableflow.services.cues import AttentionCueListener, BaseCueSink
from tableflow.services.identity import Actor, BaseIdentityProvider, StaticIdentityProvider
from tableflow.services.notifications import BaseNotificationSink, get_notification_sink
from tableflow.services.orders import OrderLifecycleManager
from tableflow.services.payment import PaymentProcessor
from tableflow.services.reservations import ReservationManager
from tableflow.services.store import BaseStore, get_store
from tableflow.services.tables import TableLifecycleManager
from tableflow.status import PaymentMethod

logger = get_logger(__name__)


class FrontOfHouse:
    """Composition root for one station session."""

    def __init__(
        self,
        store: BaseStore,
        identity: BaseIdentityProvider,
        notifier: Optional[BaseNotificationSink] = None,
        cue_sink: Optional[BaseCueSink] = None,
        bus: Optional[EventBus] = None,
        now: Optional[Callable[[], datetime]] = None,
        blink_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.identity = identity
        self.notifier = notifier
        self.bus = bus if bus is not None else EventBus()

        self.orders = OrderLifecycleManager(store, self.bus, identity, notifier)
        self.tables = TableLifecycleManager(store, self.bus, identity, notifier, now=now)
        self.reservations = ReservationManager(store, self.bus, identity, notifier)
        self.billing = BillAggregator(
            store, self.bus, identity, self.orders, self.tables, notifier, now=now
        )
        self.payments = PaymentProcessor()
        self.cues = AttentionCueListener(cue_sink, blink_seconds=blink_seconds, clock=clock)

        self._detach = [self.tables.attach(self.bus), self.cues.attach(self.bus)]
        logger.info(
            f"Front of house ready (store={store.provider_name}, "
            f"tenant={identity.current_actor().tenant_id})"
        )

    @classmethod
    def from_settings(cls, actor: Actor, cue_sink: Optional[BaseCueSink] = None) -> "FrontOfHouse":
        """Build a session from the configured store and notification sink."""
        settings = get_settings()
        return cls(
            store=get_store(),
            identity=StaticIdentityProvider(actor),
            notifier=get_notification_sink(),
            cue_sink=cue_sink,
            now=settings.now,
            blink_seconds=settings.attention_blink_seconds,
        )

    def close(self) -> None:
        """Unsubscribe the table manager and the cue listener."""
        for detach in self._detach:
            detach()
        self._detach = []

    async def health_check(self) -> bool:
        return await self.store.health_check()

    async def settle_table(
        self,
        table_id: str,
        method: Union[PaymentMethod, str],
        tip: Union[Decimal, int, float, str] = Decimal("0"),
        received: Optional[Union[Decimal, int, float, str]] = None,
    ) -> PaymentRecord:
        """Generate the table's bill, build the transaction and finalize it."""
        bill = await self.billing.generate_bill(table_id)
        transaction = self.payments.build_transaction(
            method, tip_amount=tip, received_amount=received, subtotal=bill.subtotal
        )
        return await self.billing.finalize_bill(bill, transaction)
