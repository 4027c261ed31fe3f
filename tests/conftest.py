"""
Pytest fixtures for the coordination core.

Everything runs against MemoryStore with a fixed clock so "today" and the
blink window are deterministic.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from tableflow.domain import Table
from tableflow.events import EventBus
from tableflow.floor import FrontOfHouse
from tableflow.services.cues import RecordingCueSink
from tableflow.services.identity import Actor, Role, StaticIdentityProvider
from tableflow.services.notifications import RecordingNotificationSink
from tableflow.services.store import MemoryStore

ADMIN_ID = "admin-1"
NOW = datetime(2026, 10, 19, 20, 30, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic seconds under test control."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


def _item(name="Paella", price="14.50", quantity=1, menu_item_id=None, **extra):
    return {
        "menu_item_id": menu_item_id or f"menu-{name.lower()}",
        "name": name,
        "price": Decimal(price),
        "quantity": quantity,
        **extra,
    }


@pytest.fixture
def make_item():
    """Factory for order-line input dicts."""
    return _item


@pytest.fixture
def now():
    """The fixed "current time" every manager sees."""
    return NOW


@pytest.fixture
def admin():
    return Actor(id=ADMIN_ID, email="owner@example.com", role=Role.ADMIN)


@pytest.fixture
def waiter():
    return Actor(id="waiter-1", email="ana@example.com", role=Role.WAITER, admin_id=ADMIN_ID)


@pytest.fixture
def identity(waiter):
    return StaticIdentityProvider(waiter)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def bus():
    return EventBus("test")


@pytest.fixture
def notifier():
    return RecordingNotificationSink()


@pytest.fixture
def cue_sink():
    return RecordingCueSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def floor(store, identity, notifier, cue_sink, bus, clock):
    front = FrontOfHouse(
        store=store,
        identity=identity,
        notifier=notifier,
        cue_sink=cue_sink,
        bus=bus,
        now=lambda: NOW,
        blink_seconds=10.0,
        clock=clock,
    )
    yield front
    front.close()


@pytest_asyncio.fixture
async def tables(store):
    """Two tables of the admin's restaurant and one of another tenant."""
    t1 = await store.add_table(Table(id="t1", tenant_id=ADMIN_ID, number="1"))
    t2 = await store.add_table(Table(id="t2", tenant_id=ADMIN_ID, number="2", capacity=6))
    other = await store.add_table(Table(id="x1", tenant_id="admin-2", number="1"))
    return {"t1": t1, "t2": t2, "other": other}
