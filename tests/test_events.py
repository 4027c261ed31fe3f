"""
Tests for the lifecycle event bus.

Delivery order, late subscribers, unsubscribing (including from inside a
publish) and listener failures.
"""
import pytest

from tableflow.events import EventBus, EventKind, LifecycleEvent


def _event(kind=EventKind.ORDER_CREATED, **kwargs):
    return LifecycleEvent(kind=kind, table_id=kwargs.pop("table_id", "t1"), **kwargs)


class TestDelivery:
    """Sequential delivery in subscription order."""

    @pytest.mark.asyncio
    async def test_listeners_called_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(lambda e: calls.append("first"))
        bus.subscribe(lambda e: calls.append("second"))

        async def third(e):
            calls.append("third")

        bus.subscribe(third)

        delivered = await bus.publish(_event())

        assert calls == ["first", "second", "third"]
        assert delivered == 3

    @pytest.mark.asyncio
    async def test_late_subscriber_misses_earlier_events(self):
        bus = EventBus()
        await bus.publish(_event(order_id="o1"))

        seen = []
        bus.subscribe(seen.append)
        await bus.publish(_event(order_id="o2"))

        assert [e.order_id for e in seen] == ["o2"]

    @pytest.mark.asyncio
    async def test_publish_without_listeners(self):
        assert await EventBus().publish(_event()) == 0

    def test_event_defaults(self):
        event = _event()
        assert event.attention_required is False
        assert event.previous_status is None
        assert event.timestamp.tzinfo is not None


class TestUnsubscribe:
    """Removing listeners."""

    @pytest.mark.asyncio
    async def test_unsubscribed_listener_receives_nothing(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()

        await bus.publish(_event())

        assert seen == []
        assert len(bus) == 0

    def test_unsubscribe_twice_is_harmless(self):
        bus = EventBus()
        unsubscribe = bus.subscribe(lambda e: None)
        unsubscribe()
        unsubscribe()
        assert len(bus) == 0

    @pytest.mark.asyncio
    async def test_listener_removed_during_publish_is_skipped(self):
        """A listener unsubscribed by an earlier one never sees the event."""
        bus = EventBus()
        seen = []
        handles = {}

        def remover(e):
            handles["victim"]()

        bus.subscribe(remover)
        handles["victim"] = bus.subscribe(lambda e: seen.append("victim"))

        delivered = await bus.publish(_event())

        assert seen == []
        assert delivered == 1

    @pytest.mark.asyncio
    async def test_listener_added_during_publish_waits_for_next_event(self):
        bus = EventBus()
        seen = []

        def adder(e):
            bus.subscribe(lambda ev: seen.append(ev.order_id))

        unsubscribe = bus.subscribe(adder)
        await bus.publish(_event(order_id="o1"))
        unsubscribe()
        await bus.publish(_event(order_id="o2"))

        assert seen == ["o2"]


class TestListenerFailures:
    """A failing listener does not break delivery."""

    @pytest.mark.asyncio
    async def test_raising_listener_is_logged_and_others_still_run(self, caplog):
        bus = EventBus("floor")
        seen = []

        def broken(e):
            raise RuntimeError("boom")

        async def broken_async(e):
            raise ValueError("async boom")

        bus.subscribe(broken)
        bus.subscribe(broken_async)
        bus.subscribe(seen.append)

        delivered = await bus.publish(_event(order_id="o1"))

        assert len(seen) == 1
        assert delivered == 1
        assert "listener" in caplog.text
        assert "boom" in caplog.text


class TestRepeatedSubscriptions:
    """The same callable registered more than once."""

    @pytest.mark.asyncio
    async def test_removing_later_registration_during_publish(self):
        bus = EventBus()
        calls = []
        handles = []

        def listener(e):
            calls.append("hit")
            handles[1]()

        handles.append(bus.subscribe(listener))
        handles.append(bus.subscribe(listener))

        await bus.publish(_event())

        assert calls == ["hit"]
        assert len(bus) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_its_own_registration(self):
        bus = EventBus()
        calls = []

        def shared(e):
            calls.append("shared")

        bus.subscribe(shared)
        bus.subscribe(lambda e: calls.append("first"))
        remove_second = bus.subscribe(shared)

        remove_second()
        await bus.publish(_event())

        assert calls == ["shared", "first"]

    def test_empty_bus_is_truthy(self):
        bus = EventBus()
        assert len(bus) == 0
        assert bus
