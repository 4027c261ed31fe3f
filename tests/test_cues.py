"""
Tests for floor-plan attention cues.
"""
import pytest

from tableflow.events import EventBus, EventKind, LifecycleEvent
from tableflow.services.cues import NOTIFICATION_SOUND, AttentionCueListener, RecordingCueSink
from tableflow.status import OrderStatus


class TestAttentionCueListener:
    """A ready order blinks its table and plays a sound."""

    @pytest.mark.asyncio
    async def test_ready_order_blinks_table(self, floor, tables, make_item, cue_sink, clock):
        order_id = await floor.orders.create_order("t1", "Ana", [make_item()])
        await floor.orders.advance_status(order_id, OrderStatus.PREPARING)
        assert floor.cues.blinking_tables() == set()

        await floor.orders.advance_status(order_id, OrderStatus.READY)

        assert floor.cues.is_blinking("t1")
        assert not floor.cues.is_blinking("t2")
        assert cue_sink.played == [NOTIFICATION_SOUND]

    @pytest.mark.asyncio
    async def test_blink_expires(self, clock):
        bus = EventBus()
        sink = RecordingCueSink()
        listener = AttentionCueListener(sink, blink_seconds=10.0, clock=clock)
        listener.attach(bus)

        await bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_STATUS_CHANGED, table_id="t1", order_id="o1",
            previous_status="preparing", new_status="ready", attention_required=True,
        ))

        clock.advance(9.9)
        assert listener.blinking_tables() == {"t1"}
        clock.advance(0.2)
        assert listener.blinking_tables() == set()

    @pytest.mark.asyncio
    async def test_other_events_ignored(self, clock):
        bus = EventBus()
        sink = RecordingCueSink()
        listener = AttentionCueListener(sink, blink_seconds=10.0, clock=clock)
        unsubscribe = listener.attach(bus)

        await bus.publish(LifecycleEvent(kind=EventKind.ORDER_CREATED, table_id="t1"))
        unsubscribe()
        await bus.publish(LifecycleEvent(
            kind=EventKind.ORDER_STATUS_CHANGED, table_id="t1", attention_required=True,
        ))

        assert sink.played == []
        assert not listener.is_blinking("t1")
