"""
Tests for the status vocabulary.
"""
import pytest

from tableflow.status import (
    UNRECOGNIZED,
    OrderItemStatus,
    OrderStatus,
    ReservationStatus,
    TableStatus,
    can_cancel,
    is_active,
    is_terminal,
    next_order_status,
    parse_status,
)


class TestParseStatus:
    """Raw values coming back from the store."""

    @pytest.mark.parametrize("raw,expected", [
        ("pending", OrderStatus.PENDING),
        ("READY", OrderStatus.READY),
        (OrderStatus.DELIVERED, OrderStatus.DELIVERED),
    ])
    def test_known_values(self, raw, expected):
        assert parse_status(OrderStatus, raw) == expected

    @pytest.mark.parametrize("raw", ["served", "", None, 3])
    def test_unknown_values_are_unrecognized(self, raw):
        assert parse_status(OrderStatus, raw) == UNRECOGNIZED

    def test_other_vocabularies(self):
        assert parse_status(TableStatus, "occupied") == TableStatus.OCCUPIED
        assert parse_status(ReservationStatus, "confirmed") == ReservationStatus.CONFIRMED
        assert parse_status(TableStatus, "cleaning") == UNRECOGNIZED


class TestOrderWorkflow:
    """Forward graph and cancellation rules."""

    def test_successors(self):
        assert next_order_status(OrderStatus.PENDING) == OrderStatus.PREPARING
        assert next_order_status(OrderStatus.PREPARING) == OrderStatus.READY
        assert next_order_status(OrderStatus.READY) == OrderStatus.DELIVERED
        assert next_order_status(OrderStatus.DELIVERED) is None
        assert next_order_status(OrderStatus.CANCELLED) is None

    def test_item_status_shares_the_graph(self):
        assert next_order_status(OrderItemStatus.PREPARING) == OrderStatus.READY

    def test_cancellable_only_before_ready(self):
        assert can_cancel(OrderStatus.PENDING)
        assert can_cancel(OrderStatus.PREPARING)
        assert not can_cancel(OrderStatus.READY)
        assert not can_cancel(OrderStatus.DELIVERED)
        assert not can_cancel(OrderItemStatus.CANCELLED)

    def test_terminal_and_active_partition_statuses(self):
        for status in OrderStatus:
            assert is_terminal(status) != is_active(status)
