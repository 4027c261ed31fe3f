"""
Tests for ReservationManager.
"""
from datetime import date, time

import pytest

from tableflow.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from tableflow.events import EventKind
from tableflow.status import ReservationStatus


async def _book(floor, **overrides):
    data = {
        "table_id": "t2",
        "customer_name": "  Ana Ruiz ",
        "people": 5,
        "date": date(2026, 11, 2),
        "time": time(20, 30),
        "contact": "600 000 000",
    }
    data.update(overrides)
    return await floor.reservations.create_reservation(**data)


class TestCreateReservation:
    """Booking tables."""

    @pytest.mark.asyncio
    async def test_create_defaults_to_pending(self, floor, tables, bus):
        seen = []
        bus.subscribe(seen.append)

        reservation_id = await _book(floor)

        reservation = await floor.reservations.get_reservation(reservation_id)
        assert reservation.status == ReservationStatus.PENDING
        assert reservation.customer_name == "Ana Ruiz"
        assert reservation.tenant_id == "admin-1"
        assert seen[0].kind == EventKind.RESERVATION_CHANGED
        assert seen[0].reservation_id == reservation_id

    @pytest.mark.asyncio
    async def test_create_confirmed(self, floor, tables):
        reservation_id = await _book(floor, status="confirmed")
        assert (await floor.reservations.get_reservation(reservation_id)).status == ReservationStatus.CONFIRMED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"people": 0},
        {"customer_name": "   "},
        {"date": "not a date"},
        {"status": "completed"},
        {"status": "waitlisted"},
    ])
    async def test_invalid_input(self, floor, tables, overrides):
        with pytest.raises(ValidationError):
            await _book(floor, **overrides)

    @pytest.mark.asyncio
    async def test_unknown_table(self, floor, tables):
        with pytest.raises(NotFoundError):
            await _book(floor, table_id="x1")

    @pytest.mark.asyncio
    async def test_reservations_for_table(self, floor, tables):
        late = await _book(floor, time=time(22, 0))
        early = await _book(floor, time=time(13, 0))
        await _book(floor, date=date(2026, 11, 3))

        found = await floor.reservations.reservations_for_table("t2", on=date(2026, 11, 2))

        assert [r.id for r in found] == [early, late]
        assert len(await floor.reservations.reservations_for_table("t2")) == 3


class TestReservationStatus:
    """pending -> confirmed -> completed, or cancelled."""

    @pytest.mark.asyncio
    async def test_confirm_then_complete(self, floor, tables):
        reservation_id = await _book(floor)

        await floor.reservations.update_status(reservation_id, ReservationStatus.CONFIRMED)
        reservation = await floor.reservations.update_status(reservation_id, "completed")

        assert reservation.status == ReservationStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("final", [ReservationStatus.CANCELLED, ReservationStatus.COMPLETED])
    async def test_final_statuses_are_frozen(self, floor, tables, final):
        reservation_id = await _book(floor)
        await floor.reservations.update_status(reservation_id, final)

        with pytest.raises(InvalidTransitionError):
            await floor.reservations.update_status(reservation_id, ReservationStatus.CONFIRMED)

    @pytest.mark.asyncio
    async def test_back_to_pending_rejected(self, floor, tables):
        reservation_id = await _book(floor, status="confirmed")
        with pytest.raises(InvalidTransitionError):
            await floor.reservations.update_status(reservation_id, "pending")

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_reservation(self, floor, tables, store):
        reservation_id = await _book(floor)
        assert await store.get_reservation("admin-2", reservation_id) is None


class TestEditReservation:
    """Rescheduling and deleting bookings."""

    @pytest.mark.asyncio
    async def test_reschedule(self, floor, tables, bus):
        reservation_id = await _book(floor)
        seen = []
        bus.subscribe(seen.append)

        reservation = await floor.reservations.update_reservation(
            reservation_id, date="2026-11-03", time="21:15", people=6
        )

        assert reservation.date == date(2026, 11, 3)
        assert reservation.time == time(21, 15)
        stored = await floor.reservations.get_reservation(reservation_id)
        assert stored.people == 6
        assert stored.customer_name == "Ana Ruiz"
        assert stored.status == ReservationStatus.PENDING
        assert [e.table_id for e in seen if e.kind == EventKind.RESERVATION_CHANGED] == ["t2"]

    @pytest.mark.asyncio
    async def test_move_announces_both_tables(self, floor, tables, bus):
        reservation_id = await _book(floor)
        seen = []
        bus.subscribe(seen.append)

        await floor.reservations.update_reservation(reservation_id, table_id="t1", people=2)

        changed = [e.table_id for e in seen if e.kind == EventKind.RESERVATION_CHANGED]
        assert changed == ["t2", "t1"]
        assert (await floor.reservations.get_reservation(reservation_id)).table_id == "t1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [
        {"people": 0},
        {"status": "confirmed"},
        {"tenant_id": "admin-2"},
    ])
    async def test_invalid_changes(self, floor, tables, changes):
        reservation_id = await _book(floor)
        with pytest.raises(ValidationError):
            await floor.reservations.update_reservation(reservation_id, **changes)
        assert (await floor.reservations.get_reservation(reservation_id)).people == 5

    @pytest.mark.asyncio
    async def test_move_to_foreign_table(self, floor, tables):
        reservation_id = await _book(floor)
        with pytest.raises(NotFoundError):
            await floor.reservations.update_reservation(reservation_id, table_id="x1")

    @pytest.mark.asyncio
    async def test_cancelled_booking_cannot_be_edited(self, floor, tables):
        reservation_id = await _book(floor)
        await floor.reservations.update_status(reservation_id, "cancelled")

        with pytest.raises(ValidationError):
            await floor.reservations.update_reservation(reservation_id, people=2)

    @pytest.mark.asyncio
    async def test_delete(self, floor, tables, bus, notifier):
        reservation_id = await _book(floor)
        seen = []
        bus.subscribe(seen.append)

        await floor.reservations.delete_reservation(reservation_id)

        with pytest.raises(NotFoundError):
            await floor.reservations.get_reservation(reservation_id)
        assert seen[0].kind == EventKind.RESERVATION_CHANGED
        assert seen[0].table_id == "t2"
        assert notifier.notifications[-1].message == "Reservation deleted"

    @pytest.mark.asyncio
    async def test_delete_unknown(self, floor, tables, notifier):
        with pytest.raises(NotFoundError):
            await floor.reservations.delete_reservation("missing")
        assert notifier.errors[-1].code == "not_found"
