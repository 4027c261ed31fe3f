"""
Reservation manager.

Books tables, reschedules and deletes bookings, and moves reservations
through pending -> confirmed -> completed (or cancelled). Every change is
published as a ``reservation_changed`` event for each affected table; the
table manager turns those into reserved/available transitions.
"""

import logging
import uuid
from datetime import date
from typing import Optional, Union

from tableflow.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from tableflow.domain import Reservation
from tableflow.events import EventBus, EventKind, LifecycleEvent
from tableflow.schemas import ReservationCreate, validate_input
from tableflow.services.identity import BaseIdentityProvider
from tableflow.services.notifications import BaseNotificationSink, reports_failures
from tableflow.services.store import BaseStore
from tableflow.status import ReservationStatus

logger = logging.getLogger(__name__)

_ALLOWED = {
    ReservationStatus.PENDING: {
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
        ReservationStatus.COMPLETED,
    },
    ReservationStatus.CONFIRMED: {
        ReservationStatus.CANCELLED,
        ReservationStatus.COMPLETED,
    },
}


def _frozen(reservation: Reservation) -> ValidationError:
    return ValidationError(
        f"Reservation {reservation.id} is {reservation.status.value} and can no longer be edited",
        {"reservation_id": reservation.id, "status": reservation.status.value},
    )


class ReservationManager:
    """Creates reservations and drives their status."""

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

    async def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self.store.get_reservation(self.tenant_id, reservation_id)
        if reservation is None:
            raise NotFoundError(
                f"Reservation {reservation_id} not found", {"reservation_id": reservation_id}
            )
        return reservation

    async def reservations_for_table(self, table_id: str, on: Optional[date] = None) -> list[Reservation]:
        return await self.store.list_reservations(self.tenant_id, table_id=table_id, on=on)

    @reports_failures("create reservation")
    async def create_reservation(self, **data) -> str:
        """
        Book a table.

        Keyword arguments follow ``ReservationCreate``. A ``status`` of
        pending (default) or confirmed may be given.

        Returns:
            str: The new reservation id
        """
        status = data.pop("status", ReservationStatus.PENDING)
        try:
            status = ReservationStatus(getattr(status, "value", status))
        except ValueError:
            raise ValidationError(f"Unknown reservation status '{status}'")
        if status not in _ALLOWED:
            raise ValidationError(f"A new reservation cannot start as '{status.value}'")

        request = validate_input(ReservationCreate, **data)
        tenant_id = self.tenant_id
        if await self.store.get_table(tenant_id, request.table_id) is None:
            raise NotFoundError(f"Table {request.table_id} not found", {"table_id": request.table_id})

        reservation = Reservation(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            table_id=request.table_id,
            customer_name=request.customer_name,
            people=request.people,
            date=request.date,
            time=request.time,
            contact=request.contact,
            notes=request.notes,
            status=status,
        )
        await self.store.add_reservation(reservation)
        logger.info(
            f"Reservation {reservation.id} for {reservation.customer_name} "
            f"({reservation.people}) on {reservation.date} {reservation.time}"
        )

        await self.bus.publish(LifecycleEvent(
            kind=EventKind.RESERVATION_CHANGED,
            table_id=reservation.table_id,
            reservation_id=reservation.id,
            new_status=status.value,
        ))
        if self.notifier is not None:
            self.notifier.success("Reservation created")
        return reservation.id

    @reports_failures("update reservation")
    async def update_status(
        self,
        reservation_id: str,
        status: Union[ReservationStatus, str],
    ) -> Reservation:
        """
        Confirm, complete or cancel a reservation.

        Raises:
            InvalidTransitionError: From cancelled/completed, or pending again
        """
        try:
            target = ReservationStatus(getattr(status, "value", status))
        except ValueError:
            raise ValidationError(f"Unknown reservation status '{status}'")

        reservation = await self.get_reservation(reservation_id)
        previous = reservation.status
        if target not in _ALLOWED.get(previous, set()):
            raise InvalidTransitionError("reservation", reservation_id, previous, target)

        written = await self.store.update_reservation_status(
            self.tenant_id, reservation_id, target, expected_status=previous
        )
        if not written:
            current = await self.get_reservation(reservation_id)
            raise InvalidTransitionError("reservation", reservation_id, current.status, target)

        logger.info(f"Reservation {reservation_id}: {previous.value} -> {target.value}")
        await self.bus.publish(LifecycleEvent(
            kind=EventKind.RESERVATION_CHANGED,
            table_id=reservation.table_id,
            reservation_id=reservation_id,
            previous_status=previous.value,
            new_status=target.value,
        ))
        if self.notifier is not None:
            self.notifier.success(f"Reservation {target.value}")
        reservation.status = target
        return reservation

    @reports_failures("update reservation")
    async def update_reservation(self, reservation_id: str, **changes) -> Reservation:
        """
        Reschedule or edit a booking.

        Accepts the ``ReservationCreate`` fields. Moving the booking to
        another table or date re-evaluates both the old and the new table.

        Raises:
            ValidationError: Bad field values, an attempt to set ``status``, or
                the reservation is cancelled or completed
        """
        if "status" in changes:
            raise ValidationError("Use update_status to change a reservation's status")
        unknown = set(changes) - set(ReservationCreate.model_fields)
        if unknown:
            raise ValidationError(
                f"Unknown reservation fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        reservation = await self.get_reservation(reservation_id)
        if reservation.status not in _ALLOWED:
            raise _frozen(reservation)

        current = {name: getattr(reservation, name) for name in ReservationCreate.model_fields}
        request = validate_input(ReservationCreate, **{**current, **changes})
        if request.table_id != reservation.table_id:
            if await self.store.get_table(self.tenant_id, request.table_id) is None:
                raise NotFoundError(f"Table {request.table_id} not found", {"table_id": request.table_id})

        updated = request.model_dump()
        written = await self.store.update_reservation(
            self.tenant_id, reservation_id, updated, expected_status=reservation.status
        )
        if not written:
            latest = await self.get_reservation(reservation_id)
            if latest.status not in _ALLOWED:
                raise _frozen(latest)
            raise ValidationError(
                f"Reservation {reservation_id} changed while it was being edited; try again",
                {"reservation_id": reservation_id},
            )

        logger.info(
            f"Reservation {reservation_id} updated: table {request.table_id}, "
            f"{request.date} {request.time}"
        )
        for table_id in dict.fromkeys([reservation.table_id, request.table_id]):
            await self.bus.publish(LifecycleEvent(
                kind=EventKind.RESERVATION_CHANGED,
                table_id=table_id,
                reservation_id=reservation_id,
                previous_status=reservation.status.value,
                new_status=reservation.status.value,
            ))
        if self.notifier is not None:
            self.notifier.success("Reservation updated")

        for name, value in updated.items():
            setattr(reservation, name, value)
        return reservation

    @reports_failures("delete reservation")
    async def delete_reservation(self, reservation_id: str) -> None:
        """Remove a booking and re-evaluate its table."""
        reservation = await self.get_reservation(reservation_id)
        if not await self.store.delete_reservation(self.tenant_id, reservation_id):
            raise NotFoundError(
                f"Reservation {reservation_id} not found", {"reservation_id": reservation_id}
            )

        logger.info(f"Reservation {reservation_id} for {reservation.customer_name} deleted")
        await self.bus.publish(LifecycleEvent(
            kind=EventKind.RESERVATION_CHANGED,
            table_id=reservation.table_id,
            reservation_id=reservation_id,
            previous_status=reservation.status.value,
        ))
        if self.notifier is not None:
            self.notifier.success("Reservation deleted")
