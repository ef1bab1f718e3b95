import logging
from datetime import datetime

from sqlalchemy import or_

from .clock import Clock, utcnow
from .errors import (
    HoldExpiredOrInvalid,
    InvalidReservation,
    InvalidState,
    ReservationNotFound,
    Unauthorized,
)
from .events import reservation_event
from .lock_store import SlotLockStore, slot_key
from .models import (
    ALL_STATUSES,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    HELD,
    LIVE_STATUSES,
    PENDING,
    REJECTED,
    Reservation,
)
from .store import ReservationStore

logger = logging.getLogger(__name__)

CANCEL_ATTEMPTS = 3

# provider decisions on an already confirmed-by-customer reservation
PROVIDER_TRANSITIONS = {
    PENDING: (CONFIRMED, REJECTED),
    CONFIRMED: (COMPLETED,),
}

# kept apart from reservation.confirmed, which is the customer confirming a hold
PROVIDER_EVENTS = {
    CONFIRMED: "reservation.accepted",
    REJECTED: "reservation.rejected",
    COMPLETED: "reservation.completed",
}

CLEARED_HOLD = {"hold_token": None, "hold_expires_at": None}


async def release_slot_lock(locks: SlotLockStore, resource_id: str, start_at: datetime, token: str | None):
    """Best effort: a lock left behind still expires through its TTL."""
    key = slot_key(resource_id, start_at)
    try:
        await locks.release(key, token)
    except Exception as e:
        logger.warning("Failed to release lock %s: %s", key, e)


async def emit(publisher, event_type: str, res: Reservation):
    if publisher is None:
        return
    try:
        await publisher.publish_event(reservation_event(event_type, res))
    except Exception as e:
        logger.warning("Failed to publish %s for %s: %s", event_type, res.id, e)


class ReservationLifecycle:
    """Transitions out of Held (confirm, cancel) and provider decisions after it."""

    def __init__(
        self,
        store: ReservationStore,
        locks: SlotLockStore,
        publisher=None,
        confirm_status: str = PENDING,
        now: Clock = utcnow,
    ):
        if confirm_status not in (PENDING, CONFIRMED):
            raise ValueError("confirm_status must be Pending or Confirmed")
        self.store = store
        self.locks = locks
        self.publisher = publisher
        self.confirm_status = confirm_status
        self.now = now

    async def confirm(self, reservation_id: str, hold_token: str, owner_id: str | None = None) -> Reservation:
        if not reservation_id or not hold_token:
            raise HoldExpiredOrInvalid()

        criteria = [
            Reservation.id == reservation_id,
            Reservation.hold_token == hold_token,
            Reservation.status == HELD,
            Reservation.hold_expires_at > self.now(),
        ]
        values = {"status": self.confirm_status, **CLEARED_HOLD}
        if owner_id:
            # guest holds get their owner recorded here
            criteria.append(or_(Reservation.owner_id == owner_id, Reservation.owner_id.is_(None)))
            values["owner_id"] = owner_id

        res = await self.store.find_conditional_update(criteria, values)
        if res is None:
            raise HoldExpiredOrInvalid()

        await release_slot_lock(self.locks, res.resource_id, res.start_at, hold_token)
        logger.info("Reservation %s confirmed as %s", res.id, res.status)
        await emit(self.publisher, "reservation.confirmed", res)
        return res

    async def cancel(self, reservation_id: str, requester_id: str, requester_role: str) -> Reservation:
        for _ in range(CANCEL_ATTEMPTS):
            res = await self.store.get(reservation_id)
            if res is None:
                raise ReservationNotFound()

            _verify_cancellation_authorization(res, requester_id, requester_role)

            if res.status not in LIVE_STATUSES:
                raise InvalidState(f"Cannot cancel a reservation with status: {res.status}")

            # guarded on the status just read, so a concurrent confirm is not clobbered
            updated = await self.store.find_conditional_update(
                [Reservation.id == res.id, Reservation.status == res.status],
                {"status": CANCELLED, **CLEARED_HOLD},
            )
            if updated is None:
                logger.info("Reservation %s changed while cancelling, re-reading", res.id)
                continue

            if res.hold_token:
                await release_slot_lock(self.locks, res.resource_id, res.start_at, res.hold_token)

            logger.info("Reservation %s cancelled by %s %s", res.id, requester_role, requester_id)
            await emit(self.publisher, "reservation.cancelled", updated)
            return updated

        raise HoldExpiredOrInvalid("Reservation changed concurrently, please retry")

    async def update_status(
        self,
        reservation_id: str,
        new_status: str,
        requester_id: str,
        requester_role: str,
    ) -> Reservation:
        if new_status not in ALL_STATUSES:
            raise InvalidReservation(f"Unknown status: {new_status}")

        res = await self.store.get(reservation_id)
        if res is None:
            raise ReservationNotFound()

        if requester_role != "provider" or str(res.resource_id) != str(requester_id):
            raise Unauthorized("Only the provider can update this reservation")

        if new_status not in PROVIDER_TRANSITIONS.get(res.status, ()):
            raise InvalidState(f"Cannot move a reservation from {res.status} to {new_status}")

        updated = await self.store.find_conditional_update(
            [Reservation.id == res.id, Reservation.status == res.status],
            {"status": new_status},
        )
        if updated is None:
            raise InvalidState("Reservation changed concurrently")

        logger.info("Reservation %s moved %s -> %s", res.id, res.status, new_status)
        await emit(self.publisher, PROVIDER_EVENTS[new_status], updated)
        return updated


def _verify_cancellation_authorization(res: Reservation, requester_id: str, requester_role: str):
    requester = str(requester_id) if requester_id is not None else None
    is_customer_owner = requester_role == "customer" and res.owner_id is not None and res.owner_id == requester
    is_provider_owner = requester_role == "provider" and res.resource_id == requester

    if not is_customer_owner and not is_provider_owner:
        raise Unauthorized("Not authorized to cancel this reservation")
