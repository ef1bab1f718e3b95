import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from .clock import Clock, as_utc, utcnow
from .conflicts import ConflictChecker
from .errors import InvalidReservation, SlotLocked, SlotUnavailable
from .lock_store import SlotLockStore, slot_key
from .lifecycle import CLEARED_HOLD
from .models import CANCELLED, HELD, Reservation, new_id
from .store import ReservationStore

logger = logging.getLogger(__name__)

DEFAULT_HOLD_TTL_SECONDS = 300


@dataclass(frozen=True)
class HoldGrant:
    reservation_id: str
    hold_token: str
    hold_expires_at: datetime
    expires_in_seconds: int


class HoldManager:
    """
    Time-boxed exclusive holds on a (resource, start) slot.

    Order matters: the record store is checked for overlapping live
    reservations first, then the slot lock is taken with SET NX, and only
    then is the Held record written. The lock covers one start key only, so
    the overlap check runs again once the record is in; a hold that finds an
    overlapping live record at that point withdraws itself. The returned
    token is the capability needed to confirm the hold later.
    """

    def __init__(
        self,
        store: ReservationStore,
        locks: SlotLockStore,
        conflicts: ConflictChecker,
        hold_ttl_seconds: int = DEFAULT_HOLD_TTL_SECONDS,
        now: Clock = utcnow,
    ):
        self.store = store
        self.locks = locks
        self.conflicts = conflicts
        self.hold_ttl_seconds = hold_ttl_seconds
        self.now = now

    async def acquire_hold(
        self,
        resource_id: str,
        subject_id: str,
        candidate_owner_id: str | None,
        start_at: datetime,
        duration_minutes: int,
        price: Decimal | float | None = None,
        ttl_seconds: int | None = None,
    ) -> HoldGrant:
        if not resource_id or not subject_id:
            raise InvalidReservation("resource_id and subject_id are required")
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidReservation("duration_minutes must be positive")

        ttl = ttl_seconds if ttl_seconds is not None else self.hold_ttl_seconds
        if ttl <= 0:
            raise InvalidReservation("hold ttl must be positive")

        start_at = as_utc(start_at)
        # duration is fixed here, later catalog edits never move end_at
        end_at = start_at + timedelta(minutes=duration_minutes)

        if await self.conflicts.has_conflict(resource_id, start_at, end_at):
            raise SlotUnavailable()

        key = slot_key(resource_id, start_at)
        hold_token = str(uuid.uuid4())
        locked = await self.locks.set_if_absent(key, hold_token, ttl)
        if not locked:
            raise SlotLocked()

        hold_expires_at = self.now() + timedelta(seconds=ttl)
        reservation = Reservation(
            id=new_id(),
            resource_id=resource_id,
            subject_id=subject_id,
            owner_id=candidate_owner_id,
            start_at=start_at,
            end_at=end_at,
            status=HELD,
            hold_token=hold_token,
            hold_expires_at=hold_expires_at,
            price=Decimal(str(price)) if price is not None else None,
        )

        try:
            await self.store.insert(reservation)
        except Exception:
            # no orphan lock left behind for the TTL to clean up
            await self._release_quietly(key, hold_token)
            raise

        # the lock only covers this start key; a racing hold on another start
        # may overlap. Whoever sees the other after inserting backs off.
        if await self.conflicts.has_conflict(resource_id, start_at, end_at, exclude_hold_token=hold_token):
            await self.store.find_conditional_update(
                [
                    Reservation.id == reservation.id,
                    Reservation.status == HELD,
                    Reservation.hold_token == hold_token,
                ],
                {"status": CANCELLED, **CLEARED_HOLD},
            )
            await self._release_quietly(key, hold_token)
            logger.info("Hold %s withdrawn, overlapping hold on %s", reservation.id, resource_id)
            raise SlotUnavailable()

        logger.info("Slot held: %s %s until %s", reservation.id, key, hold_expires_at.isoformat())
        return HoldGrant(
            reservation_id=reservation.id,
            hold_token=hold_token,
            hold_expires_at=hold_expires_at,
            expires_in_seconds=ttl,
        )

    async def _release_quietly(self, key: str, hold_token: str):
        try:
            await self.locks.release(key, hold_token)
        except Exception as lock_err:
            logger.warning("Failed to release lock %s: %s", key, lock_err)
