import asyncio
import logging

from .clock import Clock, utcnow
from .lifecycle import CLEARED_HOLD, emit, release_slot_lock
from .lock_store import SlotLockStore
from .models import CANCELLED, HELD, Reservation
from .store import ReservationStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
# bounds one cycle; the rest waits for the next tick
DEFAULT_MAX_BATCHES = 20


class ExpiryReaper:
    """
    Cancels holds whose expiry has passed and frees their slot locks.

    The reaper is just another racing writer: its cancel is guarded on
    (id, status=Held) only, so a hold confirmed or cancelled in the meantime
    simply doesn't match and is skipped. Double-booking safety never depends
    on it running, it only bounds how long an abandoned hold blocks a slot.
    """

    def __init__(
        self,
        store: ReservationStore,
        locks: SlotLockStore,
        publisher=None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        now: Clock = utcnow,
    ):
        self.store = store
        self.locks = locks
        self.publisher = publisher
        self.batch_size = batch_size
        self.now = now

    async def expire(self, hold: Reservation) -> bool:
        """Expire-cancel one hold. False when a racing writer got there first."""
        updated = await self.store.find_conditional_update(
            [Reservation.id == hold.id, Reservation.status == HELD],
            {"status": CANCELLED, **CLEARED_HOLD},
        )
        if updated is None:
            return False

        await release_slot_lock(self.locks, hold.resource_id, hold.start_at, hold.hold_token)
        await emit(self.publisher, "reservation.expired", updated)
        return True

    async def reap_expired(self) -> int:
        expired = await self.store.find(
            Reservation.status == HELD,
            Reservation.hold_expires_at <= self.now(),
            order_by=Reservation.hold_expires_at,
            limit=self.batch_size,
        )

        cancelled = 0
        for hold in expired:
            try:
                if await self.expire(hold):
                    cancelled += 1
            except Exception as e:
                logger.error("Failed to expire hold %s: %s", hold.id, e)
                continue

        if cancelled:
            logger.info("Expired holds cleaned: %d", cancelled)
        return cancelled

    async def reap_backlog(self, max_batches: int = DEFAULT_MAX_BATCHES) -> int:
        """Reap batch after batch while each comes back full."""
        total = 0
        for _ in range(max_batches):
            cancelled = await self.reap_expired()
            total += cancelled
            if cancelled < self.batch_size:
                break
        return total


async def expiry_loop(reaper: ExpiryReaper, stop_event: asyncio.Event, interval_seconds: float = 60.0):
    while not stop_event.is_set():
        try:
            await reaper.reap_backlog()
        except Exception as e:
            logger.error("Expiry cycle failed: %s", e)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
