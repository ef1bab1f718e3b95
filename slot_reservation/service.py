from datetime import datetime
from decimal import Decimal

from .clock import Clock, utcnow
from .conflicts import ConflictChecker
from .expiry_worker import DEFAULT_BATCH_SIZE, ExpiryReaper
from .holds import DEFAULT_HOLD_TTL_SECONDS, HoldGrant, HoldManager
from .lifecycle import ReservationLifecycle
from .lock_store import SlotLockStore
from .models import PENDING, Reservation
from .store import ReservationStore


class BookingService:
    """Entry point used by the HTTP layer and the expiry loop."""

    def __init__(
        self,
        session_factory,
        redis_client,
        publisher=None,
        hold_ttl_seconds: int = DEFAULT_HOLD_TTL_SECONDS,
        confirm_status: str = PENDING,
        reaper_batch_size: int = DEFAULT_BATCH_SIZE,
        now: Clock = utcnow,
    ):
        self.store = ReservationStore(session_factory, now=now)
        self.locks = SlotLockStore(redis_client)
        self.conflicts = ConflictChecker(self.store)
        self.holds = HoldManager(
            self.store, self.locks, self.conflicts, hold_ttl_seconds=hold_ttl_seconds, now=now
        )
        self.lifecycle = ReservationLifecycle(
            self.store, self.locks, publisher=publisher, confirm_status=confirm_status, now=now
        )
        self.reaper = ExpiryReaper(
            self.store, self.locks, publisher=publisher, batch_size=reaper_batch_size, now=now
        )

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
        return await self.holds.acquire_hold(
            resource_id,
            subject_id,
            candidate_owner_id,
            start_at,
            duration_minutes,
            price=price,
            ttl_seconds=ttl_seconds,
        )

    async def confirm(self, reservation_id: str, hold_token: str, owner_id: str | None = None) -> Reservation:
        return await self.lifecycle.confirm(reservation_id, hold_token, owner_id=owner_id)

    async def cancel(self, reservation_id: str, requester_id: str, requester_role: str) -> Reservation:
        return await self.lifecycle.cancel(reservation_id, requester_id, requester_role)

    async def update_status(
        self, reservation_id: str, new_status: str, requester_id: str, requester_role: str
    ) -> Reservation:
        return await self.lifecycle.update_status(reservation_id, new_status, requester_id, requester_role)

    async def book_directly(
        self,
        resource_id: str,
        subject_id: str,
        owner_id: str | None,
        start_at: datetime,
        duration_minutes: int,
        price: Decimal | float | None = None,
    ) -> Reservation:
        """Booking without a prior hold is a hold confirmed straight away."""
        grant = await self.acquire_hold(resource_id, subject_id, owner_id, start_at, duration_minutes, price=price)
        return await self.confirm(grant.reservation_id, grant.hold_token, owner_id=owner_id)

    async def reap_expired(self) -> int:
        return await self.reaper.reap_expired()
