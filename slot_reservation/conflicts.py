import logging
from datetime import datetime

from .clock import as_utc
from .models import LIVE_STATUSES, Reservation
from .store import ReservationStore

logger = logging.getLogger(__name__)


class ConflictChecker:
    """Read-only overlap check against live reservations of one resource."""

    def __init__(self, store: ReservationStore):
        self.store = store

    def _criteria(self, resource_id: str, start_at: datetime, end_at: datetime, exclude_hold_token: str | None):
        criteria = [
            Reservation.resource_id == resource_id,
            Reservation.status.in_(LIVE_STATUSES),
            Reservation.start_at < as_utc(end_at),
            Reservation.end_at > as_utc(start_at),
        ]
        if exclude_hold_token:
            # a caller's own hold must not block it; NULL tokens still count
            criteria.append(
                (Reservation.hold_token.is_(None)) | (Reservation.hold_token != exclude_hold_token)
            )
        return criteria

    async def find_conflict(
        self,
        resource_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_hold_token: str | None = None,
    ) -> Reservation | None:
        conflict = await self.store.find_one(
            *self._criteria(resource_id, start_at, end_at, exclude_hold_token)
        )
        if conflict:
            logger.info(
                "Booking conflict found: %s for slot %s@%s",
                conflict.id, resource_id, as_utc(start_at).isoformat(),
            )
        return conflict

    async def has_conflict(
        self,
        resource_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_hold_token: str | None = None,
    ) -> bool:
        return await self.find_conflict(resource_id, start_at, end_at, exclude_hold_token) is not None
