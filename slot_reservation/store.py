from sqlalchemy import select, update

from .clock import Clock, utcnow
from .models import Reservation


class ReservationStore:
    """
    Durable reservation records.

    Every call opens its own session: reservation state is never cached
    between calls, the database is the only source of truth.
    """

    def __init__(self, session_factory, now: Clock = utcnow):
        self.session_factory = session_factory
        self.now = now

    async def insert(self, reservation: Reservation) -> Reservation:
        ts = self.now()
        reservation.created_at = ts
        reservation.updated_at = ts
        async with self.session_factory() as db:
            db.add(reservation)
            await db.commit()
        return reservation

    async def get(self, reservation_id: str) -> Reservation | None:
        return await self.find_one(Reservation.id == reservation_id)

    async def find_one(self, *criteria) -> Reservation | None:
        async with self.session_factory() as db:
            res = await db.execute(select(Reservation).where(*criteria).limit(1))
            return res.scalar_one_or_none()

    async def find(self, *criteria, order_by=None, limit: int | None = None) -> list[Reservation]:
        stmt = select(Reservation).where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as db:
            res = await db.execute(stmt)
            return list(res.scalars().all())

    async def find_conditional_update(self, criteria: list, values: dict) -> Reservation | None:
        """
        Atomically apply `values` to the single row matching every criterion.

        Runs as one UPDATE ... WHERE ... RETURNING statement, so of two racing
        writers with the same guard only one can match. Returns the updated
        record, or None when nothing matched (never raises for a miss).
        """
        stmt = (
            update(Reservation)
            .where(*criteria)
            .values(**values, updated_at=self.now())
            .returning(Reservation)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as db:
            res = await db.execute(stmt)
            updated = res.scalar_one_or_none()
            if updated is None:
                await db.rollback()
                return None
            await db.commit()
            return updated
