import uuid

from sqlalchemy import CheckConstraint, Column, Index, Numeric, String

from .clock import utcnow
from .db import Base, UTCDateTime

HELD = "Held"
PENDING = "Pending"
CONFIRMED = "Confirmed"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
REJECTED = "Rejected"

ALL_STATUSES = (HELD, PENDING, CONFIRMED, COMPLETED, CANCELLED, REJECTED)

# live reservations block the slot, terminal ones never do
LIVE_STATUSES = (HELD, PENDING, CONFIRMED)
TERMINAL_STATUSES = (COMPLETED, CANCELLED, REJECTED)


def new_id() -> str:
    return str(uuid.uuid4())


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_reservations_range"),
        Index("ix_reservations_resource_range", "resource_id", "start_at", "end_at"),
        Index("ix_reservations_status_expiry", "status", "hold_expires_at"),
    )

    id = Column(String, primary_key=True, default=new_id)

    resource_id = Column(String, nullable=False)  # provider
    subject_id = Column(String, nullable=False)  # service
    owner_id = Column(String, nullable=True, index=True)  # customer, null for guests until confirmed

    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False)

    status = Column(String, nullable=False, default=HELD)  # Held/Pending/Confirmed/Completed/Cancelled/Rejected

    hold_token = Column(String, nullable=True, index=True)
    hold_expires_at = Column(UTCDateTime(), nullable=True)

    price = Column(Numeric(10, 2), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def __repr__(self) -> str:
        return f"<Reservation {self.id} {self.resource_id}@{self.start_at} status={self.status}>"
