class BookingError(Exception):
    """Base class for every error the reservation engine reports to callers."""

    status_code = 400
    default_message = "Booking operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def code(self) -> str:
        return type(self).__name__


class SlotUnavailable(BookingError):
    """A live reservation already overlaps the requested range. Pick another time."""

    status_code = 409
    default_message = "Slot not available (already booked/held)"


class SlotLocked(BookingError):
    """Another caller holds the lock for this exact slot right now."""

    status_code = 409
    default_message = "Slot momentarily locked by another user"


class HoldExpiredOrInvalid(BookingError):
    status_code = 409
    default_message = "Hold expired or invalid. Please select the slot again."


class InvalidState(BookingError):
    status_code = 400
    default_message = "Reservation is not in a state that allows this operation"


class Unauthorized(BookingError):
    status_code = 403
    default_message = "Not authorized to modify this reservation"


class ReservationNotFound(BookingError):
    status_code = 404
    default_message = "Reservation not found"


class InvalidReservation(BookingError):
    status_code = 400
    default_message = "Invalid reservation request"
