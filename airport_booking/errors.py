"""Typed errors raised by the booking core and translated by the HTTP layer."""

from __future__ import annotations


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(BookingError):
    """Malformed or missing input. Not retryable."""

    status_code = 400


class InvalidSeatClass(ValidationError):
    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Invalid seat class: {value!r}")


class NotFound(BookingError):
    status_code = 404


class FlightNotFound(NotFound):
    def __init__(self, flight_number: str) -> None:
        self.flight_number = flight_number
        super().__init__(f"Flight {flight_number} not found")


class TicketNotFound(NotFound):
    def __init__(self, order_number: str) -> None:
        self.order_number = order_number
        super().__init__(f"Ticket {order_number} not found")


class PassengerNotFound(NotFound):
    def __init__(self, passenger: object) -> None:
        super().__init__(f"Passenger {passenger} not found")


class WorkerNotFound(NotFound):
    def __init__(self, worker_id: int) -> None:
        super().__init__(f"Worker {worker_id} not found")


class AirportNotFound(NotFound):
    def __init__(self, airport_id: str) -> None:
        super().__init__(f"Airport {airport_id} not found")


class Conflict(BookingError):
    status_code = 409


class SoldOut(Conflict):
    def __init__(self, flight_number: str) -> None:
        self.flight_number = flight_number
        super().__init__(f"Flight {flight_number} is sold out")


class SeatTaken(Conflict):
    def __init__(self, flight_number: str, seat_class: object, seat_number: str) -> None:
        super().__init__(f"Seat {seat_number} ({seat_class}) on flight {flight_number} is already booked")


class AlreadyCancelled(Conflict):
    def __init__(self, order_number: str) -> None:
        self.order_number = order_number
        super().__init__(f"Ticket {order_number} is already cancelled")


class FlightNotBookable(Conflict):
    def __init__(self, flight_number: str, status: object) -> None:
        super().__init__(f"Flight {flight_number} is not open for booking (status {status})")


class InvalidTransition(Conflict):
    def __init__(self, current: object, new: object) -> None:
        self.current = current
        self.new = new
        super().__init__(f"Cannot transition flight from {current} to {new}")


class CapacityExceeded(Conflict):
    def __init__(self, flight_number: str, delta: int) -> None:
        self.flight_number = flight_number
        self.delta = delta
        super().__init__(f"Adjusting seats of flight {flight_number} by {delta} leaves the valid range")


class TransientStoreError(BookingError):
    """Timeout, lock contention or lost connection. The whole operation may be retried."""

    status_code = 503


class InvariantViolation(BookingError):
    """Seat inventory disagrees with the ticket rows. Always a bug."""

    status_code = 500
