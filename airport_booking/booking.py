"""Booking engine.

A booking is one transaction: resolve the passenger, lock the flight, take
a seat off the counter, price it, insert the ticket. Either all of it
commits or none of it does, so ``available_seats`` always equals
``total_seats`` minus the confirmed tickets of the flight.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog, fares, passengers
from .db import atomic
from .errors import CapacityExceeded, FlightNotBookable, FlightNotFound, SeatTaken, SoldOut
from .fares import FarePolicy
from .models import BookingStatus, SeatClass, Ticket
from .schemas import TicketCreate

logger = logging.getLogger(__name__)

ORDER_PREFIX = "TKT"


def generate_order_number() -> str:
    """Random 64-bit suffix; uniqueness is backed by the primary key."""

    return f"{ORDER_PREFIX}{uuid.uuid4().hex[:16].upper()}"


def normalise_seat_number(seat_number: str) -> str:
    return seat_number.strip().upper()


async def _ensure_seat_free(
    db: AsyncSession, flight_number: str, seat_class: SeatClass, seat_number: str
) -> None:
    stmt = select(Ticket.order_number).where(
        Ticket.flight_number == flight_number,
        Ticket.seat_class == seat_class,
        Ticket.seat_number == seat_number,
        Ticket.booking_status == BookingStatus.CONFIRMED,
    )
    if await db.scalar(stmt) is not None:
        raise SeatTaken(flight_number, seat_class.value, seat_number)


async def book(db: AsyncSession, request: TicketCreate, policy: FarePolicy) -> Ticket:
    seat_class = fares.parse_seat_class(request.seat_class)
    seat_number = normalise_seat_number(request.seat_number)
    flight_number = request.flight_number.strip()

    try:
        async with atomic(db):
            passenger = await passengers.resolve_passenger(db, request)

            flight = await catalog.lock_flight(db, flight_number)
            if flight is None:
                raise FlightNotFound(flight_number)
            if flight.status not in catalog.BOOKABLE_STATUSES:
                raise FlightNotBookable(flight_number, flight.status.value)

            # Taking the seat first serialises concurrent bookings on the flight
            # row, so the seat check and the fare below see every earlier sale.
            try:
                remaining = await catalog.adjust_available_seats(db, flight_number, -1)
            except CapacityExceeded:
                raise SoldOut(flight_number) from None

            await _ensure_seat_free(db, flight_number, seat_class, seat_number)

            # Priced at the occupancy before this sale.
            price = await fares.quote_for_flight(db, flight, seat_class, policy, available_seats=remaining + 1)

            ticket = Ticket(
                order_number=generate_order_number(),
                passenger_id=passenger.passenger_id,
                flight_number=flight_number,
                flight_company_id=request.flight_company_id or flight.flight_company_id,
                seat_number=seat_number,
                seat_class=seat_class,
                price=price,
                booking_status=BookingStatus.CONFIRMED,
            )
            db.add(ticket)
            await db.flush()
    except (SoldOut, SeatTaken, FlightNotBookable) as exc:
        logger.warning("Booking rejected on flight %s: %s", flight_number, exc.message)
        raise

    logger.info(
        "Booked %s seat %s (%s) on %s for passenger %s at %s, %d seats left",
        ticket.order_number,
        seat_number,
        seat_class.value,
        flight_number,
        ticket.passenger_id,
        price,
        remaining,
    )
    return ticket


async def list_recent_tickets(db: AsyncSession, limit: int = 100) -> list[Ticket]:
    result = await db.execute(select(Ticket).order_by(Ticket.booking_date.desc()).limit(limit))
    return list(result.scalars())
