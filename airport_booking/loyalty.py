"""Passenger loyalty tiers and booking history."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import PassengerNotFound
from .models import BookingStatus, Flight, Passenger, Ticket
from .schemas import PassengerBooking

# (tier, minimum confirmed spend, minimum confirmed tickets); first match wins.
TIERS: tuple[tuple[str, Decimal, int], ...] = (
    ("PLATINUM", Decimal("5000"), 20),
    ("GOLD", Decimal("2000"), 10),
    ("SILVER", Decimal("500"), 3),
)
DEFAULT_TIER = "BRONZE"


@dataclass(frozen=True)
class LoyaltyStanding:
    passenger_id: int
    tier: str
    confirmed_tickets: int
    lifetime_spend: Decimal


def tier_for(spend: Decimal, tickets: int) -> str:
    for tier, min_spend, min_tickets in TIERS:
        if spend >= min_spend or tickets >= min_tickets:
            return tier
    return DEFAULT_TIER


async def loyalty_tier(db: AsyncSession, passenger_id: int) -> LoyaltyStanding:
    if await db.get(Passenger, passenger_id) is None:
        raise PassengerNotFound(passenger_id)

    stmt = select(
        func.count(Ticket.order_number),
        func.coalesce(func.sum(Ticket.price), 0),
    ).where(
        Ticket.passenger_id == passenger_id,
        Ticket.booking_status == BookingStatus.CONFIRMED,
    )
    count, spend = (await db.execute(stmt)).one()
    spend = Decimal(str(spend)).quantize(Decimal("0.01"))
    return LoyaltyStanding(
        passenger_id=passenger_id,
        tier=tier_for(spend, int(count)),
        confirmed_tickets=int(count),
        lifetime_spend=spend,
    )


async def passenger_bookings(db: AsyncSession, passenger_id: int) -> list[PassengerBooking]:
    if await db.get(Passenger, passenger_id) is None:
        raise PassengerNotFound(passenger_id)

    stmt = (
        select(Ticket, Flight)
        .join(Flight, Ticket.flight_number == Flight.flight_number)
        .where(Ticket.passenger_id == passenger_id)
        .order_by(Ticket.booking_date.desc())
    )
    result = await db.execute(stmt)
    return [
        PassengerBooking(
            order_number=ticket.order_number,
            flight_number=ticket.flight_number,
            seat_number=ticket.seat_number,
            seat_class=ticket.seat_class,
            price=ticket.price,
            booking_status=ticket.booking_status,
            booking_date=ticket.booking_date,
            departure_airport=flight.departure_airport,
            arrival_airport=flight.arrival_airport,
            flight_date=flight.flight_date,
        )
        for ticket, flight in result.all()
    ]


async def list_passengers_with_spend(db: AsyncSession) -> list[tuple[Passenger, int, Decimal]]:
    confirmed_price = case((Ticket.booking_status == BookingStatus.CONFIRMED, Ticket.price), else_=0)
    spent = func.coalesce(func.sum(confirmed_price), 0)
    stmt = (
        select(Passenger, func.count(Ticket.order_number), spent)
        .outerjoin(Ticket, Ticket.passenger_id == Passenger.passenger_id)
        .group_by(Passenger.passenger_id)
        .order_by(spent.desc(), Passenger.passenger_id.asc())
    )
    result = await db.execute(stmt)
    return [
        (passenger, int(bookings), Decimal(str(total)).quantize(Decimal("0.01")))
        for passenger, bookings, total in result.all()
    ]
