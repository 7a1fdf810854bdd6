"""Fare calculator.

Prices depend on route length, seat class and how full the flight is. The
route length is the great-circle distance between the two airports when both
have coordinates, otherwise the scheduled block time is used. A demand factor
grows linearly with occupancy, so for a given flight and class the fare never
drops as seats sell.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .catalog import flight_distance_km
from .errors import FlightNotFound, InvalidSeatClass
from .models import Flight, SeatClass

CENT = Decimal("0.01")

CLASS_MULTIPLIERS: dict[SeatClass, Decimal] = {
    SeatClass.ECONOMY: Decimal("1.0"),
    SeatClass.BUSINESS: Decimal("2.5"),
    SeatClass.FIRST: Decimal("4.0"),
}


@dataclass(frozen=True)
class FarePolicy:
    base_fare: Decimal = Decimal("50.00")
    per_km_rate: Decimal = Decimal("0.10")
    per_minute_rate: Decimal = Decimal("1.50")
    surge_factor: Decimal = Decimal("0.5")


def parse_seat_class(value: str | SeatClass) -> SeatClass:
    """Accept ``Economy``, ``economy`` or ``SeatClass.ECONOMY``."""

    if isinstance(value, SeatClass):
        return value
    try:
        return SeatClass(str(value).strip().upper())
    except ValueError:
        raise InvalidSeatClass(str(value)) from None


def occupancy_ratio(total_seats: int, available_seats: int) -> Decimal:
    if total_seats <= 0:
        return Decimal(0)
    sold = total_seats - available_seats
    ratio = Decimal(sold) / Decimal(total_seats)
    return min(max(ratio, Decimal(0)), Decimal(1))


def block_minutes(flight: Flight) -> Optional[int]:
    """Scheduled block time; arrivals earlier than departure roll over midnight."""

    if flight.departure_time is None or flight.arrival_time is None:
        return None
    departure = datetime.combine(flight.flight_date, flight.departure_time)
    arrival = datetime.combine(flight.flight_date, flight.arrival_time)
    minutes = int((arrival - departure).total_seconds() // 60)
    if minutes <= 0:
        minutes += 24 * 60
    return minutes


def compute_fare(
    policy: FarePolicy,
    seat_class: SeatClass,
    occupancy: Decimal,
    distance_km: Optional[float] = None,
    duration_minutes: Optional[int] = None,
) -> Decimal:
    if distance_km is not None:
        base = policy.base_fare + Decimal(str(distance_km)) * policy.per_km_rate
    elif duration_minutes is not None:
        base = policy.base_fare + Decimal(duration_minutes) * policy.per_minute_rate
    else:
        base = policy.base_fare

    occupancy = min(max(Decimal(occupancy), Decimal(0)), Decimal(1))
    demand = Decimal(1) + policy.surge_factor * occupancy
    fare = base * CLASS_MULTIPLIERS[seat_class] * demand
    return fare.quantize(CENT, rounding=ROUND_HALF_UP)


async def quote_for_flight(
    db: AsyncSession,
    flight: Flight,
    seat_class: SeatClass,
    policy: FarePolicy,
    available_seats: Optional[int] = None,
) -> Decimal:
    """Price a seat on a loaded flight.

    ``available_seats`` overrides the counter of the snapshot, for callers
    that already hold a fresher value.
    """

    if available_seats is None:
        available_seats = flight.available_seats
    distance = await flight_distance_km(db, flight.departure_airport, flight.arrival_airport)
    return compute_fare(
        policy,
        seat_class,
        occupancy_ratio(flight.total_seats, available_seats),
        distance_km=distance,
        duration_minutes=block_minutes(flight),
    )


async def price(
    db: AsyncSession, flight_number: str, seat_class: str | SeatClass, policy: FarePolicy
) -> Decimal:
    parsed = parse_seat_class(seat_class)
    flight = await db.get(Flight, flight_number)
    if flight is None:
        raise FlightNotFound(flight_number)
    return await quote_for_flight(db, flight, parsed, policy)
