"""Flight catalogue: flights, airports, status changes and the seat counter."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import (
    AirportNotFound,
    CapacityExceeded,
    FlightNotFound,
    InvalidTransition,
    InvariantViolation,
    ValidationError,
)
from .models import Airport, BookingStatus, Flight, FlightEvent, FlightStatus, Ticket
from .schemas import AirportCreate, FlightCreate

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

BOOKABLE_STATUSES = frozenset({FlightStatus.SCHEDULED, FlightStatus.BOARDING})

# Forward skips are allowed; ARRIVED and CANCELLED are terminal.
ALLOWED_TRANSITIONS: dict[FlightStatus, set[FlightStatus]] = {
    FlightStatus.SCHEDULED: {
        FlightStatus.BOARDING,
        FlightStatus.DEPARTED,
        FlightStatus.ARRIVED,
        FlightStatus.CANCELLED,
    },
    FlightStatus.BOARDING: {FlightStatus.DEPARTED, FlightStatus.ARRIVED, FlightStatus.CANCELLED},
    FlightStatus.DEPARTED: {FlightStatus.ARRIVED, FlightStatus.CANCELLED},
    FlightStatus.ARRIVED: set(),
    FlightStatus.CANCELLED: set(),
}


def _json_safe(value: object | None) -> object | None:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, FlightStatus):
        return value.value
    return value


# --- Airports ------------------------------------------------------------------

async def list_airports(db: AsyncSession) -> list[Airport]:
    result = await db.execute(select(Airport).order_by(Airport.city.asc()))
    return list(result.scalars().all())


async def create_airport(db: AsyncSession, payload: AirportCreate) -> Airport:
    airport_id = payload.airport_id.upper()
    if await db.get(Airport, airport_id) is not None:
        raise ValidationError(f"Airport {airport_id} already exists")

    airport = Airport(
        airport_id=airport_id,
        name=payload.name,
        city=payload.city,
        country=payload.country,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    db.add(airport)
    await db.commit()
    await db.refresh(airport)
    return airport


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


async def flight_distance_km(db: AsyncSession, departure: str, arrival: str) -> Optional[float]:
    """Great-circle distance rounded to 1 km, or None when coordinates are unknown."""

    origin = await db.get(Airport, departure)
    destination = await db.get(Airport, arrival)
    if origin is None or destination is None:
        return None
    coordinates = (origin.latitude, origin.longitude, destination.latitude, destination.longitude)
    if any(value is None for value in coordinates):
        return None
    return round(haversine_km(*coordinates))


# --- Flights -------------------------------------------------------------------

async def get_flight(db: AsyncSession, flight_number: str) -> Optional[Flight]:
    return await db.get(Flight, flight_number)


async def lock_flight(db: AsyncSession, flight_number: str) -> Optional[Flight]:
    """Load the flight row for update, bypassing any stale identity-map copy."""

    stmt = (
        select(Flight)
        .where(Flight.flight_number == flight_number)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_active_flights(db: AsyncSession) -> list[Flight]:
    stmt = (
        select(Flight)
        .where(Flight.status.in_(BOOKABLE_STATUSES))
        .order_by(Flight.flight_date.asc(), Flight.departure_time.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_flight(db: AsyncSession, payload: FlightCreate) -> Flight:
    """Register a new flight with every seat available."""

    if payload.total_seats <= 0:
        raise ValidationError("total_seats must be a positive integer")
    if payload.departure_airport == payload.arrival_airport:
        raise ValidationError("Departure and arrival airports must differ")
    if await get_flight(db, payload.flight_number) is not None:
        raise ValidationError(f"Flight {payload.flight_number} already exists")
    for airport_id in (payload.departure_airport, payload.arrival_airport):
        if await db.get(Airport, airport_id) is None:
            raise AirportNotFound(airport_id)

    now = datetime.now(timezone.utc)
    flight = Flight(
        flight_number=payload.flight_number,
        departure_airport=payload.departure_airport,
        arrival_airport=payload.arrival_airport,
        flight_date=payload.flight_date,
        departure_time=payload.departure_time,
        arrival_time=payload.arrival_time,
        total_seats=payload.total_seats,
        available_seats=payload.total_seats,
        status=FlightStatus.SCHEDULED,
        flight_company_id=payload.flight_company_id,
        last_updated_at=now,
    )
    db.add(flight)
    db.add(
        FlightEvent(
            flight_number=flight.flight_number,
            event_type="flight.created",
            payload={
                "flight_number": flight.flight_number,
                "departure_airport": flight.departure_airport,
                "arrival_airport": flight.arrival_airport,
                "flight_date": payload.flight_date.isoformat(),
                "total_seats": payload.total_seats,
            },
            created_at=now,
        )
    )

    await db.commit()
    await db.refresh(flight)
    logger.info("Flight %s created with %d seats", flight.flight_number, flight.total_seats)
    return flight


async def set_status(
    db: AsyncSession,
    flight_number: str,
    new_status: FlightStatus,
    reason: str | None = None,
) -> Flight:
    flight = await lock_flight(db, flight_number)
    if flight is None:
        raise FlightNotFound(flight_number)

    if new_status == flight.status:
        return flight

    previous_status = flight.status
    allowed_next = ALLOWED_TRANSITIONS.get(previous_status, set())
    if new_status not in allowed_next:
        # rollback expires the instance; only the captured value is used after it
        await db.rollback()
        raise InvalidTransition(previous_status.value, new_status.value)

    now = datetime.now(timezone.utc)
    flight.status = new_status
    flight.status_reason = reason
    flight.last_updated_at = now

    event_type = "flight.cancelled" if new_status is FlightStatus.CANCELLED else "flight.status_changed"
    db.add(
        FlightEvent(
            flight_number=flight_number,
            event_type=event_type,
            payload={
                "flight_number": flight_number,
                "previous_status": _json_safe(previous_status),
                "status": _json_safe(new_status),
                "status_reason": reason,
            },
            created_at=now,
        )
    )

    await db.commit()
    await db.refresh(flight)
    logger.info("Flight %s moved %s -> %s", flight_number, previous_status.value, new_status.value)
    return flight


async def adjust_available_seats(db: AsyncSession, flight_number: str, delta: int) -> int:
    """Move the seat counter by ``delta`` inside the caller's transaction.

    The bounds check and the write happen in one conditional UPDATE, so
    concurrent callers serialise on the flight row and can never push the
    counter below zero or above capacity. Returns the new counter value.
    """

    new_value = Flight.available_seats + delta
    stmt = (
        update(Flight)
        .where(
            and_(
                Flight.flight_number == flight_number,
                new_value >= 0,
                new_value <= Flight.total_seats,
            )
        )
        .values(available_seats=new_value, last_updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        exists = await db.scalar(select(Flight.flight_number).where(Flight.flight_number == flight_number))
        if exists is None:
            raise FlightNotFound(flight_number)
        raise CapacityExceeded(flight_number, delta)

    flight = await db.get(Flight, flight_number, populate_existing=True)
    return flight.available_seats


# --- Inventory readers ---------------------------------------------------------

async def count_confirmed_tickets(db: AsyncSession, flight_number: str) -> int:
    stmt = select(func.count(Ticket.order_number)).where(
        Ticket.flight_number == flight_number,
        Ticket.booking_status == BookingStatus.CONFIRMED,
    )
    return int(await db.scalar(stmt) or 0)


async def get_occupancy(db: AsyncSession, flight_number: str) -> Decimal:
    """Occupancy in percent, two decimals."""

    flight = await get_flight(db, flight_number)
    if flight is None:
        raise FlightNotFound(flight_number)
    sold = flight.total_seats - flight.available_seats
    percent = Decimal(sold * 100) / Decimal(flight.total_seats)
    return percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def check_inventory(db: AsyncSession, flight_number: str) -> int:
    """Verify available == total - confirmed. Returns the confirmed count."""

    flight = await db.get(Flight, flight_number, populate_existing=True)
    if flight is None:
        raise FlightNotFound(flight_number)
    confirmed = await count_confirmed_tickets(db, flight_number)
    if flight.available_seats != flight.total_seats - confirmed:
        logger.critical(
            "Seat inventory mismatch on flight %s: total=%d available=%d confirmed=%d",
            flight_number,
            flight.total_seats,
            flight.available_seats,
            confirmed,
        )
        raise InvariantViolation(f"Seat inventory of flight {flight_number} is inconsistent")
    return confirmed
