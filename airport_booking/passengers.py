"""Passenger directory: signup, lookup-or-create at booking time, and login."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import insert_on_conflict
from .errors import Conflict, NotFound, PassengerNotFound, ValidationError
from .models import Passenger, Worker, utcnow
from .schemas import SignupRequest, TicketCreate

logger = logging.getLogger(__name__)


def normalise_email(email: str) -> str:
    return email.strip().lower()


async def find_by_email(db: AsyncSession, email: str) -> Optional[Passenger]:
    result = await db.execute(select(Passenger).where(Passenger.email == normalise_email(email)))
    return result.scalar_one_or_none()


async def signup(db: AsyncSession, payload: SignupRequest) -> Passenger:
    if await find_by_email(db, payload.email) is not None:
        raise Conflict("Email already registered")

    passenger = Passenger(
        name=payload.name.strip(),
        email=normalise_email(payload.email),
        age=payload.age,
        phone=payload.phone,
    )
    db.add(passenger)
    await db.commit()
    await db.refresh(passenger)
    logger.info("Passenger %s signed up", passenger.passenger_id)
    return passenger


async def resolve_passenger(db: AsyncSession, request: TicketCreate) -> Passenger:
    """Find the booking passenger, creating one from the request if needed.

    Runs inside the caller's transaction without committing, so a failed
    booking also discards a passenger created on the way.
    """

    if request.passenger_id is not None:
        passenger = await db.get(Passenger, request.passenger_id)
        if passenger is None:
            raise PassengerNotFound(request.passenger_id)
        return passenger

    passenger = await find_by_email(db, request.passenger_email)
    if passenger is not None:
        return passenger

    if not request.passenger_name:
        raise ValidationError("passenger_name is required for a new passenger")

    # A concurrent first booking with the same email may win the insert;
    # the unique index turns ours into a no-op and the select picks theirs up.
    email = normalise_email(request.passenger_email)
    stmt = (
        insert_on_conflict(db, Passenger)
        .values(
            name=request.passenger_name.strip(),
            email=email,
            phone=request.passenger_phone,
            age=request.passenger_age,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["email"])
    )
    result = await db.execute(stmt)
    passenger = await find_by_email(db, email)
    if result.rowcount:
        logger.info("Created passenger %s during booking", passenger.passenger_id)
    return passenger


async def login(db: AsyncSession, email: str) -> tuple[str, dict]:
    """Identify a user by email. Passengers win over workers sharing an address."""

    passenger = await find_by_email(db, email)
    if passenger is not None:
        return "passenger", {
            "passenger_id": passenger.passenger_id,
            "name": passenger.name,
            "email": passenger.email,
            "age": passenger.age,
        }

    result = await db.execute(select(Worker).where(Worker.email == normalise_email(email)))
    worker = result.scalar_one_or_none()
    if worker is None:
        raise NotFound("User not found")

    role = worker.role
    return role.value.lower(), {
        "worker_id": worker.worker_id,
        "name": worker.name,
        "email": worker.email,
        "job": worker.job,
        "airport_id": worker.airport_id,
        "store_id": worker.store_id,
        "role": role.value,
    }
