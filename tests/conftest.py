"""Shared fixtures: a throwaway SQLite database per test."""

from __future__ import annotations

from datetime import date, time

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from airport_booking.config import Settings
from airport_booking.db import create_engine, create_session_factory, init_db
from airport_booking.main import create_app
from airport_booking.models import Airport, Flight, FlightStatus

ADMIN_HEADERS = {"x-user-role": "Admin"}


@pytest.fixture()
def settings(tmp_path) -> Settings:
    db_path = tmp_path / "booking.sqlite"
    return Settings(database_dsn=f"sqlite+aiosqlite:///{db_path}")


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest_asyncio.fixture()
async def client(app):
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest_asyncio.fixture()
async def session_factory(settings):
    engine = create_engine(settings.database_dsn)
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


async def seed_flight(
    session_factory,
    flight_number: str = "AI101",
    total_seats: int = 2,
    flight_date: date = date(2030, 5, 1),
    departure_time: time = time(9, 30),
    status: FlightStatus = FlightStatus.SCHEDULED,
) -> None:
    async with session_factory() as session:
        for airport in (
            Airport(airport_id="DEL", name="Indira Gandhi", city="Delhi", latitude=28.5562, longitude=77.1000),
            Airport(airport_id="BOM", name="Chhatrapati Shivaji", city="Mumbai", latitude=19.0896, longitude=72.8656),
        ):
            if await session.get(Airport, airport.airport_id) is None:
                session.add(airport)
        session.add(
            Flight(
                flight_number=flight_number,
                departure_airport="DEL",
                arrival_airport="BOM",
                flight_date=flight_date,
                departure_time=departure_time,
                arrival_time=time(11, 40),
                total_seats=total_seats,
                available_seats=total_seats,
                status=status,
            )
        )
        await session.commit()


async def seed_airports_via_api(client) -> None:
    for payload in (
        {"airport_id": "DEL", "name": "Indira Gandhi", "city": "Delhi", "latitude": 28.5562, "longitude": 77.1},
        {"airport_id": "BOM", "name": "Chhatrapati Shivaji", "city": "Mumbai", "latitude": 19.0896, "longitude": 72.8656},
    ):
        response = await client.post("/airports", json=payload, headers=ADMIN_HEADERS)
        assert response.status_code == 201


async def create_flight_via_api(client, flight_number: str = "AI101", total_seats: int = 2, **overrides):
    payload = {
        "flight_number": flight_number,
        "departure_airport": "DEL",
        "arrival_airport": "BOM",
        "flight_date": "2030-05-01",
        "departure_time": "09:30:00",
        "arrival_time": "11:40:00",
        "total_seats": total_seats,
        **overrides,
    }
    return await client.post("/flights", json=payload, headers=ADMIN_HEADERS)
