"""Integration tests for the booking HTTP API."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from airport_booking import catalog

from conftest import ADMIN_HEADERS, create_flight_via_api, seed_airports_via_api

pytestmark = pytest.mark.asyncio


def ticket_payload(seat: str, email: str = "meera@example.com", **overrides) -> dict:
    payload = {
        "passenger_name": "Meera Iyer",
        "passenger_email": email,
        "passenger_age": 29,
        "flight_number": "AI101",
        "seat_number": seat,
        "seat_class": "Economy",
    }
    payload.update(overrides)
    return payload


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_book_until_sold_out_then_cancel(client):
    await seed_airports_via_api(client)
    response = await create_flight_via_api(client, total_seats=2)
    assert response.status_code == 201
    flight = response.json()
    assert flight["available_seats"] == 2
    assert flight["status"] == "SCHEDULED"

    quote = await client.get("/flights/AI101/price/economy")
    assert quote.status_code == 200
    assert quote.json()["seat_class"] == "ECONOMY"

    first = await client.post("/tickets", json=ticket_payload("1A"))
    assert first.status_code == 200
    booked = first.json()
    assert booked["success"] is True
    assert booked["order_number"].startswith("TKT")
    assert Decimal(booked["price"]) == Decimal(quote.json()["price"])

    second = await client.post("/tickets", json=ticket_payload("1B", email="ravi@example.com"))
    assert second.status_code == 200
    assert Decimal(second.json()["price"]) > Decimal(booked["price"])

    third = await client.post("/tickets", json=ticket_payload("1C", email="lata@example.com"))
    assert third.status_code == 409
    assert third.json() == {"success": False, "message": "Flight AI101 is sold out"}

    seats = await client.get("/flights/AI101/available-seats")
    assert seats.json()["available_seats"] == 0
    sold = await client.get("/flights/AI101/tickets-sold")
    assert sold.json()["tickets_sold"] == 2
    occupancy = await client.get("/flights/AI101/occupancy")
    assert Decimal(occupancy.json()["occupancy"]) == Decimal("100.00")

    cancel = await client.post(f"/tickets/{booked['order_number']}/cancel", json={"reason": "ill"})
    assert cancel.status_code == 200
    refund = Decimal(cancel.json()["refund_amount"])
    assert refund == (Decimal(booked["price"]) * Decimal("0.8")).quantize(Decimal("0.01"))

    seats = await client.get("/flights/AI101/available-seats")
    assert seats.json()["available_seats"] == 1

    again = await client.post(f"/tickets/{booked['order_number']}/cancel", json={})
    assert again.status_code == 409
    assert again.json()["success"] is False

    tickets = await client.get("/tickets", params={"limit": 10})
    statuses = sorted(ticket["booking_status"] for ticket in tickets.json())
    assert statuses == ["CANCELLED", "CONFIRMED"]


async def test_error_mapping(client):
    await seed_airports_via_api(client)
    await create_flight_via_api(client)

    missing = await client.post("/tickets", json={"passenger_email": "x@example.com", "flight_number": "AI101"})
    assert missing.status_code == 400
    assert missing.json()["success"] is False

    bad_class = await client.post("/tickets", json=ticket_payload("2A", seat_class="Premium"))
    assert bad_class.status_code == 400

    unknown = await client.post("/tickets", json=ticket_payload("2A", flight_number="ZZ999"))
    assert unknown.status_code == 404
    assert unknown.json()["message"] == "Flight ZZ999 not found"

    no_ticket = await client.post("/tickets/TKT0000000000000000/cancel", json={})
    assert no_ticket.status_code == 404

    no_flight = await client.get("/flights/ZZ999")
    assert no_flight.status_code == 404

    await client.post("/tickets", json=ticket_payload("2A"))
    taken = await client.post("/tickets", json=ticket_payload("2a", email="other@example.com"))
    assert taken.status_code == 409


async def test_datastore_failure_is_retryable_and_leaves_nothing_behind(client, monkeypatch):
    await seed_airports_via_api(client)
    await create_flight_via_api(client, total_seats=2)

    async def locked(db, flight_number, delta):
        raise OperationalError("UPDATE flights", {}, Exception("database is locked"))

    monkeypatch.setattr(catalog, "adjust_available_seats", locked)

    response = await client.post("/tickets", json=ticket_payload("1A"))
    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "message": "Datastore temporarily unavailable, retry the operation",
    }

    seats = await client.get("/flights/AI101/available-seats")
    assert seats.json()["available_seats"] == 2
    tickets = await client.get("/tickets")
    assert tickets.json() == []
    passengers = await client.get("/passengers")
    assert passengers.json() == []


async def test_role_header_is_enforced(client):
    await seed_airports_via_api(client)

    admin = await create_flight_via_api(client)
    assert admin.status_code == 201

    payload = {
        "flight_number": "AI202",
        "departure_airport": "BOM",
        "arrival_airport": "DEL",
        "flight_date": "2030-05-02",
        "departure_time": "13:00:00",
        "arrival_time": "15:10:00",
        "total_seats": 10,
    }
    missing = await client.post("/flights", json=payload)
    assert missing.status_code == 401
    assert missing.json()["success"] is False

    passenger = await client.post("/flights", json=payload, headers={"x-user-role": "passenger"})
    assert passenger.status_code == 403

    manager = await client.post("/flights", json=payload, headers={"x-user-role": "Manager"})
    assert manager.status_code == 201

    boarding = await client.patch(
        "/flights/AI202/status",
        json={"status": "boarding"},
        headers={"x-user-role": "Airport Staff"},
    )
    assert boarding.status_code == 200
    assert boarding.json()["status"] == "BOARDING"

    backwards = await client.patch(
        "/flights/AI202/status",
        json={"status": "SCHEDULED"},
        headers=ADMIN_HEADERS,
    )
    assert backwards.status_code == 409


async def test_transition_out_of_terminal_state_is_conflict(client):
    await seed_airports_via_api(client)
    await create_flight_via_api(client)

    arrived = await client.patch("/flights/AI101/status", json={"status": "Arrived"}, headers=ADMIN_HEADERS)
    assert arrived.status_code == 200

    response = await client.patch("/flights/AI101/status", json={"status": "Boarding"}, headers=ADMIN_HEADERS)
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "message": "Cannot transition flight from ARRIVED to BOARDING",
    }

    flight = await client.get("/flights/AI101")
    assert flight.json()["status"] == "ARRIVED"


async def test_cancelled_flight_stops_selling(client):
    await seed_airports_via_api(client)
    await create_flight_via_api(client, total_seats=5)

    response = await client.patch(
        "/flights/AI101/status",
        json={"status": "CANCELLED", "reason": "crew shortage"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["status_reason"] == "crew shortage"

    listing = await client.get("/flights")
    assert listing.json() == []

    booking = await client.post("/tickets", json=ticket_payload("1A"))
    assert booking.status_code == 409


async def test_airports_and_distance(client):
    await seed_airports_via_api(client)

    duplicate = await client.post(
        "/airports",
        json={"airport_id": "DEL", "name": "Again", "city": "Delhi"},
        headers=ADMIN_HEADERS,
    )
    assert duplicate.status_code == 400

    airports = await client.get("/airports")
    assert [airport["airport_id"] for airport in airports.json()] == ["DEL", "BOM"]

    distance = await client.get("/airports/del/bom/distance")
    assert distance.status_code == 200
    assert 1100 < distance.json()["distance_km"] < 1200


async def test_signup_and_login(client):
    signup = await client.post(
        "/auth/signup",
        json={"name": "Kiran Das", "email": "Kiran@Example.com", "age": 41},
    )
    assert signup.status_code == 201
    passenger = signup.json()
    assert passenger["email"] == "kiran@example.com"

    duplicate = await client.post(
        "/auth/signup",
        json={"name": "Kiran Das", "email": "kiran@example.com", "age": 41},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Email already registered"

    login = await client.post("/auth/login", json={"email": "KIRAN@example.com"})
    assert login.status_code == 200
    body = login.json()
    assert body["role"] == "passenger"
    assert body["user"]["passenger_id"] == passenger["passenger_id"]

    unknown = await client.post("/auth/login", json={"email": "nobody@example.com"})
    assert unknown.status_code == 404
    assert unknown.json() == {"success": False, "message": "User not found"}


async def test_malformed_emails_are_rejected(client):
    await seed_airports_via_api(client)
    await create_flight_via_api(client)

    signup = await client.post("/auth/signup", json={"name": "Kiran Das", "email": "kiran.example.com", "age": 41})
    assert signup.status_code == 400
    assert signup.json()["success"] is False

    login = await client.post("/auth/login", json={"email": "kiran@"})
    assert login.status_code == 400

    booking = await client.post("/tickets", json=ticket_payload("1A", email="not an email"))
    assert booking.status_code == 400
    passengers = await client.get("/passengers")
    assert passengers.json() == []


async def test_booking_with_registered_passenger_id(client):
    await seed_airports_via_api(client)
    await create_flight_via_api(client, total_seats=3)
    signup = await client.post("/auth/signup", json={"name": "Nila", "email": "nila@example.com", "age": 30})
    passenger_id = signup.json()["passenger_id"]

    response = await client.post(
        "/tickets",
        json={"passenger_id": passenger_id, "flight_number": "AI101", "seat_number": "5F", "seat_class": "First"},
    )
    assert response.status_code == 200
    assert response.json()["passenger_id"] == passenger_id
    assert response.json()["seat_class"] == "FIRST"

    bookings = await client.get(f"/passengers/{passenger_id}/bookings")
    assert [item["seat_number"] for item in bookings.json()] == ["5F"]

    missing = await client.post(
        "/tickets",
        json={"passenger_id": 9999, "flight_number": "AI101", "seat_number": "5E", "seat_class": "First"},
    )
    assert missing.status_code == 404
