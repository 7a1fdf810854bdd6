"""Loyalty tiers, passenger history and revenue reports."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import ADMIN_HEADERS, create_flight_via_api, seed_airports_via_api

pytestmark = pytest.mark.asyncio


async def book(client, seat: str, flight_number: str = "AI101", email: str = "tara@example.com") -> dict:
    response = await client.post(
        "/tickets",
        json={
            "passenger_name": "Tara Singh",
            "passenger_email": email,
            "flight_number": flight_number,
            "seat_number": seat,
            "seat_class": "Economy",
        },
    )
    assert response.status_code == 200
    return response.json()


async def seed_sales(client) -> list[dict]:
    await seed_airports_via_api(client)
    await create_flight_via_api(client, total_seats=5, flight_company_id=7)
    await create_flight_via_api(client, flight_number="AI202", total_seats=5, flight_date="2030-05-02")
    return [await book(client, seat) for seat in ("1A", "1B", "1C")]


async def test_loyalty_tier_follows_confirmed_tickets(client):
    tickets = await seed_sales(client)
    passenger_id = tickets[0]["passenger_id"]

    standing = await client.get(f"/passengers/{passenger_id}/loyalty")
    assert standing.status_code == 200
    assert standing.json()["loyalty_tier"] == "SILVER"
    assert standing.json()["confirmed_tickets"] == 3

    await client.post(f"/tickets/{tickets[0]['order_number']}/cancel", json={})

    standing = await client.get(f"/passengers/{passenger_id}/loyalty")
    body = standing.json()
    assert body["loyalty_tier"] == "BRONZE"
    assert body["confirmed_tickets"] == 2
    assert Decimal(body["lifetime_spend"]) == Decimal(tickets[1]["price"]) + Decimal(tickets[2]["price"])

    missing = await client.get("/passengers/9999/loyalty")
    assert missing.status_code == 404


async def test_passenger_listing_and_history(client):
    tickets = await seed_sales(client)
    await book(client, "2A", flight_number="AI202", email="omar@example.com")
    await client.post(f"/tickets/{tickets[2]['order_number']}/cancel", json={})

    listing = (await client.get("/passengers")).json()
    assert [row["email"] for row in listing] == ["tara@example.com", "omar@example.com"]
    tara = listing[0]
    assert tara["total_bookings"] == 3
    assert Decimal(tara["total_spent"]) == Decimal(tickets[0]["price"]) + Decimal(tickets[1]["price"])

    history = (await client.get(f"/passengers/{tara['passenger_id']}/bookings")).json()
    assert sorted(item["booking_status"] for item in history) == ["CANCELLED", "CONFIRMED", "CONFIRMED"]
    assert {item["departure_airport"] for item in history} == {"DEL"}


async def test_flight_revenue_report(client):
    tickets = await seed_sales(client)
    await book(client, "9C", flight_number="AI202", email="omar@example.com")
    await client.post(f"/tickets/{tickets[0]['order_number']}/cancel", json={})

    response = await client.post(
        "/reports/flight-revenue",
        json={"start_date": "2030-05-01", "end_date": "2030-05-01"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    rows = response.json()["data"]
    assert [row["flight_number"] for row in rows] == ["AI101"]
    assert rows[0]["tickets_sold"] == 2
    assert Decimal(rows[0]["revenue"]) == Decimal(tickets[1]["price"]) + Decimal(tickets[2]["price"])
    assert Decimal(rows[0]["occupancy"]) == Decimal("40.00")

    both = await client.post(
        "/reports/flight-revenue",
        json={"start_date": "2030-05-01", "end_date": "2030-05-02"},
        headers=ADMIN_HEADERS,
    )
    assert [row["flight_number"] for row in both.json()["data"]] == ["AI101", "AI202"]

    reversed_range = await client.post(
        "/reports/flight-revenue",
        json={"start_date": "2030-05-02", "end_date": "2030-05-01"},
        headers=ADMIN_HEADERS,
    )
    assert reversed_range.status_code == 400

    forbidden = await client.post(
        "/reports/flight-revenue",
        json={"start_date": "2030-05-01", "end_date": "2030-05-01"},
        headers={"x-user-role": "passenger"},
    )
    assert forbidden.status_code == 403


async def test_company_revenue_and_dashboard(client):
    tickets = await seed_sales(client)
    await book(client, "3A", flight_number="AI202", email="omar@example.com")

    revenue = await client.get("/flight-companies/7/revenue")
    assert Decimal(revenue.json()["total_revenue"]) == sum(Decimal(ticket["price"]) for ticket in tickets)

    nothing = await client.get("/flight-companies/99/revenue")
    assert Decimal(nothing.json()["total_revenue"]) == Decimal("0.00")

    dashboard = await client.get("/dashboard/stats")
    stats = dashboard.json()["stats"]
    assert stats["total_flights_today"] == 2
    assert stats["active_passengers"] == 2
    assert stats["total_workers"] == 0
    assert Decimal(stats["revenue_this_week"]) > sum(Decimal(ticket["price"]) for ticket in tickets)
