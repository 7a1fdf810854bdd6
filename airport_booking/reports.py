"""Read-only aggregations for dashboards and reports."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AirportNotFound
from .models import Airport, BookingStatus, Flight, Ticket, Worker, WorkerStatus
from .schemas import DashboardStats, FlightRevenueRow, PayrollRoleTotal, PayrollResponse, WorkerResponse

CENT = Decimal("0.01")


def _money(value: object) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


async def dashboard_stats(db: AsyncSession, today: Optional[date] = None) -> DashboardStats:
    today = today or date.today()
    week_start = datetime.combine(today - timedelta(days=7), time.min, tzinfo=timezone.utc)

    upcoming = await db.scalar(select(func.count(Flight.flight_number)).where(Flight.flight_date >= today))
    passengers = await db.scalar(
        select(func.count(func.distinct(Ticket.passenger_id))).where(
            Ticket.booking_status == BookingStatus.CONFIRMED
        )
    )
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Ticket.price), 0)).where(
            Ticket.booking_status == BookingStatus.CONFIRMED,
            Ticket.booking_date >= week_start,
        )
    )
    workers = await db.scalar(
        select(func.count(Worker.worker_id)).where(Worker.status == WorkerStatus.ACTIVE)
    )
    return DashboardStats(
        total_flights_today=int(upcoming or 0),
        active_passengers=int(passengers or 0),
        revenue_this_week=_money(revenue),
        total_workers=int(workers or 0),
    )


async def flight_revenue_report(db: AsyncSession, start: date, end: date) -> list[FlightRevenueRow]:
    sold = func.count(Ticket.order_number)
    revenue = func.coalesce(func.sum(Ticket.price), 0)
    stmt = (
        select(Flight, sold, revenue)
        .outerjoin(
            Ticket,
            and_(
                Ticket.flight_number == Flight.flight_number,
                Ticket.booking_status == BookingStatus.CONFIRMED,
            ),
        )
        .where(Flight.flight_date >= start, Flight.flight_date <= end)
        .group_by(Flight.flight_number)
        .order_by(revenue.desc(), Flight.flight_number.asc())
    )
    result = await db.execute(stmt)
    rows = []
    for flight, tickets_sold, total in result.all():
        occupancy = (Decimal(int(tickets_sold)) * 100 / Decimal(flight.total_seats)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        rows.append(
            FlightRevenueRow(
                flight_number=flight.flight_number,
                flight_date=flight.flight_date,
                tickets_sold=int(tickets_sold),
                revenue=_money(total),
                occupancy=occupancy,
            )
        )
    return rows


async def company_revenue(db: AsyncSession, flight_company_id: int) -> Decimal:
    total = await db.scalar(
        select(func.coalesce(func.sum(Ticket.price), 0)).where(
            Ticket.flight_company_id == flight_company_id,
            Ticket.booking_status == BookingStatus.CONFIRMED,
        )
    )
    return _money(total)


async def payroll_report(db: AsyncSession, airport_id: Optional[str] = None) -> PayrollResponse:
    if airport_id is not None and await db.get(Airport, airport_id) is None:
        raise AirportNotFound(airport_id)

    stmt = select(Worker).where(Worker.status == WorkerStatus.ACTIVE)
    if airport_id is not None:
        stmt = stmt.where(Worker.airport_id == airport_id)
    result = await db.execute(stmt.order_by(Worker.role.asc(), Worker.payment.desc()))
    workers = list(result.scalars())

    totals: dict = {}
    for worker in workers:
        count, amount = totals.get(worker.role, (0, Decimal(0)))
        totals[worker.role] = (count + 1, amount + Decimal(worker.payment))

    return PayrollResponse(
        airport_id=airport_id,
        workers=[WorkerResponse.model_validate(worker) for worker in workers],
        by_role=[
            PayrollRoleTotal(role=role, workers=count, monthly_total=_money(amount))
            for role, (count, amount) in sorted(totals.items(), key=lambda item: item[0].value)
        ],
        monthly_total=_money(sum((Decimal(w.payment) for w in workers), Decimal(0))),
    )
