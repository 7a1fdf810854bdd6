"""Store revenue: what workers sell each day and how the store closes the day.

Workers log their sales per store and day; several logs on the same day add
up. The store then records its total takings and costs for the day, and the
profit is whatever is left after the workers' share and the costs.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import atomic, insert_on_conflict
from .errors import NotFound, ValidationError
from .models import Store, StoreRevenue, Worker, WorkerDailyRevenue, utcnow
from .schemas import (
    StoreDailyRevenueRequest,
    StoreRevenueSummary,
    StoreWorkerRevenueRow,
    WorkerRevenueCreate,
)
from .workers import get_worker

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HISTORY_LIMIT = 30


def _money(value: object) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


async def get_store(db: AsyncSession, store_id: int) -> Store:
    store = await db.get(Store, store_id)
    if store is None:
        raise NotFound(f"Store {store_id} not found")
    return store


async def log_worker_revenue(db: AsyncSession, payload: WorkerRevenueCreate) -> Decimal:
    """Add a sale to the worker's tally for the day and return the new tally."""

    worker = await get_worker(db, payload.worker_id)
    await get_store(db, payload.store_id)
    if worker.store_id != payload.store_id:
        raise ValidationError(f"Worker {payload.worker_id} does not work at store {payload.store_id}")

    amount = _money(payload.revenue)
    stmt = insert_on_conflict(db, WorkerDailyRevenue).values(
        worker_id=payload.worker_id,
        store_id=payload.store_id,
        revenue=amount,
        revenue_date=payload.revenue_date,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["worker_id", "store_id", "revenue_date"],
        set_={"revenue": WorkerDailyRevenue.revenue + stmt.excluded.revenue},
    )
    async with atomic(db):
        await db.execute(stmt)
        total = await db.scalar(
            select(WorkerDailyRevenue.revenue).where(
                WorkerDailyRevenue.worker_id == payload.worker_id,
                WorkerDailyRevenue.store_id == payload.store_id,
                WorkerDailyRevenue.revenue_date == payload.revenue_date,
            )
        )

    logger.info(
        "Worker %s logged %s at store %s on %s, %s for the day",
        payload.worker_id,
        amount,
        payload.store_id,
        payload.revenue_date,
        total,
    )
    return _money(total)


async def worker_revenue_history(db: AsyncSession, worker_id: int) -> List[WorkerDailyRevenue]:
    await get_worker(db, worker_id)
    result = await db.execute(
        select(WorkerDailyRevenue)
        .where(WorkerDailyRevenue.worker_id == worker_id)
        .order_by(WorkerDailyRevenue.revenue_date.desc(), WorkerDailyRevenue.store_id.asc())
        .limit(HISTORY_LIMIT)
    )
    return list(result.scalars())


async def store_worker_revenue(
    db: AsyncSession, store_id: int, revenue_date: date
) -> tuple[list[StoreWorkerRevenueRow], Decimal]:
    """Each worker's sales at the store on one day, best seller first, plus their sum."""

    await get_store(db, store_id)
    result = await db.execute(
        select(WorkerDailyRevenue, Worker.name, Worker.job)
        .join(Worker, Worker.worker_id == WorkerDailyRevenue.worker_id)
        .where(WorkerDailyRevenue.store_id == store_id, WorkerDailyRevenue.revenue_date == revenue_date)
        .order_by(WorkerDailyRevenue.revenue.desc(), WorkerDailyRevenue.worker_id.asc())
    )
    rows = [
        StoreWorkerRevenueRow(
            worker_id=entry.worker_id,
            worker_name=name,
            job=job,
            revenue=_money(entry.revenue),
            revenue_date=entry.revenue_date,
        )
        for entry, name, job in result.all()
    ]
    return rows, _money(sum((row.revenue for row in rows), Decimal(0)))


async def record_store_daily_revenue(
    db: AsyncSession, store_id: int, payload: StoreDailyRevenueRequest
) -> StoreRevenueSummary:
    """Upsert the store's figures for the day.

    ``profit_loss`` is the total takings less the day's worker revenue and
    both cost lines. Recording the same day again replaces the row.
    """

    await get_store(db, store_id)
    worker_revenue = _money(
        await db.scalar(
            select(func.coalesce(func.sum(WorkerDailyRevenue.revenue), 0)).where(
                WorkerDailyRevenue.store_id == store_id,
                WorkerDailyRevenue.revenue_date == payload.revenue_date,
            )
        )
    )
    total_revenue = _money(payload.total_revenue)
    total_costs = _money(payload.supply_cost) + _money(payload.other_costs)
    profit_loss = total_revenue - worker_revenue - total_costs

    figures = {
        "revenue": total_revenue,
        "worker_revenue": worker_revenue,
        "supply_cost": _money(payload.supply_cost),
        "other_costs": _money(payload.other_costs),
        "profit_loss": profit_loss,
        "notes": payload.notes,
        "updated_at": utcnow(),
    }
    stmt = (
        insert_on_conflict(db, StoreRevenue)
        .values(store_id=store_id, revenue_date=payload.revenue_date, **figures)
        .on_conflict_do_update(index_elements=["store_id", "revenue_date"], set_=figures)
    )
    async with atomic(db):
        await db.execute(stmt)

    logger.info("Store %s closed %s with profit/loss %s", store_id, payload.revenue_date, profit_loss)
    return StoreRevenueSummary(
        total_revenue=total_revenue,
        worker_revenue=worker_revenue,
        total_costs=total_costs,
        profit_loss=profit_loss,
    )


async def store_revenue_history(db: AsyncSession, store_id: int) -> List[StoreRevenue]:
    await get_store(db, store_id)
    result = await db.execute(
        select(StoreRevenue)
        .where(StoreRevenue.store_id == store_id)
        .order_by(StoreRevenue.revenue_date.desc())
        .limit(HISTORY_LIMIT)
    )
    return list(result.scalars())
