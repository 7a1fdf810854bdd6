"""Workforce: hiring, job changes, earnings, stores and airport headcounts."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AirportNotFound, Conflict, NotFound, ValidationError, WorkerNotFound
from .models import Airport, Flight, Store, Worker, WorkerRole, WorkerStatus
from .schemas import AirportStatisticsResponse, StoreCreate, WorkerCreate, WorkerJobUpdate

logger = logging.getLogger(__name__)

MINIMUM_WORKER_AGE = 18
PROMOTION_TENURE_DAYS = 730

# Legacy job-title keywords, checked in order. Only used when no role is given.
ROLE_KEYWORDS: list[tuple[WorkerRole, tuple[str, ...]]] = [
    (WorkerRole.ADMIN, ("admin", "administrator")),
    (WorkerRole.MANAGER, ("manager", "supervisor")),
    (WorkerRole.STORE_OWNER, ("owner",)),
    (WorkerRole.AIRPORT_STAFF, ("security", "staff", "cleaner", "technician", "ground")),
    (WorkerRole.STORE_WORKER, ("barista", "chef", "cashier", "sales", "waiter", "waitress")),
]


def infer_role_from_job(job: str) -> Optional[WorkerRole]:
    title = (job or "").lower()
    for role, keywords in ROLE_KEYWORDS:
        if any(keyword in title for keyword in keywords):
            return role
    return None


def resolve_role(job: str, role: Optional[WorkerRole]) -> WorkerRole:
    """Return the explicit role, or infer one from the job title as a fallback."""

    if role is not None:
        return role
    inferred = infer_role_from_job(job)
    if inferred is None:
        raise ValidationError(f"Cannot determine a role for job {job!r}; pass one explicitly")
    logger.warning("Role for job %r inferred from title as %s", job, inferred.value)
    return inferred


def _validate_terms(age: int, payment: Decimal) -> None:
    if age < MINIMUM_WORKER_AGE:
        raise ValidationError(f"Workers must be at least {MINIMUM_WORKER_AGE} years old")
    if payment <= 0:
        raise ValidationError("Payment must be positive")


# --- Stores --------------------------------------------------------------------

async def create_store(db: AsyncSession, payload: StoreCreate) -> Store:
    if await db.get(Airport, payload.airport_id) is None:
        raise AirportNotFound(payload.airport_id)
    store = Store(name=payload.name, category=payload.category, airport_id=payload.airport_id)
    db.add(store)
    await db.commit()
    await db.refresh(store)
    return store


async def list_stores(db: AsyncSession) -> list[tuple[Store, int]]:
    """Stores with their count of active employees."""

    stmt = (
        select(Store, func.count(Worker.worker_id))
        .outerjoin(
            Worker,
            and_(Worker.store_id == Store.store_id, Worker.status == WorkerStatus.ACTIVE),
        )
        .group_by(Store.store_id)
        .order_by(Store.name.asc())
    )
    result = await db.execute(stmt)
    return [(store, int(count)) for store, count in result.all()]


# --- Workers -------------------------------------------------------------------

async def get_worker(db: AsyncSession, worker_id: int) -> Worker:
    worker = await db.get(Worker, worker_id)
    if worker is None:
        raise WorkerNotFound(worker_id)
    return worker


async def list_workers(db: AsyncSession, airport_id: Optional[str] = None) -> List[Worker]:
    stmt = select(Worker)
    if airport_id:
        stmt = stmt.where(Worker.airport_id == airport_id)
    result = await db.execute(stmt.order_by(Worker.hire_date.desc(), Worker.worker_id.desc()))
    return list(result.scalars())


async def list_reports(db: AsyncSession, manager_id: int) -> List[Worker]:
    """Workers whose supervisor is ``manager_id``, newest hires first."""

    await get_worker(db, manager_id)
    stmt = (
        select(Worker)
        .where(Worker.supervisor_id == manager_id)
        .order_by(Worker.hire_date.desc(), Worker.worker_id.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars())


async def hire_worker(db: AsyncSession, payload: WorkerCreate, today: Optional[date] = None) -> Worker:
    _validate_terms(payload.age, payload.payment)
    role = resolve_role(payload.job, payload.role)

    if await db.get(Airport, payload.airport_id) is None:
        raise AirportNotFound(payload.airport_id)
    if payload.store_id is not None:
        store = await db.get(Store, payload.store_id)
        if store is None:
            raise NotFound(f"Store {payload.store_id} not found")
        if store.airport_id != payload.airport_id:
            raise ValidationError("Store belongs to a different airport")
    if payload.supervisor_id is not None:
        await get_worker(db, payload.supervisor_id)
    if payload.worker_id is not None and await db.get(Worker, payload.worker_id) is not None:
        raise ValidationError(f"Worker {payload.worker_id} already exists")
    email = payload.email.strip().lower() if payload.email else None
    if email and await db.scalar(select(Worker.worker_id).where(Worker.email == email)) is not None:
        raise Conflict(f"A worker with email {email} already exists")

    worker = Worker(
        name=payload.name.strip(),
        email=email,
        age=payload.age,
        job=payload.job,
        payment=payload.payment,
        role=role,
        airport_id=payload.airport_id,
        store_id=payload.store_id,
        supervisor_id=payload.supervisor_id,
        hire_date=payload.hire_date or today or date.today(),
        status=WorkerStatus.ACTIVE,
    )
    if payload.worker_id is not None:
        worker.worker_id = payload.worker_id
    db.add(worker)
    await db.commit()
    await db.refresh(worker)
    logger.info("Hired worker %s as %s at %s", worker.worker_id, role.value, worker.airport_id)
    return worker


async def change_job(db: AsyncSession, worker_id: int, payload: WorkerJobUpdate) -> Worker:
    worker = await get_worker(db, worker_id)

    worker.job = payload.job
    if payload.payment is not None:
        _validate_terms(worker.age, payload.payment)
        worker.payment = payload.payment
    if payload.role is not None:
        worker.role = payload.role
    if payload.status is not None:
        worker.status = payload.status

    await db.commit()
    await db.refresh(worker)
    logger.info("Worker %s now %s (%s)", worker_id, worker.job, worker.role.value)
    return worker


def calculate_earnings(payment: Decimal, months: int, bonus_percentage: Decimal) -> Decimal:
    if months < 0:
        raise ValidationError("months must not be negative")
    total = Decimal(payment) * months * (Decimal(1) + Decimal(bonus_percentage) / Decimal(100))
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def is_eligible_for_promotion(worker: Worker, today: Optional[date] = None) -> bool:
    today = today or date.today()
    if worker.status is not WorkerStatus.ACTIVE:
        return False
    return (today - worker.hire_date).days >= PROMOTION_TENURE_DAYS


async def count_airport_workers(db: AsyncSession, airport_id: str) -> int:
    if await db.get(Airport, airport_id) is None:
        raise AirportNotFound(airport_id)
    stmt = select(func.count(Worker.worker_id)).where(
        Worker.airport_id == airport_id,
        Worker.status == WorkerStatus.ACTIVE,
    )
    return int(await db.scalar(stmt) or 0)


async def airport_statistics(db: AsyncSession, airport_id: str) -> AirportStatisticsResponse:
    airport = await db.get(Airport, airport_id)
    if airport is None:
        raise AirportNotFound(airport_id)

    stores = await db.scalar(select(func.count(Store.store_id)).where(Store.airport_id == airport_id))
    active_workers = await db.scalar(
        select(func.count(Worker.worker_id)).where(
            Worker.airport_id == airport_id,
            Worker.status == WorkerStatus.ACTIVE,
        )
    )
    departing = await db.scalar(
        select(func.count(Flight.flight_number)).where(Flight.departure_airport == airport_id)
    )
    arriving = await db.scalar(select(func.count(Flight.flight_number)).where(Flight.arrival_airport == airport_id))
    return AirportStatisticsResponse(
        airport_id=airport.airport_id,
        name=airport.name,
        city=airport.city,
        total_stores=int(stores or 0),
        total_workers=int(active_workers or 0),
        departing_flights=int(departing or 0),
        arriving_flights=int(arriving or 0),
    )
