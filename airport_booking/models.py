"""SQLAlchemy models for the booking service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlightStatus(str, Enum):  # type: ignore[misc]
    """Lifecycle of a flight. Only moves forward, except into CANCELLED."""

    SCHEDULED = "SCHEDULED"
    BOARDING = "BOARDING"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    CANCELLED = "CANCELLED"


class SeatClass(str, Enum):  # type: ignore[misc]
    ECONOMY = "ECONOMY"
    BUSINESS = "BUSINESS"
    FIRST = "FIRST"


class BookingStatus(str, Enum):  # type: ignore[misc]
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class WorkerRole(str, Enum):  # type: ignore[misc]
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STORE_OWNER = "STORE_OWNER"
    AIRPORT_STAFF = "AIRPORT_STAFF"
    STORE_WORKER = "STORE_WORKER"


class WorkerStatus(str, Enum):  # type: ignore[misc]
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


def _enum(enum_cls: type[Enum]) -> SAEnum:
    return SAEnum(enum_cls, native_enum=False, length=16)


class Airport(Base):
    __tablename__ = "airports"

    airport_id: Mapped[str] = mapped_column(String(8), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    city: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    country: Mapped[str | None] = mapped_column(String(64))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)


class Flight(Base):
    """Flight with its denormalised seat counter."""

    __tablename__ = "flights"
    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_flights_total_seats_positive"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_flights_available_seats_range",
        ),
    )

    flight_number: Mapped[str] = mapped_column(String(16), primary_key=True)
    departure_airport: Mapped[str] = mapped_column(ForeignKey("airports.airport_id"), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(ForeignKey("airports.airport_id"), nullable=False)
    flight_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    departure_time: Mapped[time] = mapped_column(Time, nullable=False)
    arrival_time: Mapped[time] = mapped_column(Time, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[FlightStatus] = mapped_column(
        _enum(FlightStatus), nullable=False, default=FlightStatus.SCHEDULED, index=True
    )
    status_reason: Mapped[str | None] = mapped_column(String(255))
    flight_company_id: Mapped[int | None] = mapped_column(Integer, index=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    events: Mapped[list["FlightEvent"]] = relationship(back_populates="flight", cascade="all, delete-orphan")


class FlightEvent(Base):
    """Append-only record of catalogue changes."""

    __tablename__ = "flight_events"

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    flight_number: Mapped[str] = mapped_column(
        ForeignKey("flights.flight_number", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    flight: Mapped[Flight] = relationship(back_populates="events")


class Passenger(Base):
    __tablename__ = "passengers"

    passenger_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(32))
    age: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Ticket(Base):
    """A seat sold on a flight. Cancellation flips the status, rows are never deleted."""

    __tablename__ = "tickets"
    __table_args__ = (
        # One confirmed ticket per seat; cancelled rows free the seat again.
        Index(
            "uq_tickets_confirmed_seat",
            "flight_number",
            "seat_class",
            "seat_number",
            unique=True,
            postgresql_where=text("booking_status = 'CONFIRMED'"),
            sqlite_where=text("booking_status = 'CONFIRMED'"),
        ),
    )

    order_number: Mapped[str] = mapped_column(String(32), primary_key=True)
    passenger_id: Mapped[int] = mapped_column(ForeignKey("passengers.passenger_id"), nullable=False, index=True)
    flight_number: Mapped[str] = mapped_column(ForeignKey("flights.flight_number"), nullable=False, index=True)
    flight_company_id: Mapped[int | None] = mapped_column(Integer, index=True)
    seat_number: Mapped[str] = mapped_column(String(8), nullable=False)
    seat_class: Mapped[SeatClass] = mapped_column(_enum(SeatClass), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    booking_status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED, index=True
    )
    booking_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    passenger: Mapped[Passenger] = relationship()
    flight: Mapped[Flight] = relationship()


class TicketCancellationLog(Base):
    __tablename__ = "ticket_cancellation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(ForeignKey("tickets.order_number"), nullable=False, index=True)
    flight_number: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Store(Base):
    __tablename__ = "stores"

    store_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64))
    airport_id: Mapped[str] = mapped_column(ForeignKey("airports.airport_id"), nullable=False, index=True)


class Worker(Base):
    __tablename__ = "workers"
    __table_args__ = (
        CheckConstraint("age >= 18", name="ck_workers_adult"),
        CheckConstraint("payment > 0", name="ck_workers_payment_positive"),
    )

    worker_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    job: Mapped[str] = mapped_column(String(64), nullable=False)
    payment: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    role: Mapped[WorkerRole] = mapped_column(_enum(WorkerRole), nullable=False, index=True)
    airport_id: Mapped[str] = mapped_column(ForeignKey("airports.airport_id"), nullable=False, index=True)
    store_id: Mapped[int | None] = mapped_column(ForeignKey("stores.store_id"), index=True)
    supervisor_id: Mapped[int | None] = mapped_column(ForeignKey("workers.worker_id"))
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[WorkerStatus] = mapped_column(
        _enum(WorkerStatus), nullable=False, default=WorkerStatus.ACTIVE, index=True
    )


class WorkerDailyRevenue(Base):
    """Sales a worker logged at a store on one day. Repeated logs accumulate."""

    __tablename__ = "worker_daily_revenue"
    __table_args__ = (
        UniqueConstraint("worker_id", "store_id", "revenue_date", name="uq_worker_daily_revenue"),
        CheckConstraint("revenue >= 0", name="ck_worker_daily_revenue_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    worker_id: Mapped[int] = mapped_column(ForeignKey("workers.worker_id"), nullable=False, index=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.store_id"), nullable=False, index=True)
    revenue: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    revenue_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    worker: Mapped[Worker] = relationship()


class StoreRevenue(Base):
    """Daily takings of a store against worker sales and costs, one row per store and day."""

    __tablename__ = "store_revenue"
    __table_args__ = (UniqueConstraint("store_id", "revenue_date", name="uq_store_revenue_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.store_id"), nullable=False, index=True)
    revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    worker_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal(0))
    supply_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal(0))
    other_costs: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal(0))
    profit_loss: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(255))
    revenue_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
