"""Pydantic schemas for the booking service."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .models import BookingStatus, FlightStatus, SeatClass, WorkerRole, WorkerStatus


def _upper_enum_value(value: object) -> object:
    if isinstance(value, str):
        return value.strip().upper().replace(" ", "_")
    return value


# --- Airports and flights ------------------------------------------------------

class AirportCreate(BaseModel):
    airport_id: str = Field(..., description="Airport code", min_length=3, max_length=8)
    name: str
    city: str
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AirportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    airport_id: str
    name: str
    city: str
    country: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]


class DistanceResponse(BaseModel):
    success: bool = True
    departure: str
    arrival: str
    distance_km: Optional[float]


class FlightCreate(BaseModel):
    flight_number: str = Field(..., description="Unique flight number", min_length=2, max_length=16)
    departure_airport: str
    arrival_airport: str
    flight_date: date
    departure_time: time
    arrival_time: time
    total_seats: int = Field(..., description="Seat capacity")
    flight_company_id: Optional[int] = None


class FlightStatusUpdate(BaseModel):
    status: FlightStatus
    reason: Optional[str] = Field(None, description="Optional reason for the status change")

    @field_validator("status", mode="before")
    @classmethod
    def normalise_status(cls, value: object) -> object:
        return _upper_enum_value(value)


class FlightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flight_number: str
    departure_airport: str
    arrival_airport: str
    flight_date: date
    departure_time: time
    arrival_time: time
    total_seats: int
    available_seats: int
    status: FlightStatus
    status_reason: Optional[str]
    flight_company_id: Optional[int]
    last_updated_at: datetime


class PriceResponse(BaseModel):
    success: bool = True
    flight_number: str
    seat_class: SeatClass
    price: Decimal


class OccupancyResponse(BaseModel):
    success: bool = True
    flight_number: str
    occupancy: Decimal


class AvailableSeatsResponse(BaseModel):
    success: bool = True
    flight_number: str
    available_seats: int


class TicketsSoldResponse(BaseModel):
    success: bool = True
    flight_number: str
    tickets_sold: int


# --- Tickets -------------------------------------------------------------------

class TicketCreate(BaseModel):
    passenger_name: Optional[str] = None
    passenger_email: Optional[EmailStr] = None
    passenger_phone: Optional[str] = None
    passenger_age: Optional[int] = Field(None, ge=0, le=130)
    passenger_id: Optional[int] = None
    flight_number: str = Field(..., min_length=1)
    seat_number: str = Field(..., min_length=1, max_length=8)
    seat_class: str = Field(..., description="Economy, Business or First")
    flight_company_id: Optional[int] = None

    @model_validator(mode="after")
    def _require_passenger_reference(self) -> "TicketCreate":
        if self.passenger_id is None and not self.passenger_email:
            raise ValueError("passenger_email or passenger_id is required")
        return self


class BookingResponse(BaseModel):
    success: bool = True
    message: str = "Ticket booked successfully"
    order_number: str
    passenger_id: int
    flight_number: str
    seat_number: str
    seat_class: SeatClass
    price: Decimal


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class CancelResponse(BaseModel):
    success: bool = True
    message: str = "Ticket cancelled successfully"
    order_number: str
    refund_amount: Decimal


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_number: str
    passenger_id: int
    flight_number: str
    flight_company_id: Optional[int]
    seat_number: str
    seat_class: SeatClass
    price: Decimal
    booking_status: BookingStatus
    booking_date: datetime
    cancellation_reason: Optional[str]
    refund_amount: Optional[Decimal]


# --- Passengers ----------------------------------------------------------------

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    age: int = Field(..., ge=0, le=130)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr


class PassengerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    passenger_id: int
    name: str
    email: str
    phone: Optional[str]
    age: Optional[int]


class PassengerSummary(PassengerResponse):
    total_bookings: int
    total_spent: Decimal


class LoginResponse(BaseModel):
    success: bool = True
    role: str
    user: dict
    message: str


class PassengerBooking(BaseModel):
    order_number: str
    flight_number: str
    seat_number: str
    seat_class: SeatClass
    price: Decimal
    booking_status: BookingStatus
    booking_date: datetime
    departure_airport: str
    arrival_airport: str
    flight_date: date


class LoyaltyResponse(BaseModel):
    success: bool = True
    passenger_id: int
    loyalty_tier: str
    confirmed_tickets: int
    lifetime_spend: Decimal


# --- Workforce -----------------------------------------------------------------

class StoreCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: Optional[str] = None
    airport_id: str


class StoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    store_id: int
    name: str
    category: Optional[str]
    airport_id: str
    employee_count: int = 0


class WorkerCreate(BaseModel):
    worker_id: Optional[int] = None
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    age: int
    job: str = Field(..., min_length=1)
    payment: Decimal
    role: Optional[WorkerRole] = None
    airport_id: str
    store_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    hire_date: Optional[date] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalise_role(cls, value: object) -> object:
        return _upper_enum_value(value)


class WorkerJobUpdate(BaseModel):
    job: str = Field(..., min_length=1)
    payment: Optional[Decimal] = None
    role: Optional[WorkerRole] = None
    status: Optional[WorkerStatus] = None

    @field_validator("role", "status", mode="before")
    @classmethod
    def normalise_enums(cls, value: object) -> object:
        return _upper_enum_value(value)


class WorkerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    worker_id: int
    name: str
    email: Optional[str]
    age: int
    job: str
    payment: Decimal
    role: WorkerRole
    airport_id: str
    store_id: Optional[int]
    supervisor_id: Optional[int]
    hire_date: date
    status: WorkerStatus


class EarningsResponse(BaseModel):
    success: bool = True
    worker_id: int
    months: int
    bonus_percentage: Decimal
    total_earnings: Decimal


class PromotionResponse(BaseModel):
    success: bool = True
    worker_id: int
    eligible: bool


class WorkerCountResponse(BaseModel):
    success: bool = True
    airport_id: str
    worker_count: int


class AirportStatisticsResponse(BaseModel):
    success: bool = True
    airport_id: str
    name: str
    city: str
    total_stores: int
    total_workers: int
    departing_flights: int
    arriving_flights: int


# --- Store and worker revenue --------------------------------------------------

class WorkerRevenueCreate(BaseModel):
    worker_id: int
    store_id: int
    revenue: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    revenue_date: date


class WorkerRevenueLogged(BaseModel):
    success: bool = True
    message: str = "Revenue logged successfully"
    worker_id: int
    store_id: int
    revenue_date: date
    total_revenue: Decimal


class WorkerRevenueEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revenue_date: date
    revenue: Decimal
    store_id: int


class StoreWorkerRevenueRow(BaseModel):
    worker_id: int
    worker_name: str
    job: str
    revenue: Decimal
    revenue_date: date


class StoreWorkerRevenueResponse(BaseModel):
    success: bool = True
    data: List[StoreWorkerRevenueRow]
    total_worker_revenue: Decimal
    revenue_date: date


class StoreDailyRevenueRequest(BaseModel):
    revenue_date: date
    total_revenue: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    supply_cost: Decimal = Field(Decimal(0), ge=0, max_digits=12, decimal_places=2)
    other_costs: Decimal = Field(Decimal(0), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=255)


class StoreRevenueSummary(BaseModel):
    total_revenue: Decimal
    worker_revenue: Decimal
    total_costs: Decimal
    profit_loss: Decimal


class StoreDailyRevenueResponse(BaseModel):
    success: bool = True
    message: str = "Store revenue updated successfully"
    store_id: int
    revenue_date: date
    summary: StoreRevenueSummary


class StoreRevenueEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    store_id: int
    revenue_date: date
    revenue: Decimal
    worker_revenue: Decimal
    supply_cost: Decimal
    other_costs: Decimal
    profit_loss: Decimal
    notes: Optional[str]


# --- Reports -------------------------------------------------------------------

class DashboardStats(BaseModel):
    total_flights_today: int
    active_passengers: int
    revenue_this_week: Decimal
    total_workers: int


class DashboardResponse(BaseModel):
    success: bool = True
    stats: DashboardStats


class FlightRevenueRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered_range(self) -> "FlightRevenueRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self


class FlightRevenueRow(BaseModel):
    flight_number: str
    flight_date: date
    tickets_sold: int
    revenue: Decimal
    occupancy: Decimal


class FlightRevenueResponse(BaseModel):
    success: bool = True
    data: List[FlightRevenueRow]


class PayrollRequest(BaseModel):
    airport_id: Optional[str] = None


class PayrollRoleTotal(BaseModel):
    role: WorkerRole
    workers: int
    monthly_total: Decimal


class PayrollResponse(BaseModel):
    success: bool = True
    airport_id: Optional[str]
    workers: List[WorkerResponse]
    by_role: List[PayrollRoleTotal]
    monthly_total: Decimal


class CompanyRevenueResponse(BaseModel):
    success: bool = True
    flight_company_id: int
    total_revenue: Decimal
