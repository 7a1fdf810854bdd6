"""FastAPI application exposing the booking API."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from . import booking, cancellation, catalog, fares, loyalty, passengers, reports, revenue, workers
from .config import Settings, load_settings
from .db import create_engine, create_session_factory, get_db, init_db
from .errors import BookingError, FlightNotFound
from .models import Flight
from .schemas import (
    AirportCreate,
    AirportResponse,
    AirportStatisticsResponse,
    AvailableSeatsResponse,
    BookingResponse,
    CancelRequest,
    CancelResponse,
    CompanyRevenueResponse,
    DashboardResponse,
    DistanceResponse,
    EarningsResponse,
    FlightCreate,
    FlightResponse,
    FlightRevenueRequest,
    FlightRevenueResponse,
    FlightStatusUpdate,
    LoginRequest,
    LoginResponse,
    LoyaltyResponse,
    OccupancyResponse,
    PassengerBooking,
    PassengerResponse,
    PassengerSummary,
    PayrollRequest,
    PayrollResponse,
    PriceResponse,
    PromotionResponse,
    SignupRequest,
    StoreCreate,
    StoreDailyRevenueRequest,
    StoreDailyRevenueResponse,
    StoreResponse,
    StoreRevenueEntry,
    StoreWorkerRevenueResponse,
    TicketCreate,
    TicketResponse,
    TicketsSoldResponse,
    WorkerCountResponse,
    WorkerCreate,
    WorkerJobUpdate,
    WorkerResponse,
    WorkerRevenueCreate,
    WorkerRevenueEntry,
    WorkerRevenueLogged,
)

logger = logging.getLogger("airport_booking")

ADMIN = "admin"
MANAGER = "manager"
AIRPORT_STAFF = "airport_staff"
STORE_OWNER = "store_owner"
STORE_WORKER = "store_worker"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _normalise_role(role: str) -> str:
    return role.strip().lower().replace("_", "").replace(" ", "")


def require_role(*roles: str) -> Callable[..., str]:
    """Dependency that compares the ``x-user-role`` header with ``roles``."""

    allowed = {_normalise_role(role) for role in roles}

    async def _check(x_user_role: Optional[str] = Header(default=None)) -> str:
        caller = _normalise_role(x_user_role or "")
        if not caller:
            raise HTTPException(status_code=401, detail="Missing caller role header")
        if caller not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden: insufficient privileges")
        return caller

    return _check


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def _require_flight(db: AsyncSession, flight_number: str) -> Flight:
    flight = await catalog.get_flight(db, flight_number)
    if flight is None:
        raise FlightNotFound(flight_number)
    return flight


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Airport Booking", version="0.1.0")
    app.state.settings = settings
    app.state.engine = create_engine(settings.database_dsn)
    app.state.session_factory = create_session_factory(app.state.engine)

    @app.on_event("startup")
    async def on_startup() -> None:
        await init_db(app.state.engine)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.engine.dispose()

    @app.exception_handler(BookingError)
    async def handle_booking_error(request: Request, exc: BookingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
            for error in exc.errors()
        )
        return _error_response(400, f"Invalid request: {problems}")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # --- Auth ---------------------------------------------------------------

    @app.post("/auth/signup", response_model=PassengerResponse, status_code=201)
    async def signup(payload: SignupRequest, db: AsyncSession = Depends(get_db)):
        return await passengers.signup(db, payload)

    @app.post("/auth/login", response_model=LoginResponse)
    async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)) -> LoginResponse:
        role, user = await passengers.login(db, payload.email)
        return LoginResponse(role=role, user=user, message=f"{role} login successful")

    # --- Airports -----------------------------------------------------------

    @app.get("/airports", response_model=List[AirportResponse])
    async def list_airports(db: AsyncSession = Depends(get_db)):
        return await catalog.list_airports(db)

    @app.post("/airports", response_model=AirportResponse, status_code=201)
    async def create_airport(
        payload: AirportCreate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN)),
    ):
        return await catalog.create_airport(db, payload)

    @app.get("/airports/{departure}/{arrival}/distance", response_model=DistanceResponse)
    async def airport_distance(departure: str, arrival: str, db: AsyncSession = Depends(get_db)):
        distance = await catalog.flight_distance_km(db, departure.upper(), arrival.upper())
        return DistanceResponse(departure=departure.upper(), arrival=arrival.upper(), distance_km=distance)

    @app.get("/airports/{airport_id}/workers/count", response_model=WorkerCountResponse)
    async def airport_worker_count(airport_id: str, db: AsyncSession = Depends(get_db)):
        count = await workers.count_airport_workers(db, airport_id)
        return WorkerCountResponse(airport_id=airport_id, worker_count=count)

    @app.get("/airports/{airport_id}/statistics", response_model=AirportStatisticsResponse)
    async def airport_statistics(airport_id: str, db: AsyncSession = Depends(get_db)):
        return await workers.airport_statistics(db, airport_id.upper())

    # --- Flights ------------------------------------------------------------

    @app.get("/flights", response_model=List[FlightResponse])
    async def list_flights(db: AsyncSession = Depends(get_db)):
        return await catalog.list_active_flights(db)

    @app.post("/flights", response_model=FlightResponse, status_code=201)
    async def create_flight(
        payload: FlightCreate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER)),
    ):
        return await catalog.create_flight(db, payload)

    @app.get("/flights/{flight_number}", response_model=FlightResponse)
    async def get_flight(flight_number: str, db: AsyncSession = Depends(get_db)):
        return await _require_flight(db, flight_number)

    @app.patch("/flights/{flight_number}/status", response_model=FlightResponse)
    async def update_flight_status(
        flight_number: str,
        payload: FlightStatusUpdate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER, AIRPORT_STAFF)),
    ):
        return await catalog.set_status(db, flight_number, payload.status, payload.reason)

    @app.get("/flights/{flight_number}/price/{seat_class}", response_model=PriceResponse)
    async def flight_price(
        flight_number: str,
        seat_class: str,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> PriceResponse:
        parsed = fares.parse_seat_class(seat_class)
        amount = await fares.price(db, flight_number, parsed, settings.fare_policy)
        return PriceResponse(flight_number=flight_number, seat_class=parsed, price=amount)

    @app.get("/flights/{flight_number}/occupancy", response_model=OccupancyResponse)
    async def flight_occupancy(flight_number: str, db: AsyncSession = Depends(get_db)):
        occupancy = await catalog.get_occupancy(db, flight_number)
        return OccupancyResponse(flight_number=flight_number, occupancy=occupancy)

    @app.get("/flights/{flight_number}/available-seats", response_model=AvailableSeatsResponse)
    async def flight_available_seats(flight_number: str, db: AsyncSession = Depends(get_db)):
        flight = await _require_flight(db, flight_number)
        return AvailableSeatsResponse(flight_number=flight_number, available_seats=flight.available_seats)

    @app.get("/flights/{flight_number}/tickets-sold", response_model=TicketsSoldResponse)
    async def flight_tickets_sold(flight_number: str, db: AsyncSession = Depends(get_db)):
        await _require_flight(db, flight_number)
        sold = await catalog.count_confirmed_tickets(db, flight_number)
        return TicketsSoldResponse(flight_number=flight_number, tickets_sold=sold)

    # --- Tickets ------------------------------------------------------------

    @app.get("/tickets", response_model=List[TicketResponse])
    async def list_tickets(
        limit: int = Query(default=100, ge=1, le=500),
        db: AsyncSession = Depends(get_db),
    ):
        return await booking.list_recent_tickets(db, limit)

    @app.post("/tickets", response_model=BookingResponse)
    async def book_ticket(
        payload: TicketCreate,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> BookingResponse:
        ticket = await booking.book(db, payload, settings.fare_policy)
        return BookingResponse(
            order_number=ticket.order_number,
            passenger_id=ticket.passenger_id,
            flight_number=ticket.flight_number,
            seat_number=ticket.seat_number,
            seat_class=ticket.seat_class,
            price=ticket.price,
        )

    @app.post("/tickets/{order_number}/cancel", response_model=CancelResponse)
    async def cancel_ticket(
        order_number: str,
        payload: CancelRequest,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> CancelResponse:
        result = await cancellation.cancel(db, order_number, payload.reason, settings.refund_rate)
        return CancelResponse(order_number=result.order_number, refund_amount=result.refund_amount)

    # --- Passengers ---------------------------------------------------------

    @app.get("/passengers", response_model=List[PassengerSummary])
    async def list_passengers(db: AsyncSession = Depends(get_db)):
        rows = await loyalty.list_passengers_with_spend(db)
        return [
            PassengerSummary(
                **PassengerResponse.model_validate(passenger).model_dump(),
                total_bookings=bookings,
                total_spent=spent,
            )
            for passenger, bookings, spent in rows
        ]

    @app.get("/passengers/{passenger_id}/bookings", response_model=List[PassengerBooking])
    async def passenger_bookings(passenger_id: int, db: AsyncSession = Depends(get_db)):
        return await loyalty.passenger_bookings(db, passenger_id)

    @app.get("/passengers/{passenger_id}/loyalty", response_model=LoyaltyResponse)
    async def passenger_loyalty(passenger_id: int, db: AsyncSession = Depends(get_db)):
        standing = await loyalty.loyalty_tier(db, passenger_id)
        return LoyaltyResponse(
            passenger_id=standing.passenger_id,
            loyalty_tier=standing.tier,
            confirmed_tickets=standing.confirmed_tickets,
            lifetime_spend=standing.lifetime_spend,
        )

    # --- Workers and stores -------------------------------------------------

    @app.get("/workers", response_model=List[WorkerResponse])
    async def list_workers(
        airport_id: Optional[str] = Query(default=None),
        db: AsyncSession = Depends(get_db),
    ):
        return await workers.list_workers(db, airport_id)

    @app.post("/workers", response_model=WorkerResponse, status_code=201)
    async def hire_worker(
        payload: WorkerCreate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER)),
    ):
        return await workers.hire_worker(db, payload)

    @app.get("/workers/by-manager/{manager_id}", response_model=List[WorkerResponse])
    async def workers_by_manager(manager_id: int, db: AsyncSession = Depends(get_db)):
        return await workers.list_reports(db, manager_id)

    @app.post("/workers/revenue", response_model=WorkerRevenueLogged)
    async def log_worker_revenue(
        payload: WorkerRevenueCreate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER, STORE_OWNER, STORE_WORKER)),
    ):
        total = await revenue.log_worker_revenue(db, payload)
        return WorkerRevenueLogged(
            worker_id=payload.worker_id,
            store_id=payload.store_id,
            revenue_date=payload.revenue_date,
            total_revenue=total,
        )

    @app.get("/workers/{worker_id}", response_model=WorkerResponse)
    async def worker_details(worker_id: int, db: AsyncSession = Depends(get_db)):
        return await workers.get_worker(db, worker_id)

    @app.patch("/workers/{worker_id}/job", response_model=WorkerResponse)
    async def change_worker_job(
        worker_id: int,
        payload: WorkerJobUpdate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN)),
    ):
        return await workers.change_job(db, worker_id, payload)

    @app.get("/workers/{worker_id}/earnings", response_model=EarningsResponse)
    async def worker_earnings(
        worker_id: int,
        months: int = Query(default=12, ge=0, le=600),
        bonus: Decimal = Query(default=Decimal(10)),
        db: AsyncSession = Depends(get_db),
    ):
        worker = await workers.get_worker(db, worker_id)
        total = workers.calculate_earnings(worker.payment, months, bonus)
        return EarningsResponse(worker_id=worker_id, months=months, bonus_percentage=bonus, total_earnings=total)

    @app.get("/workers/{worker_id}/promotion", response_model=PromotionResponse)
    async def worker_promotion(worker_id: int, db: AsyncSession = Depends(get_db)):
        worker = await workers.get_worker(db, worker_id)
        return PromotionResponse(worker_id=worker_id, eligible=workers.is_eligible_for_promotion(worker))

    @app.get("/workers/{worker_id}/revenue-history", response_model=List[WorkerRevenueEntry])
    async def worker_revenue_history(worker_id: int, db: AsyncSession = Depends(get_db)):
        return await revenue.worker_revenue_history(db, worker_id)

    @app.get("/stores", response_model=List[StoreResponse])
    async def list_stores(db: AsyncSession = Depends(get_db)):
        rows = await workers.list_stores(db)
        return [
            StoreResponse(
                store_id=store.store_id,
                name=store.name,
                category=store.category,
                airport_id=store.airport_id,
                employee_count=count,
            )
            for store, count in rows
        ]

    @app.post("/stores", response_model=StoreResponse, status_code=201)
    async def create_store(
        payload: StoreCreate,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN)),
    ):
        return await workers.create_store(db, payload)

    @app.post("/stores/{store_id}/daily-revenue", response_model=StoreDailyRevenueResponse)
    async def record_store_revenue(
        store_id: int,
        payload: StoreDailyRevenueRequest,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER, STORE_OWNER)),
    ):
        summary = await revenue.record_store_daily_revenue(db, store_id, payload)
        return StoreDailyRevenueResponse(store_id=store_id, revenue_date=payload.revenue_date, summary=summary)

    @app.get("/stores/{store_id}/daily-worker-revenue", response_model=StoreWorkerRevenueResponse)
    async def store_worker_revenue(
        store_id: int,
        revenue_date: Optional[date] = Query(default=None, alias="date"),
        db: AsyncSession = Depends(get_db),
    ):
        revenue_date = revenue_date or date.today()
        rows, total = await revenue.store_worker_revenue(db, store_id, revenue_date)
        return StoreWorkerRevenueResponse(data=rows, total_worker_revenue=total, revenue_date=revenue_date)

    @app.get("/stores/{store_id}/revenue", response_model=List[StoreRevenueEntry])
    async def store_revenue_history(store_id: int, db: AsyncSession = Depends(get_db)):
        return await revenue.store_revenue_history(db, store_id)

    # --- Reports ------------------------------------------------------------

    @app.get("/dashboard/stats", response_model=DashboardResponse)
    async def dashboard(db: AsyncSession = Depends(get_db)):
        return DashboardResponse(stats=await reports.dashboard_stats(db, date.today()))

    @app.post("/reports/flight-revenue", response_model=FlightRevenueResponse)
    async def flight_revenue(
        payload: FlightRevenueRequest,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER)),
    ):
        rows = await reports.flight_revenue_report(db, payload.start_date, payload.end_date)
        return FlightRevenueResponse(data=rows)

    @app.post("/reports/payroll", response_model=PayrollResponse)
    async def payroll(
        payload: PayrollRequest,
        db: AsyncSession = Depends(get_db),
        _: str = Depends(require_role(ADMIN, MANAGER)),
    ):
        return await reports.payroll_report(db, payload.airport_id)

    @app.get("/flight-companies/{company_id}/revenue", response_model=CompanyRevenueResponse)
    async def company_revenue(company_id: int, db: AsyncSession = Depends(get_db)):
        total = await reports.company_revenue(db, company_id)
        return CompanyRevenueResponse(flight_company_id=company_id, total_revenue=total)


app = create_app()
