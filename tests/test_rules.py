import unittest
from datetime import date
from decimal import Decimal

from airport_booking.booking import generate_order_number
from airport_booking.catalog import ALLOWED_TRANSITIONS
from airport_booking.errors import InvalidSeatClass, ValidationError
from airport_booking.fares import FarePolicy, compute_fare, parse_seat_class
from airport_booking.loyalty import tier_for
from airport_booking.models import FlightStatus, SeatClass, Worker, WorkerRole, WorkerStatus
from airport_booking.workers import calculate_earnings, infer_role_from_job, is_eligible_for_promotion, resolve_role


class AllowedTransitionsTests(unittest.TestCase):
    """Validate the flight state machine."""

    def test_cancelled_reachable_from_every_open_state(self) -> None:
        for status in (FlightStatus.SCHEDULED, FlightStatus.BOARDING, FlightStatus.DEPARTED):
            self.assertIn(FlightStatus.CANCELLED, ALLOWED_TRANSITIONS[status])

    def test_terminal_states(self) -> None:
        self.assertEqual(set(), ALLOWED_TRANSITIONS[FlightStatus.ARRIVED])
        self.assertEqual(set(), ALLOWED_TRANSITIONS[FlightStatus.CANCELLED])

    def test_no_backwards_moves(self) -> None:
        self.assertNotIn(FlightStatus.SCHEDULED, ALLOWED_TRANSITIONS[FlightStatus.BOARDING])
        self.assertNotIn(FlightStatus.BOARDING, ALLOWED_TRANSITIONS[FlightStatus.DEPARTED])


class RoleResolutionTests(unittest.TestCase):
    def test_explicit_role_wins_over_title(self) -> None:
        self.assertIs(resolve_role("Store Manager", WorkerRole.STORE_OWNER), WorkerRole.STORE_OWNER)

    def test_title_keywords(self) -> None:
        self.assertIs(infer_role_from_job("System Administrator"), WorkerRole.ADMIN)
        self.assertIs(infer_role_from_job("Shift Supervisor"), WorkerRole.MANAGER)
        self.assertIs(infer_role_from_job("Cafe Owner"), WorkerRole.STORE_OWNER)
        self.assertIs(infer_role_from_job("Security Officer"), WorkerRole.AIRPORT_STAFF)
        self.assertIs(infer_role_from_job("Head Barista"), WorkerRole.STORE_WORKER)
        self.assertIsNone(infer_role_from_job("Pilot"))

    def test_unknown_title_without_role_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            resolve_role("Pilot", None)


class WorkerRulesTests(unittest.TestCase):
    def test_earnings_include_bonus(self) -> None:
        self.assertEqual(calculate_earnings(Decimal("3000"), 12, Decimal(10)), Decimal("39600.00"))
        self.assertEqual(calculate_earnings(Decimal("2500.50"), 1, Decimal(0)), Decimal("2500.50"))

    def test_promotion_needs_two_years_and_active_status(self) -> None:
        worker = Worker(hire_date=date(2020, 1, 1), status=WorkerStatus.ACTIVE)
        self.assertTrue(is_eligible_for_promotion(worker, today=date(2022, 1, 1)))
        self.assertFalse(is_eligible_for_promotion(worker, today=date(2021, 6, 1)))
        worker.status = WorkerStatus.INACTIVE
        self.assertFalse(is_eligible_for_promotion(worker, today=date(2025, 1, 1)))


class LoyaltyTierTests(unittest.TestCase):
    def test_thresholds(self) -> None:
        self.assertEqual(tier_for(Decimal(0), 0), "BRONZE")
        self.assertEqual(tier_for(Decimal("499.99"), 2), "BRONZE")
        self.assertEqual(tier_for(Decimal("100"), 3), "SILVER")
        self.assertEqual(tier_for(Decimal("2000"), 1), "GOLD")
        self.assertEqual(tier_for(Decimal("10"), 20), "PLATINUM")


class OrderNumberTests(unittest.TestCase):
    def test_order_numbers_do_not_repeat(self) -> None:
        numbers = {generate_order_number() for _ in range(2000)}
        self.assertEqual(len(numbers), 2000)
        self.assertTrue(all(number.startswith("TKT") and len(number) == 19 for number in numbers))


class FareRulesTests(unittest.TestCase):
    policy = FarePolicy()

    def test_fare_rises_with_occupancy(self) -> None:
        empty = compute_fare(self.policy, SeatClass.ECONOMY, Decimal(0), distance_km=1150)
        half = compute_fare(self.policy, SeatClass.ECONOMY, Decimal("0.5"), distance_km=1150)
        full = compute_fare(self.policy, SeatClass.ECONOMY, Decimal(1), distance_km=1150)

        self.assertLess(empty, half)
        self.assertLess(half, full)
        self.assertEqual(empty, Decimal("165.00"))
        self.assertEqual(full, Decimal("247.50"))

    def test_class_multipliers_order_fares(self) -> None:
        economy = compute_fare(self.policy, SeatClass.ECONOMY, Decimal("0.2"), distance_km=800)
        business = compute_fare(self.policy, SeatClass.BUSINESS, Decimal("0.2"), distance_km=800)
        first = compute_fare(self.policy, SeatClass.FIRST, Decimal("0.2"), distance_km=800)

        self.assertLess(economy, business)
        self.assertLess(business, first)

    def test_duration_is_used_without_coordinates(self) -> None:
        self.assertEqual(
            compute_fare(self.policy, SeatClass.ECONOMY, Decimal(0), duration_minutes=100), Decimal("200.00")
        )
        self.assertEqual(compute_fare(self.policy, SeatClass.ECONOMY, Decimal(0)), Decimal("50.00"))

    def test_occupancy_outside_unit_range_is_clamped(self) -> None:
        self.assertEqual(
            compute_fare(self.policy, SeatClass.FIRST, Decimal("1.7"), distance_km=300),
            compute_fare(self.policy, SeatClass.FIRST, Decimal(1), distance_km=300),
        )

    def test_parse_seat_class(self) -> None:
        self.assertIs(parse_seat_class("Economy"), SeatClass.ECONOMY)
        self.assertIs(parse_seat_class(" first "), SeatClass.FIRST)
        self.assertIs(parse_seat_class(SeatClass.BUSINESS), SeatClass.BUSINESS)
        with self.assertRaises(InvalidSeatClass):
            parse_seat_class("Premium Economy")
