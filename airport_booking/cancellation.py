"""Cancellation engine: the inverse of a booking, in one transaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog
from .db import atomic
from .errors import AlreadyCancelled, CapacityExceeded, InvariantViolation, TicketNotFound
from .models import BookingStatus, Ticket, TicketCancellationLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationResult:
    order_number: str
    flight_number: str
    refund_amount: Decimal
    available_seats: int


def compute_refund(price: Decimal, refund_rate: Decimal) -> Decimal:
    return (Decimal(price) * Decimal(refund_rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def cancel(
    db: AsyncSession,
    order_number: str,
    reason: Optional[str],
    refund_rate: Decimal,
) -> CancellationResult:
    async with atomic(db):
        result = await db.execute(
            select(Ticket.flight_number, Ticket.price, Ticket.booking_status).where(
                Ticket.order_number == order_number
            )
        )
        row = result.one_or_none()
        if row is None:
            raise TicketNotFound(order_number)
        flight_number, price, status = row
        if status is BookingStatus.CANCELLED:
            raise AlreadyCancelled(order_number)

        refund = compute_refund(price, refund_rate)
        now = datetime.now(timezone.utc)

        # Conditional on the status, so a concurrent cancel matches no row.
        flipped = await db.execute(
            update(Ticket)
            .where(
                Ticket.order_number == order_number,
                Ticket.booking_status == BookingStatus.CONFIRMED,
            )
            .values(
                booking_status=BookingStatus.CANCELLED,
                cancellation_reason=reason,
                cancelled_at=now,
                refund_amount=refund,
            )
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            raise AlreadyCancelled(order_number)

        try:
            available = await catalog.adjust_available_seats(db, flight_number, +1)
        except CapacityExceeded as exc:
            logger.critical(
                "Releasing seat of %s would exceed capacity of flight %s", order_number, flight_number
            )
            raise InvariantViolation(
                f"Seat counter of flight {flight_number} is inconsistent with its tickets"
            ) from exc

        db.add(
            TicketCancellationLog(
                order_number=order_number,
                flight_number=flight_number,
                reason=reason,
                refund_amount=refund,
                cancelled_at=now,
            )
        )

    logger.info(
        "Cancelled %s on %s, refund %s, %d seats available", order_number, flight_number, refund, available
    )
    return CancellationResult(
        order_number=order_number,
        flight_number=flight_number,
        refund_amount=refund,
        available_seats=available,
    )
