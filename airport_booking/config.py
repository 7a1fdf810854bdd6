"""Environment-driven settings for the booking service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal

from .fares import FarePolicy


DEFAULT_DB_USER = "airport"
DEFAULT_DB_PASSWORD = "airport"
DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = "5432"
DEFAULT_DB_NAME = "airport"

DEFAULT_REFUND_RATE = "0.8"


def _build_default_dsn() -> str:
    user = os.getenv("DB_USER", DEFAULT_DB_USER)
    password = os.getenv("DB_PASSWORD", DEFAULT_DB_PASSWORD)
    host = os.getenv("DB_HOST", DEFAULT_DB_HOST)
    port = os.getenv("DB_PORT", DEFAULT_DB_PORT)
    name = os.getenv("DB_NAME", DEFAULT_DB_NAME)
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


def get_database_dsn() -> str:
    """Return the database DSN configured via environment or defaults."""

    return os.getenv("DB_DSN", _build_default_dsn())


@dataclass(frozen=True)
class Settings:
    database_dsn: str
    refund_rate: Decimal = Decimal(DEFAULT_REFUND_RATE)
    fare_policy: FarePolicy = FarePolicy()
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read settings from the process environment."""

    defaults = FarePolicy()
    policy = FarePolicy(
        base_fare=Decimal(os.getenv("FARE_BASE", str(defaults.base_fare))),
        per_km_rate=Decimal(os.getenv("FARE_PER_KM", str(defaults.per_km_rate))),
        per_minute_rate=Decimal(os.getenv("FARE_PER_MINUTE", str(defaults.per_minute_rate))),
        surge_factor=Decimal(os.getenv("FARE_SURGE_FACTOR", str(defaults.surge_factor))),
    )
    return Settings(
        database_dsn=get_database_dsn(),
        refund_rate=Decimal(os.getenv("REFUND_RATE", DEFAULT_REFUND_RATE)),
        fare_policy=policy,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
