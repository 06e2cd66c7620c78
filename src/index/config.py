"""Engine configuration.

Override the defaults by building an EngineConfig directly or through
INDEX_* environment variables (see load_config).
"""

import os
from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class RecomputePolicy(str, Enum):
    """What the recompute loop does when one row fails."""

    # Skip the row; the next row compounds from the last successful value
    CARRY_LAST_SUCCESS = "carry_last_success"
    # Stop at the first failure; later rows keep their stored values
    HALT = "halt"


class EngineConfig(BaseModel):
    """Parameters of the daily computation, calendar and overlay."""

    base_points: float = 100.0

    # Trading venue (B3 cash equities session by default)
    exchange_timezone: str = "America/Sao_Paulo"
    market_open_hour: int = 10
    market_close_hour: int = 17
    holidays: List[date] = Field(default_factory=list)
    session_reference_ticker: Optional[str] = Field(
        default=None,
        description="If set, a day only counts as a session when this ticker has a close",
    )

    # Per-asset lookups
    lookup_workers: int = Field(default=1, ge=1)
    lookup_timeout: float = Field(default=10.0, gt=0)

    # Data-quality guard for freshly added assets
    suspicious_return_threshold: float = 0.5
    suspicious_entry_window_days: int = 7
    suspicious_price_deviation: float = 0.3

    recompute_policy: RecomputePolicy = RecomputePolicy.CARRY_LAST_SUCCESS


def load_config() -> EngineConfig:
    """Build the config from INDEX_* environment variables."""
    kwargs = {}
    if os.getenv("INDEX_EXCHANGE_TIMEZONE"):
        kwargs["exchange_timezone"] = os.environ["INDEX_EXCHANGE_TIMEZONE"]
    if os.getenv("INDEX_MARKET_OPEN_HOUR"):
        kwargs["market_open_hour"] = int(os.environ["INDEX_MARKET_OPEN_HOUR"])
    if os.getenv("INDEX_MARKET_CLOSE_HOUR"):
        kwargs["market_close_hour"] = int(os.environ["INDEX_MARKET_CLOSE_HOUR"])
    if os.getenv("INDEX_HOLIDAYS"):
        # Comma separated ISO dates
        kwargs["holidays"] = [
            date.fromisoformat(d.strip())
            for d in os.environ["INDEX_HOLIDAYS"].split(",")
            if d.strip()
        ]
    if os.getenv("INDEX_SESSION_REFERENCE_TICKER"):
        kwargs["session_reference_ticker"] = os.environ["INDEX_SESSION_REFERENCE_TICKER"]
    if os.getenv("INDEX_LOOKUP_WORKERS"):
        kwargs["lookup_workers"] = int(os.environ["INDEX_LOOKUP_WORKERS"])
    if os.getenv("INDEX_LOOKUP_TIMEOUT"):
        kwargs["lookup_timeout"] = float(os.environ["INDEX_LOOKUP_TIMEOUT"])
    if os.getenv("INDEX_RECOMPUTE_POLICY"):
        kwargs["recompute_policy"] = RecomputePolicy(os.environ["INDEX_RECOMPUTE_POLICY"])
    return EngineConfig(**kwargs)


# Active configuration used by the scripts
ACTIVE_CONFIG = load_config()
