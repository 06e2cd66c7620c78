"""Pydantic models for the Index module."""

from enum import Enum
from typing import Dict, List, Optional
from datetime import date
from pydantic import BaseModel, Field


class CompositionMember(BaseModel):
    """Current member of an index as seen by the engine."""

    ticker: str
    target_weight: float = Field(description="Weight in [0, 1]")
    entry_price: float
    entry_date: date
    dividend_yield: Optional[float] = Field(
        default=None, description="Trailing dividend yield as a fraction"
    )


class SnapshotEntry(BaseModel):
    """Per-asset record of what was used for one day's arithmetic."""

    weight: float
    price: float
    entry_price: float
    entry_date: date

    def to_json(self) -> Dict[str, object]:
        return {
            "weight": self.weight,
            "price": self.price,
            "entry_price": self.entry_price,
            "entry_date": self.entry_date.isoformat(),
        }


class DayResult(BaseModel):
    """Complete result of one index day, ready to be persisted."""

    index_id: str
    date: date
    points: float
    daily_change: float = Field(description="Weighted daily return in percent")
    current_yield: Optional[float] = Field(
        default=None, description="Weight-average trailing yield in percent"
    )
    dividends_received: float = Field(
        default=0.0, description="Dividend contribution in index points"
    )
    dividends_by_ticker: Dict[str, float] = Field(default_factory=dict)
    composition_snapshot: Dict[str, SnapshotEntry] = Field(default_factory=dict)
    is_genesis: bool = False

    def to_row(self) -> Dict[str, object]:
        """Values for IndexHistoryPoint, with the snapshot in a stable key order."""
        return {
            "points": self.points,
            "daily_change": self.daily_change,
            "current_yield": self.current_yield,
            "dividends_received": self.dividends_received,
            "dividends_by_ticker": {
                t: self.dividends_by_ticker[t] for t in sorted(self.dividends_by_ticker)
            },
            "composition_snapshot": {
                t: self.composition_snapshot[t].to_json()
                for t in sorted(self.composition_snapshot)
            },
        }


class GapFillReport(BaseModel):
    """Outcome of a backfill run."""

    index_id: str
    attempted: List[date] = Field(default_factory=list)
    filled: List[date] = Field(default_factory=list)
    errors: Dict[date, str] = Field(default_factory=dict)

    @property
    def filled_count(self) -> int:
        return len(self.filled)

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    def add_failure(self, day: date, error: str) -> None:
        self.errors[day] = error


class RecomputeChange(BaseModel):
    date: date
    old_points: float
    new_points: float


class RecomputeReport(BaseModel):
    """Outcome of a dividend recompute run."""

    index_id: str
    recalculated: int = 0
    dividends_found: int = 0
    changes: List[RecomputeChange] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    halted_at: Optional[date] = None

    @property
    def success(self) -> bool:
        return not self.errors


class RealTimeResult(BaseModel):
    """Read-only projection of today's index level."""

    index_id: str
    real_time_points: float
    real_time_return: float = Field(description="Cumulative return since base, percent")
    daily_change: float = Field(description="Today's change in percent")
    last_official_points: float
    last_official_date: date
    is_market_open: bool
    last_session_daily_change: Optional[float] = Field(
        default=None, description="Change of the last actual session, for closed days"
    )


class AssetStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXITED = "EXITED"


class AssetPerformance(BaseModel):
    """Per-asset tenure and performance derived from the snapshot trail."""

    ticker: str
    entry_date: date
    entry_price: float
    exit_date: Optional[date] = None
    exit_price: Optional[float] = None
    total_return: Optional[float] = Field(
        default=None, description="(exit / entry - 1) * 100, only once exited"
    )
    contribution_to_index: float = Field(
        description="Sum of weight * daily_change, a linear approximation"
    )
    average_weight: float
    days_in_index: int
    status: AssetStatus
    first_snapshot_date: date
    last_snapshot_date: date

    class Config:
        """Pydantic config."""

        use_enum_values = True


class PendingDividend(BaseModel):
    """Dividend event not yet reflected in the persisted series."""

    ticker: str
    ex_date: date
    amount: float
