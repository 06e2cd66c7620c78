"""PointSeriesWriter - idempotent persistence of one day of the point series."""

import logging
import math
import threading
from datetime import date
from typing import Any, Dict
from sqlalchemy.orm import Session

from src.db.models.index import IndexHistoryPoint
from src.db.repositories.index_repo import IndexHistoryRepository
from .errors import DuplicateRecompute
from .models import DayResult

logger = logging.getLogger(__name__)

# Fixed pool of locks; keys that share a stripe just serialize with each other
_LOCK_STRIPES = [threading.Lock() for _ in range(64)]


def _lock_for(index_id: str, day: date) -> threading.Lock:
    return _LOCK_STRIPES[hash((index_id, day)) % len(_LOCK_STRIPES)]


def _same_number(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return math.isclose(float(a), float(b), rel_tol=0.0, abs_tol=1e-12)


def _same_mapping(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    if set(a or {}) != set(b or {}):
        return False
    for key, left in (a or {}).items():
        right = b[key]
        if isinstance(left, dict) and isinstance(right, dict):
            if not _same_mapping(left, right):
                return False
        elif isinstance(left, (int, float)) and isinstance(right, (int, float)):
            if not _same_number(left, right):
                return False
        elif left != right:
            return False
    return True


def row_matches(stored: IndexHistoryPoint, values: Dict[str, Any]) -> bool:
    """True when the stored row already holds exactly these values."""
    return (
        _same_number(stored.points, values["points"])
        and _same_number(stored.daily_change, values["daily_change"])
        and _same_number(stored.current_yield, values["current_yield"])
        and _same_number(stored.dividends_received, values["dividends_received"])
        and _same_mapping(stored.dividends_by_ticker, values["dividends_by_ticker"])
        and _same_mapping(stored.composition_snapshot, values["composition_snapshot"])
    )


class PointSeriesWriter:
    """
    Upsert history points keyed by (index_id, date).

    Every field is replaced in one statement. Writes for the same key are
    serialized within the process; concurrent processes are last-write-wins.
    """

    def __init__(self, session: Session):
        self.session = session
        self.history_repo = IndexHistoryRepository(session)

    def write(self, result: DayResult, commit: bool = True) -> IndexHistoryPoint:
        """
        Persist a computed day.

        Raises:
            DuplicateRecompute: the stored row already holds identical values
        """
        return self.write_values(result.index_id, result.date, result.to_row(), commit)

    def write_values(
        self, index_id: str, day: date, values: Dict[str, Any], commit: bool = True
    ) -> IndexHistoryPoint:
        with _lock_for(index_id, day):
            stored = self.history_repo.get_point(index_id, day)
            if stored is not None and row_matches(stored, values):
                raise DuplicateRecompute(
                    f"Point {index_id} {day} unchanged at {values['points']:.4f}"
                )
            point = self.history_repo.upsert_point(index_id, day, values, commit=commit)
        logger.info(f"Saved {index_id} {day}: {values['points']:.4f} pts")
        return point
