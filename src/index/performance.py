"""AssetPerformanceReporter - per-asset tenure and contribution from the snapshot trail."""

import logging
from datetime import date
from typing import List, Optional
import pandas as pd
from sqlalchemy.orm import Session

from src.db.repositories.index_repo import (
    IndexCompositionRepository,
    IndexHistoryRepository,
)
from .models import AssetPerformance, AssetStatus

logger = logging.getLogger(__name__)

APPEARANCE_COLUMNS = [
    "date",
    "ticker",
    "weight",
    "price",
    "entry_price",
    "entry_date",
    "daily_change",
]


class AssetPerformanceReporter:
    """
    Read-only reporting over persisted composition snapshots.

    Contribution is the linear sum of weight * daily_change over the days an
    asset appears; it ignores compounding and does not add up exactly to
    the index's total return over long windows.
    """

    def __init__(self, session: Session):
        self.history_repo = IndexHistoryRepository(session)
        self.composition_repo = IndexCompositionRepository(session)

    def appearances(self, index_id: str) -> pd.DataFrame:
        """One row per (date, ticker) found in a non-empty snapshot."""
        rows = []
        for point in self.history_repo.list_points(index_id):
            snapshot = point.composition_snapshot or {}
            for ticker, entry in snapshot.items():
                rows.append(
                    {
                        "date": point.date,
                        "ticker": ticker,
                        "weight": float(entry["weight"]),
                        "price": float(entry["price"]),
                        "entry_price": float(entry["entry_price"]),
                        "entry_date": date.fromisoformat(entry["entry_date"]),
                        "daily_change": float(point.daily_change),
                    }
                )
        df = pd.DataFrame(rows, columns=APPEARANCE_COLUMNS)
        return df.sort_values(["date", "ticker"]).reset_index(drop=True)

    def _summarize(
        self, ticker: str, rows: pd.DataFrame, active: bool
    ) -> AssetPerformance:
        first = rows.iloc[0]
        last = rows.iloc[-1]

        entry_price = float(first["entry_price"])
        exit_date = None if active else last["date"]
        exit_price = None if active else float(last["price"])
        total_return = None
        if exit_price is not None and entry_price > 0:
            total_return = (exit_price / entry_price - 1) * 100

        return AssetPerformance(
            ticker=ticker,
            entry_date=first["entry_date"],
            entry_price=entry_price,
            exit_date=exit_date,
            exit_price=exit_price,
            total_return=total_return,
            contribution_to_index=float((rows["weight"] * rows["daily_change"]).sum()),
            average_weight=float(rows["weight"].mean()),
            days_in_index=(last["date"] - first["date"]).days + 1,
            status=AssetStatus.ACTIVE if active else AssetStatus.EXITED,
            first_snapshot_date=first["date"],
            last_snapshot_date=last["date"],
        )

    def get(self, index_id: str, ticker: str) -> Optional[AssetPerformance]:
        """Performance of one asset, or None if it never appeared in a snapshot."""
        df = self.appearances(index_id)
        rows = df[df["ticker"] == ticker]
        if rows.empty:
            return None
        return self._summarize(
            ticker, rows, self.composition_repo.is_member(index_id, ticker)
        )

    def list_all(self, index_id: str) -> List[AssetPerformance]:
        """Every asset ever seen in the index, newest entry first."""
        df = self.appearances(index_id)
        if df.empty:
            return []
        current = set(self.composition_repo.get_tickers(index_id))
        results = [
            self._summarize(ticker, rows, ticker in current)
            for ticker, rows in df.groupby("ticker", sort=True)
        ]
        results.sort(key=lambda p: p.entry_date, reverse=True)
        logger.info(f"Computed performance for {len(results)} assets of {index_id}")
        return results
