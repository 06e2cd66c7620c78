"""DividendRecomputeEngine - re-derive the series when dividend data arrives late."""

import logging
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from src.db.models.index import IndexHistoryPoint
from src.db.repositories.index_repo import (
    IndexCompositionRepository,
    IndexHistoryRepository,
)
from src.providers.base import DividendSource
from .calculator import DailyReturnCalculator
from .config import EngineConfig, RecomputePolicy, ACTIVE_CONFIG
from .errors import DuplicateRecompute, IndexEngineError, NoPriceableAssets
from .models import (
    CompositionMember,
    PendingDividend,
    RecomputeChange,
    RecomputeReport,
)
from .returns import ReturnAccumulator
from .writer import PointSeriesWriter

logger = logging.getLogger(__name__)


def snapshot_members(snapshot: Dict[str, dict]) -> List[CompositionMember]:
    """Rebuild members from a stored composition snapshot, ordered by ticker."""
    return [
        CompositionMember(
            ticker=ticker,
            target_weight=float(snapshot[ticker]["weight"]),
            entry_price=float(snapshot[ticker]["entry_price"]),
            entry_date=date.fromisoformat(snapshot[ticker]["entry_date"]),
        )
        for ticker in sorted(snapshot)
    ]


class DividendRecomputeEngine:
    """
    Recompute stored points from the current dividend data.

    Uses each day's stored snapshot weights and prices, so a rebalance
    after the day does not leak into it. The running base is carried
    explicitly through the loop.
    """

    def __init__(
        self,
        session: Session,
        calculator: DailyReturnCalculator,
        dividend_source: DividendSource,
        config: EngineConfig = ACTIVE_CONFIG,
    ):
        self.session = session
        self.calculator = calculator
        self.dividend_source = dividend_source
        self.config = config
        self.history_repo = IndexHistoryRepository(session)
        self.composition_repo = IndexCompositionRepository(session)
        self.writer = PointSeriesWriter(session)

    def recompute(
        self, index_id: str, start_date: Optional[date] = None
    ) -> RecomputeReport:
        """
        Recompute points on or after `start_date` (all points when omitted).

        Args:
            index_id: Index to recompute
            start_date: First date to recompute

        Returns:
            RecomputeReport with counts, ordered changes and per-date errors
        """
        report = RecomputeReport(index_id=index_id)

        if self.history_repo.get_latest_point(index_id) is None:
            report.errors.append("No historical points found for index")
            return report

        points = self.history_repo.list_points(index_id, start=start_date)
        if not points:
            return report

        previous = self.history_repo.get_latest_point_before(index_id, points[0].date)
        running = (
            float(previous.points)
            if previous is not None
            else self.calculator.base_points(index_id)
        )
        from_genesis = previous is None

        logger.info(
            f"Recomputing {len(points)} points of {index_id} from {points[0].date} "
            f"(base {running:.4f})"
        )

        for i, point in enumerate(points):
            old_points = float(point.points)
            try:
                if from_genesis and i == 0:
                    values = self._genesis_values(point, running)
                else:
                    values, found = self._recompute_values(index_id, point, running)
                    report.dividends_found += found
                self._write(index_id, point.date, values)
            except IndexEngineError as e:
                logger.error(self._record_failure(report, point.date, e))
                if report.halted_at is not None:
                    break
                continue
            except Exception as e:
                logger.exception(self._record_failure(report, point.date, e))
                self.session.rollback()
                if report.halted_at is not None:
                    break
                continue

            running = values["points"]
            report.recalculated += 1
            report.changes.append(
                RecomputeChange(date=point.date, old_points=old_points, new_points=running)
            )

        logger.info(
            f"Recomputed {report.recalculated}/{len(points)} points of {index_id}, "
            f"{report.dividends_found} new dividend events, {len(report.errors)} errors"
        )
        return report

    def _record_failure(self, report: RecomputeReport, day: date, error: Exception) -> str:
        """Add the error to the report and apply the failure policy."""
        msg = f"Error recalculating point {day}: {error}"
        report.errors.append(msg)
        if self.config.recompute_policy == RecomputePolicy.HALT:
            report.halted_at = day
        return msg

    def _genesis_values(self, point: IndexHistoryPoint, base: float) -> dict:
        return {
            "points": base,
            "daily_change": 0.0,
            "current_yield": point.current_yield,
            "dividends_received": 0.0,
            "dividends_by_ticker": {},
            "composition_snapshot": point.composition_snapshot or {},
        }

    def _recompute_values(
        self, index_id: str, point: IndexHistoryPoint, running: float
    ) -> tuple:
        snapshot = point.composition_snapshot or {}
        members = snapshot_members(snapshot)
        dividends = self.calculator.fetch_dividends(
            [m.ticker for m in members], point.date
        )

        acc = ReturnAccumulator(running)
        for member in members:
            price_today = float(snapshot[member.ticker]["price"])
            price_yesterday = self.calculator.resolve_yesterday_price(
                member, point.date, price_today
            )
            if price_today <= 0 or price_yesterday is None or price_yesterday <= 0:
                continue
            acc.add(
                member.ticker,
                member.target_weight,
                price_today,
                price_yesterday,
                dividends.get(member.ticker, 0.0),
            )

        if acc.total_weight == 0:
            raise NoPriceableAssets(
                f"No priceable assets in snapshot of {index_id} {point.date}"
            )

        stored = point.dividends_by_ticker or {}
        found = sum(1 for t in acc.dividends_by_ticker if t not in stored)

        values = {
            "points": acc.points,
            "daily_change": acc.daily_change,
            "current_yield": point.current_yield,
            "dividends_received": acc.dividend_points,
            "dividends_by_ticker": {
                t: acc.dividends_by_ticker[t] for t in sorted(acc.dividends_by_ticker)
            },
            "composition_snapshot": snapshot,
        }
        return values, found

    def _write(self, index_id: str, day: date, values: dict) -> None:
        try:
            self.writer.write_values(index_id, day, values)
        except DuplicateRecompute:
            logger.debug(f"{index_id} {day} unchanged")

    def check_pending_dividends(self, index_id: str, today: date) -> List[PendingDividend]:
        """
        Dividend events between the latest point and today on dates whose
        stored points carry no dividends.
        """
        last = self.history_repo.get_latest_point(index_id)
        if last is None:
            return []

        tickers = self.composition_repo.get_tickers(index_id)
        if not tickers:
            return []

        processed = {
            p.date
            for p in self.history_repo.list_points(index_id, start=last.date)
            if p.dividends_by_ticker
        }
        pending = [
            PendingDividend(ticker=e.ticker, ex_date=e.ex_date, amount=e.amount)
            for e in self.dividend_source.list_dividends(tickers, last.date, today)
            if e.ex_date not in processed
        ]
        if pending:
            logger.info(f"{len(pending)} pending dividend events for {index_id}")
        return pending
