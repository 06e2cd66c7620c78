"""RealTimeOverlay - read-only projection of today's index level."""

import logging
from datetime import datetime
from typing import Dict, Optional, Tuple
from sqlalchemy.orm import Session

from src.db.models.index import IndexHistoryPoint
from src.db.repositories.index_repo import IndexHistoryRepository
from src.providers.base import MarketDataGateway
from .calculator import DailyReturnCalculator
from .calendar import exchange_today, had_session, is_market_open
from .config import EngineConfig, ACTIVE_CONFIG
from .models import RealTimeResult
from .returns import ReturnAccumulator

logger = logging.getLogger(__name__)


class RealTimeOverlay:
    """
    Project the index for the current exchange day without writing anything.

    Returns None whenever the projection cannot be built.
    """

    def __init__(
        self,
        session: Session,
        market_data: MarketDataGateway,
        calculator: DailyReturnCalculator,
        config: EngineConfig = ACTIVE_CONFIG,
    ):
        self.market_data = market_data
        self.calculator = calculator
        self.config = config
        self.history_repo = IndexHistoryRepository(session)

    def get(self, index_id: str, now: Optional[datetime] = None) -> Optional[RealTimeResult]:
        try:
            return self._project(index_id, now)
        except Exception as e:
            logger.error(f"Real-time projection failed for {index_id}: {e}")
            return None

    def _project(self, index_id: str, now: Optional[datetime]) -> Optional[RealTimeResult]:
        latest = self.history_repo.get_latest_point(index_id)
        if latest is None:
            return None

        base = self.calculator.base_points(index_id)
        today = exchange_today(self.config, now)
        open_now = is_market_open(self.config, now)

        if not had_session(self.config, today, self.market_data, today=today):
            return self._result(
                index_id,
                base,
                points=float(latest.points),
                daily_change=0.0,
                official=latest,
                open_now=False,
                last_session_daily_change=float(latest.daily_change),
            )

        today_point = self.history_repo.get_point(index_id, today)
        if today_point is not None and not open_now:
            return self._result(
                index_id,
                base,
                points=float(today_point.points),
                daily_change=float(today_point.daily_change),
                official=today_point,
                open_now=False,
            )

        official = self.history_repo.get_latest_point_before(index_id, today)
        if official is None:
            return None

        weights, base_prices = self._baseline(index_id, official)
        if not weights:
            return None

        tickers = sorted(weights)
        live = self.market_data.get_latest_prices(tickers)
        acc = ReturnAccumulator(float(official.points))
        for ticker in tickers:
            quote = live.get(ticker)
            reference = base_prices.get(ticker)
            if quote is None or quote.price <= 0 or not reference or reference <= 0:
                continue
            acc.add(ticker, weights[ticker], quote.price, reference)

        if acc.total_weight == 0:
            logger.warning(f"No live prices for {index_id}")
            return None

        return self._result(
            index_id,
            base,
            points=acc.points,
            daily_change=acc.daily_change,
            official=official,
            open_now=open_now,
        )

    def _baseline(
        self, index_id: str, official: IndexHistoryPoint
    ) -> Tuple[Dict[str, float], Dict[str, float]]:
        """Weights and reference prices, from the snapshot when there is one."""
        snapshot = official.composition_snapshot or {}
        if snapshot:
            weights = {t: float(e["weight"]) for t, e in snapshot.items()}
            prices = {t: float(e["price"]) for t, e in snapshot.items()}
            return weights, prices

        weights, prices = {}, {}
        for member in self.calculator.load_composition(index_id):
            price = self.market_data.get_price_as_of(member.ticker, official.date)
            weights[member.ticker] = member.target_weight
            prices[member.ticker] = price if price is not None else member.entry_price
        return weights, prices

    def _result(
        self,
        index_id: str,
        base: float,
        points: float,
        daily_change: float,
        official: IndexHistoryPoint,
        open_now: bool,
        last_session_daily_change: Optional[float] = None,
    ) -> RealTimeResult:
        return RealTimeResult(
            index_id=index_id,
            real_time_points=points,
            real_time_return=(points / base - 1) * 100,
            daily_change=daily_change,
            last_official_points=float(official.points),
            last_official_date=official.date,
            is_market_open=open_now,
            last_session_daily_change=last_session_daily_change,
        )
