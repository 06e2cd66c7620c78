"""IndexService - daily computation, backfill, recompute and read paths of an index."""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional
from sqlalchemy.orm import Session

from src.db.repositories.index_repo import (
    IndexRepository,
    IndexCompositionRepository,
    IndexHistoryRepository,
)
from src.providers.base import MarketDataGateway, DividendSource
from .calculator import DailyReturnCalculator
from .calendar import exchange_now, had_session
from .config import EngineConfig, ACTIVE_CONFIG
from .errors import DuplicateRecompute, IndexEngineError
from .gap_filler import GapFiller
from .models import (
    AssetPerformance,
    DayResult,
    GapFillReport,
    PendingDividend,
    RealTimeResult,
    RecomputeReport,
)
from .performance import AssetPerformanceReporter
from .realtime import RealTimeOverlay
from .recompute import DividendRecomputeEngine
from .returns import weighted_yield
from .writer import PointSeriesWriter

logger = logging.getLogger(__name__)


class IndexService:
    """
    Entry point of the index computation engine.

    This service:
    1. Computes one day of an index and persists it (update_points)
    2. Backfills business days missed since the last persisted point
    3. Recomputes the series when dividends arrive after the fact
    4. Serves the real-time overlay and per-asset performance reads
    """

    def __init__(
        self,
        session: Session,
        market_data: MarketDataGateway,
        dividend_source: DividendSource,
        config: EngineConfig = ACTIVE_CONFIG,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize IndexService.

        Args:
            session: SQLAlchemy session for database access
            market_data: Source of latest and historical prices
            dividend_source: Source of dividend events
            config: Engine configuration
            clock: Returns the current time; defaults to the system clock
        """
        self.session = session
        self.market_data = market_data
        self.dividend_source = dividend_source
        self.config = config
        self.clock = clock

        self.index_repo = IndexRepository(session)
        self.composition_repo = IndexCompositionRepository(session)
        self.history_repo = IndexHistoryRepository(session)

        self.calculator = DailyReturnCalculator(
            session, market_data, dividend_source, config
        )
        self.writer = PointSeriesWriter(session)
        self.gap_filler = GapFiller(
            session, lambda index_id, day: self.update_points(index_id, day, raise_errors=True)
        )
        self.recompute_engine = DividendRecomputeEngine(
            session, self.calculator, dividend_source, config
        )
        self.overlay = RealTimeOverlay(session, market_data, self.calculator, config)
        self.reporter = AssetPerformanceReporter(session)

    def now(self) -> datetime:
        return exchange_now(self.config, self.clock() if self.clock else None)

    def today(self) -> date:
        return self.now().date()

    def compute_daily_return(self, index_id: str, target_date: date) -> DayResult:
        """
        Compute one day without persisting it.

        Raises:
            IndexEngineError: NoComposition, NoPriceableAssets or MissingHistoryBase
        """
        return self.calculator.compute(index_id, target_date, today=self.today())

    def update_points(
        self, index_id: str, target_date: date, raise_errors: bool = False
    ) -> bool:
        """
        Compute and persist one day.

        Returns:
            True when the day is stored (or already stored unchanged),
            False for days without a session or, unless raise_errors is
            set, when the computation failed
        """
        if not had_session(self.config, target_date, self.market_data, today=self.today()):
            logger.info(f"No trading session on {target_date}, skipping {index_id}")
            return False

        try:
            result = self.compute_daily_return(index_id, target_date)
            self.writer.write(result)
        except DuplicateRecompute as e:
            logger.info(str(e))
            return True
        except IndexEngineError as e:
            logger.error(f"Failed to update {index_id} for {target_date}: {e}")
            if raise_errors:
                raise
            return False
        except Exception:
            self.session.rollback()
            if raise_errors:
                raise
            logger.exception(f"Unexpected failure updating {index_id} for {target_date}")
            return False
        return True

    def backfill(self, index_id: str) -> GapFillReport:
        return self.gap_filler.backfill(index_id, self.today())

    def fill_missing_history(self, index_id: str) -> int:
        """Fill business days missing since the last point; returns the count filled."""
        return self.backfill(index_id).filled_count

    def recalculate_with_dividends(
        self, index_id: str, start_date: Optional[date] = None
    ) -> RecomputeReport:
        return self.recompute_engine.recompute(index_id, start_date)

    def check_pending_dividends(self, index_id: str) -> List[PendingDividend]:
        return self.recompute_engine.check_pending_dividends(index_id, self.today())

    def get_real_time_return(self, index_id: str) -> Optional[RealTimeResult]:
        return self.overlay.get(index_id, self.now())

    def get_asset_performance(
        self, index_id: str, ticker: str
    ) -> Optional[AssetPerformance]:
        return self.reporter.get(index_id, ticker)

    def list_all_assets_performance(self, index_id: str) -> List[AssetPerformance]:
        return self.reporter.list_all(index_id)

    def calculate_current_yield(self, index_id: str) -> Optional[float]:
        """Weight-average trailing yield of the current composition, in percent."""
        members = self.calculator.load_composition(index_id)
        return weighted_yield((m.target_weight, m.dividend_yield) for m in members)

    def get_last_snapshot(self, index_id: str) -> Optional[Dict[str, dict]]:
        """Composition snapshot of the latest point that has one."""
        for point in reversed(self.history_repo.list_points(index_id)):
            if point.composition_snapshot:
                return point.composition_snapshot
        return None

    def after_market_ran_today(self, index_id: str) -> bool:
        """Whether today's closing point with a snapshot is already stored."""
        point = self.history_repo.get_point(index_id, self.today())
        return point is not None and bool(point.composition_snapshot)

    def fix_starting_point(self, index_id: str) -> bool:
        """
        Anchor a series whose first point is not the base value.

        Inserts a base-value point on the calendar day before the first
        point, so the first real day keeps its computed return.

        Returns:
            True if a point was inserted
        """
        first = self.history_repo.get_first_point(index_id)
        if first is None:
            logger.warning(f"No points found for index {index_id}")
            return False

        base = self.calculator.base_points(index_id)
        if abs(float(first.points) - base) <= 0.01:
            return False

        anchor_date = first.date - timedelta(days=1)
        self.history_repo.upsert_point(
            index_id,
            anchor_date,
            {
                "points": base,
                "daily_change": 0.0,
                "current_yield": first.current_yield,
                "dividends_received": 0.0,
                "dividends_by_ticker": {},
                "composition_snapshot": {},
            },
        )
        logger.info(f"Anchored {index_id} at {base} on {anchor_date}")
        return True
