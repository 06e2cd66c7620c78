"""DailyReturnCalculator - one index, one date -> weighted total return and points."""

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import date, timedelta
from typing import Dict, List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session

from src.db.repositories.index_repo import (
    IndexRepository,
    IndexCompositionRepository,
    IndexHistoryRepository,
)
from src.providers.base import MarketDataGateway, DividendSource
from .config import EngineConfig, ACTIVE_CONFIG
from .errors import (
    NoComposition,
    NoPriceableAssets,
    MissingHistoryBase,
    DataSourceTimeout,
    DataSourceUnavailable,
)
from .models import CompositionMember, DayResult, SnapshotEntry
from .returns import ReturnAccumulator, asset_return, weighted_yield

logger = logging.getLogger(__name__)


class AssetPrices(NamedTuple):
    today: Optional[float]
    yesterday: Optional[float]


def _valid(price: Optional[float]) -> bool:
    return price is not None and price > 0


class DailyReturnCalculator:
    """
    Compute the dividend-adjusted weighted return of an index for one date.

    Never writes. Either returns a complete DayResult or raises an
    IndexEngineError subclass.

    Market data gateways are called from worker threads, and a lookup that
    times out keeps running after the day moves on. Gateways must therefore
    not use the caller's session (see DatabaseMarketData).
    """

    def __init__(
        self,
        session: Session,
        market_data: MarketDataGateway,
        dividend_source: DividendSource,
        config: EngineConfig = ACTIVE_CONFIG,
    ):
        self.session = session
        self.market_data = market_data
        self.dividend_source = dividend_source
        self.config = config
        self.index_repo = IndexRepository(session)
        self.composition_repo = IndexCompositionRepository(session)
        self.history_repo = IndexHistoryRepository(session)

    def load_composition(self, index_id: str) -> List[CompositionMember]:
        return [
            CompositionMember(
                ticker=row.ticker,
                target_weight=float(row.target_weight),
                entry_price=float(row.entry_price),
                entry_date=row.entry_date,
                dividend_yield=float(dy) if dy is not None else None,
            )
            for row, dy in self.composition_repo.get_composition(index_id)
        ]

    def base_points(self, index_id: str) -> float:
        index_def = self.index_repo.get_index(index_id)
        if index_def and index_def.base_value is not None:
            return float(index_def.base_value)
        return self.config.base_points

    def compute(
        self, index_id: str, target_date: date, today: Optional[date] = None
    ) -> DayResult:
        """
        Compute the index for `target_date`.

        1. Load the current composition
        2. Find the latest point strictly before the date (or handle genesis)
        3. Resolve today and yesterday prices per asset
        4. Resolve dividends with ex-date on the date
        5. Accumulate weighted returns in composition order

        Args:
            index_id: Index to compute
            target_date: Day to compute
            today: Current exchange date; when equal to target_date, live
                quotes are used for assets without a close yet

        Returns:
            DayResult with points, change, yield, dividends and snapshot

        Raises:
            NoComposition: index has no members
            MissingHistoryBase: later points exist but none before the date
            NoPriceableAssets: no asset could be priced
            DataSourceUnavailable: the dividend source failed
        """
        members = self.load_composition(index_id)
        if not members:
            raise NoComposition(f"Index '{index_id}' has no composition")

        previous = self.history_repo.get_latest_point_before(index_id, target_date)
        prices = self._lookup_prices(members, target_date, today)

        if previous is None:
            if self.history_repo.has_points_after(index_id, target_date):
                raise MissingHistoryBase(
                    f"Index '{index_id}' has points after {target_date} but none before it"
                )
            return self._genesis(index_id, target_date, members, prices)

        previous_points = float(previous.points)
        dividends = self.fetch_dividends([m.ticker for m in members], target_date)

        acc = ReturnAccumulator(previous_points)
        snapshot: Dict[str, SnapshotEntry] = {}
        for member in members:
            asset = prices.get(member.ticker)
            if asset is None or not _valid(asset.today):
                logger.warning(f"{index_id} {target_date}: no price for {member.ticker}")
                continue
            snapshot[member.ticker] = SnapshotEntry(
                weight=member.target_weight,
                price=asset.today,
                entry_price=member.entry_price,
                entry_date=member.entry_date,
            )
            if not _valid(asset.yesterday):
                logger.warning(
                    f"{index_id} {target_date}: no previous price for {member.ticker}"
                )
                continue
            acc.add(
                member.ticker,
                member.target_weight,
                asset.today,
                asset.yesterday,
                dividends.get(member.ticker, 0.0),
            )

        if acc.total_weight == 0:
            raise NoPriceableAssets(
                f"Index '{index_id}' has no priceable assets on {target_date}"
            )

        result = DayResult(
            index_id=index_id,
            date=target_date,
            points=acc.points,
            daily_change=acc.daily_change,
            current_yield=weighted_yield(
                (m.target_weight, m.dividend_yield) for m in members
            ),
            dividends_received=acc.dividend_points,
            dividends_by_ticker=acc.dividends_by_ticker,
            composition_snapshot=snapshot,
        )
        logger.info(
            f"{index_id} {target_date}: {result.points:.4f} pts "
            f"({result.daily_change:+.4f}%), priced weight {acc.total_weight:.4f}"
        )
        return result

    def _genesis(
        self,
        index_id: str,
        target_date: date,
        members: List[CompositionMember],
        prices: Dict[str, AssetPrices],
    ) -> DayResult:
        snapshot = {}
        for member in members:
            asset = prices.get(member.ticker)
            price = asset.today if asset and _valid(asset.today) else member.entry_price
            snapshot[member.ticker] = SnapshotEntry(
                weight=member.target_weight,
                price=price,
                entry_price=member.entry_price,
                entry_date=member.entry_date,
            )
        base = self.base_points(index_id)
        logger.info(f"{index_id} {target_date}: genesis at {base} pts")
        return DayResult(
            index_id=index_id,
            date=target_date,
            points=base,
            daily_change=0.0,
            current_yield=weighted_yield(
                (m.target_weight, m.dividend_yield) for m in members
            ),
            composition_snapshot=snapshot,
            is_genesis=True,
        )

    def resolve_yesterday_price(
        self, member: CompositionMember, target_date: date, today_price: Optional[float]
    ) -> Optional[float]:
        """
        Previous-day reference price of an asset.

        Latest close on or before the calendar day before `target_date`. An
        asset entering on the date itself uses today's price (zero first-day
        return); otherwise the entry price is the fallback. A suspiciously
        large return for a recent entrant whose reference price is far from
        its entry price is treated as bad data and the entry price is used.
        """
        price = self.market_data.get_price_as_of(
            member.ticker, target_date - timedelta(days=1)
        )
        if not _valid(price):
            if member.entry_date == target_date:
                return today_price
            return member.entry_price

        if _valid(today_price) and member.entry_price > 0:
            raw = asset_return(today_price, price)
            recent = (target_date - member.entry_date).days <= self.config.suspicious_entry_window_days
            deviation = abs(price / member.entry_price - 1)
            if (
                abs(raw) > self.config.suspicious_return_threshold
                and recent
                and deviation > self.config.suspicious_price_deviation
            ):
                logger.warning(
                    f"{member.ticker} {target_date}: return {raw:.2%} against "
                    f"{price} looks wrong, using entry price {member.entry_price}"
                )
                return member.entry_price
        return price

    def resolve_today_price(
        self, ticker: str, target_date: date, today: Optional[date]
    ) -> Optional[float]:
        price = self.market_data.get_price_as_of(ticker, target_date)
        if target_date == today:
            quote = self.market_data.get_latest_prices([ticker]).get(ticker)
            if quote is not None and (
                quote.as_of is None or quote.as_of.date() >= target_date or price is None
            ):
                return quote.price
        return price

    def _lookup_one(
        self, member: CompositionMember, target_date: date, today: Optional[date]
    ) -> AssetPrices:
        price_today = self.resolve_today_price(member.ticker, target_date, today)
        price_yesterday = self.resolve_yesterday_price(member, target_date, price_today)
        return AssetPrices(price_today, price_yesterday)

    def _lookup_prices(
        self, members: List[CompositionMember], target_date: date, today: Optional[date]
    ) -> Dict[str, AssetPrices]:
        """
        Run the per-asset lookups on at most `lookup_workers` threads.

        A lookup is only submitted when a thread is free, so each one gets
        the full `lookup_timeout` from the moment it starts. A lookup that
        overruns is abandoned and the asset is missing for the day; the pool
        is replaced so the remaining assets are not queued behind it.
        """
        results: Dict[str, AssetPrices] = {}
        workers = self.config.lookup_workers
        timeout = self.config.lookup_timeout
        pending = deque(members)
        running: Dict[Future, Tuple[CompositionMember, float]] = {}
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            while pending or running:
                while pending and len(running) < workers:
                    member = pending.popleft()
                    future = executor.submit(self._lookup_one, member, target_date, today)
                    running[future] = (member, time.monotonic() + timeout)

                next_deadline = min(deadline for _, deadline in running.values())
                done, _ = wait(
                    running,
                    timeout=max(0.0, next_deadline - time.monotonic()),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    member, _ = running.pop(future)
                    try:
                        results[member.ticker] = future.result()
                    except Exception as e:
                        logger.warning(f"Price lookup failed for {member.ticker}: {e}")

                now = time.monotonic()
                expired = [f for f, (_, deadline) in running.items() if deadline <= now]
                for future in expired:
                    member, _ = running.pop(future)
                    error = DataSourceTimeout(
                        f"Price lookup for {member.ticker} exceeded {timeout}s"
                    )
                    logger.warning(str(error))
                if expired:
                    executor.shutdown(wait=False, cancel_futures=True)
                    executor = ThreadPoolExecutor(max_workers=workers)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def fetch_dividends(self, tickers: List[str], target_date: date) -> Dict[str, float]:
        """
        Dividends per ticker with ex-date on `target_date`.

        Raises:
            DataSourceUnavailable: the dividend source failed
        """
        try:
            return self.dividend_source.get_dividends(tickers, target_date)
        except Exception as e:
            raise DataSourceUnavailable(
                f"Dividend lookup for {target_date} failed: {e!r}"
            ) from e
