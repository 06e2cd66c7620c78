"""Market data and dividends served from the local database tables."""

from typing import Callable, Dict, List, Optional
from datetime import date, datetime, time
from sqlalchemy.orm import Session

from src.db.repositories.market_repo import DailyPriceRepository, DividendRepository
from .base import MarketDataGateway, DividendSource, PriceQuote, DividendRecord


class DatabaseMarketData(MarketDataGateway):
    """
    Prices from the daily_prices table.

    Every call opens its own session from `session_factory` (a sessionmaker),
    because lookups run on worker threads and a timed-out one may still be
    querying while the caller has moved on.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_latest_prices(self, tickers: List[str]) -> Dict[str, PriceQuote]:
        with self.session_factory() as session:
            latest = DailyPriceRepository(session).get_latest(tickers)
            return {
                ticker: PriceQuote(
                    ticker=ticker,
                    price=float(row.close),
                    as_of=datetime.combine(row.date, time.min),
                    source="database",
                )
                for ticker, row in latest.items()
            }

    def get_price_as_of(self, ticker: str, target_date: date) -> Optional[float]:
        with self.session_factory() as session:
            return DailyPriceRepository(session).get_price_as_of(ticker, target_date)

    def get_close(self, ticker: str, target_date: date) -> Optional[float]:
        with self.session_factory() as session:
            return DailyPriceRepository(session).get_close(ticker, target_date)


class DatabaseDividendSource(DividendSource):
    """Dividends from the dividend_events table, one session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_dividends(self, tickers: List[str], target_date: date) -> Dict[str, float]:
        with self.session_factory() as session:
            return DividendRepository(session).get_dividends(tickers, target_date)

    def list_dividends(
        self, tickers: List[str], start: date, end: date
    ) -> List[DividendRecord]:
        with self.session_factory() as session:
            return [
                DividendRecord(ticker=e.ticker, ex_date=e.ex_date, amount=float(e.amount))
                for e in DividendRepository(session).list_between(tickers, start, end)
            ]
