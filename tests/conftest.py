import pytest
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.models import Base, IndexDefinition, Ticker
from src.db.repositories.index_repo import IndexCompositionRepository
from src.index.config import EngineConfig
from src.index.service import IndexService
from src.providers.base import (
    MarketDataGateway,
    DividendSource,
    PriceQuote,
    DividendRecord,
)

SAO_PAULO = ZoneInfo("America/Sao_Paulo")

INDEX_ID = "IDX"
ENTRY = date(2024, 1, 1)  # Monday

# AAA +5% and BBB -2% on Jan 2, flat afterwards
CLOSES = {
    "AAA": {date(2024, 1, 1): 10.0, date(2024, 1, 2): 10.5, date(2024, 1, 3): 10.5,
            date(2024, 1, 4): 10.5, date(2024, 1, 5): 10.5},
    "BBB": {date(2024, 1, 1): 20.0, date(2024, 1, 2): 19.6, date(2024, 1, 3): 19.6,
            date(2024, 1, 4): 19.6, date(2024, 1, 5): 19.6},
}


# --- Stub gateways ---

class StubMarketData(MarketDataGateway):
    def __init__(self, closes: Dict[str, Dict[date, float]], live: Optional[Dict[str, float]] = None,
                 live_as_of: Optional[datetime] = None):
        self.closes = {t: dict(c) for t, c in closes.items()}
        self.live = live or {}
        self.live_as_of = live_as_of

    def get_latest_prices(self, tickers: List[str]) -> Dict[str, PriceQuote]:
        return {
            t: PriceQuote(ticker=t, price=self.live[t], as_of=self.live_as_of, source="stub")
            for t in tickers
            if t in self.live
        }

    def get_price_as_of(self, ticker: str, target_date: date) -> Optional[float]:
        series = self.closes.get(ticker, {})
        days = [d for d in series if d <= target_date]
        return series[max(days)] if days else None

    def get_close(self, ticker: str, target_date: date) -> Optional[float]:
        return self.closes.get(ticker, {}).get(target_date)


class EmptyMarketData(MarketDataGateway):
    def get_latest_prices(self, tickers):
        return {}

    def get_price_as_of(self, ticker, target_date):
        return None

    def get_close(self, ticker, target_date):
        return None


class StubDividends(DividendSource):
    def __init__(self, events: Optional[List[Tuple[str, date, float]]] = None):
        self.events = list(events or [])

    def add(self, ticker: str, ex_date: date, amount: float) -> None:
        self.events.append((ticker, ex_date, amount))

    def get_dividends(self, tickers, target_date):
        result: Dict[str, float] = {}
        for ticker, ex_date, amount in self.events:
            if ticker in tickers and ex_date == target_date:
                result[ticker] = result.get(ticker, 0.0) + amount
        return result

    def list_dividends(self, tickers, start, end):
        return [
            DividendRecord(ticker=t, ex_date=d, amount=a)
            for t, d, a in sorted(self.events, key=lambda e: (e[1], e[0]))
            if t in tickers and start <= d <= end
        ]


class FlakyDividends(StubDividends):
    """Dividend source that raises a connection error on chosen dates."""

    def __init__(self, events=None, failing_on=()):
        super().__init__(events)
        self.failing_on = set(failing_on)

    def get_dividends(self, tickers, target_date):
        if target_date in self.failing_on:
            raise ConnectionError("dividend source down")
        return super().get_dividends(tickers, target_date)


# --- Fixtures ---

@pytest.fixture
def session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


def seed_index(session, members=None, yields=None):
    """Create index IDX with AAA 60% / BBB 40% entered on ENTRY."""
    members = members or [("AAA", 0.6, 10.0, ENTRY), ("BBB", 0.4, 20.0, ENTRY)]
    yields = yields or {"AAA": 0.05, "BBB": 0.10}
    session.add(IndexDefinition(index_id=INDEX_ID, name="Test Index", base_value=100.0))
    for ticker, _, _, _ in members:
        session.add(Ticker(ticker=ticker, company_name=ticker, dividend_yield=yields.get(ticker)))
    session.commit()
    repo = IndexCompositionRepository(session)
    for ticker, weight, price, entered in members:
        repo.upsert_member(INDEX_ID, ticker, weight, price, entered)


def fixed_clock(year, month, day, hour=20, minute=0):
    """Clock frozen at a wall time in Sao Paulo (20:00 is after the close)."""
    moment = datetime(year, month, day, hour, minute, tzinfo=SAO_PAULO)
    return lambda: moment


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def market_data():
    return StubMarketData(CLOSES)


@pytest.fixture
def dividends():
    return StubDividends()


@pytest.fixture
def seeded(session):
    seed_index(session)
    return session


@pytest.fixture
def service(seeded, market_data, dividends, config):
    """Service over the seeded index, clock on Friday 2024-01-05 after the close."""
    return IndexService(
        seeded, market_data, dividends, config, clock=fixed_clock(2024, 1, 5)
    )
