import pytest
from datetime import date
import pandas as pd
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from src.db.models import Base
from src.db.repositories.index_repo import IndexHistoryRepository
from src.db.repositories.market_repo import DailyPriceRepository, DividendRepository
from src.index.config import EngineConfig
from src.index.service import IndexService
from src.providers.base import MarketDataGateway, PriceQuote
from src.providers.database import DatabaseDividendSource, DatabaseMarketData
from src.providers.fallback import FallbackMarketData
from src.providers.yahoo.client import YFinanceProvider
from tests.conftest import CLOSES, INDEX_ID, EmptyMarketData, fixed_clock, seed_index


@pytest.fixture
def db_factory(tmp_path):
    """File-backed SQLite, so gateway sessions get connections of their own."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'index.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_factory):
    session = db_factory()
    yield session
    session.close()


@pytest.fixture
def stored_prices(db_session):
    repo = DailyPriceRepository(db_session)
    for ticker, closes in CLOSES.items():
        for day, close in closes.items():
            repo.upsert_close(ticker, day, close, source="test", commit=False)
    db_session.commit()
    return db_session


def test_database_prices(stored_prices, db_factory):
    market = DatabaseMarketData(db_factory)
    assert market.get_close("AAA", date(2024, 1, 2)) == 10.5
    assert market.get_close("AAA", date(2024, 1, 6)) is None
    # Saturday resolves to Friday's close
    assert market.get_price_as_of("BBB", date(2024, 1, 6)) == 19.6
    assert market.get_price_as_of("BBB", date(2023, 12, 31)) is None

    latest = market.get_latest_prices(["AAA", "BBB", "ZZZ"])
    assert set(latest) == {"AAA", "BBB"}
    assert latest["AAA"].as_of.date() == date(2024, 1, 5)


def test_upsert_close_overwrites(stored_prices):
    repo = DailyPriceRepository(stored_prices)
    repo.upsert_close("AAA", date(2024, 1, 2), 10.6)
    assert repo.get_close("AAA", date(2024, 1, 2)) == 10.6


def test_database_dividends_are_summed(db_session, db_factory):
    repo = DividendRepository(db_session)
    repo.add_event("BBB", date(2024, 1, 3), 0.25)
    repo.add_event("BBB", date(2024, 1, 3), 0.15)
    repo.add_event("AAA", date(2024, 1, 4), 0.10)
    source = DatabaseDividendSource(db_factory)

    assert source.get_dividends(["AAA", "BBB"], date(2024, 1, 3)) == {"BBB": pytest.approx(0.4)}
    events = source.list_dividends(["AAA", "BBB"], date(2024, 1, 1), date(2024, 1, 4))
    assert [(e.ticker, e.ex_date) for e in events] == [
        ("BBB", date(2024, 1, 3)),
        ("BBB", date(2024, 1, 3)),
        ("AAA", date(2024, 1, 4)),
    ]


class PartialQuotes(MarketDataGateway):
    def get_latest_prices(self, tickers):
        return {"AAA": PriceQuote(ticker="AAA", price=11.0, source="primary")} if "AAA" in tickers else {}

    def get_price_as_of(self, ticker, target_date):
        return None

    def get_close(self, ticker, target_date):
        return 99.0 if ticker == "AAA" else None


def test_fallback_fills_missing(stored_prices, db_factory):
    market = FallbackMarketData(PartialQuotes(), DatabaseMarketData(db_factory))
    quotes = market.get_latest_prices(["AAA", "BBB"])
    assert quotes["AAA"].source == "primary"
    assert quotes["BBB"].source == "database"
    assert market.get_close("AAA", date(2024, 1, 2)) == 99.0
    assert market.get_close("BBB", date(2024, 1, 2)) == 19.6
    assert market.get_price_as_of("AAA", date(2024, 1, 2)) == 10.5


def test_series_from_database_sources(stored_prices, db_factory):
    seed_index(stored_prices)
    DividendRepository(stored_prices).add_event("BBB", date(2024, 1, 3), 0.4)
    service = IndexService(
        stored_prices,
        FallbackMarketData(EmptyMarketData(), DatabaseMarketData(db_factory)),
        DatabaseDividendSource(db_factory),
        EngineConfig(lookup_workers=2),
        clock=fixed_clock(2024, 1, 5),
    )
    service.update_points(INDEX_ID, date(2024, 1, 1))
    assert service.fill_missing_history(INDEX_ID) == 4

    jan3 = IndexHistoryRepository(stored_prices).get_point(INDEX_ID, date(2024, 1, 3))
    # 102.2 * (1 + 0.4 * 0.4 / 19.6)
    assert jan3.points == pytest.approx(102.2 * (1 + 0.4 * 0.4 / 19.6))
    assert jan3.dividends_by_ticker == {"BBB": pytest.approx(0.4)}


def test_yahoo_symbol_suffix():
    provider = YFinanceProvider(rate_limit_delay=0)
    assert provider._symbol("PETR4") == "PETR4.SA"
    assert provider._symbol("PETR4.SA") == "PETR4.SA"
    assert YFinanceProvider(symbol_suffix="")._symbol("AAPL") == "AAPL"


@pytest.fixture
def yahoo_dividends(monkeypatch):
    """Replace yf.Ticker; returns (paid events, fetched symbols)."""
    paid = []
    fetched = []

    class FakeTicker:
        def __init__(self, symbol):
            self.symbol = symbol

        @property
        def dividends(self):
            fetched.append(self.symbol)
            index = pd.DatetimeIndex([day for day, _ in paid]).tz_localize("America/Sao_Paulo")
            return pd.Series([amount for _, amount in paid], index=index, dtype=float)

    monkeypatch.setattr("src.providers.yahoo.client.yf.Ticker", FakeTicker)
    return paid, fetched


def test_yahoo_dividend_cache_can_be_cleared(yahoo_dividends):
    paid, fetched = yahoo_dividends
    provider = YFinanceProvider(rate_limit_delay=0)

    assert provider.get_dividends(["BBB"], date(2024, 1, 4)) == {}
    paid.append(("2024-01-04", 0.4))
    # Within the TTL the cached series is served
    assert provider.get_dividends(["BBB"], date(2024, 1, 4)) == {}
    assert fetched == ["BBB.SA"]

    provider.clear_cache()
    assert provider.get_dividends(["BBB"], date(2024, 1, 4)) == {"BBB": pytest.approx(0.4)}
    assert fetched == ["BBB.SA", "BBB.SA"]


def test_yahoo_dividend_cache_expires(yahoo_dividends):
    paid, fetched = yahoo_dividends
    provider = YFinanceProvider(rate_limit_delay=0, dividend_cache_ttl=0)

    assert provider.list_dividends(["BBB"], date(2024, 1, 1), date(2024, 1, 5)) == []
    paid.append(("2024-01-04", 0.4))

    records = provider.list_dividends(["BBB"], date(2024, 1, 1), date(2024, 1, 5))
    assert [(r.ticker, r.ex_date, r.amount) for r in records] == [("BBB", date(2024, 1, 4), 0.4)]
    assert len(fetched) == 2
