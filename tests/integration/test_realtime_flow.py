import pytest
from datetime import date, datetime
from src.db.repositories.index_repo import IndexCompositionRepository, IndexHistoryRepository
from src.index.config import EngineConfig
from src.index.service import IndexService
from tests.conftest import (
    CLOSES,
    INDEX_ID,
    SAO_PAULO,
    StubDividends,
    StubMarketData,
    fixed_clock,
    seed_index,
)


def store_point(session, day, points, change, snapshot=None):
    IndexHistoryRepository(session).upsert_point(INDEX_ID, day, {
        "points": points,
        "daily_change": change,
        "current_yield": None,
        "dividends_received": 0.0,
        "dividends_by_ticker": {},
        "composition_snapshot": snapshot or {},
    })


def overlay_service(session, clock, live=None):
    market = StubMarketData(CLOSES, live=live, live_as_of=clock().replace(tzinfo=None))
    return IndexService(session, market, StubDividends(), EngineConfig(), clock=clock)


def test_no_session_day_returns_last_close(session):
    seed_index(session)
    store_point(session, date(2024, 1, 4), 141.66, 0.1)
    store_point(session, date(2024, 1, 5), 142.37, 0.5)

    # Saturday midday
    result = overlay_service(session, fixed_clock(2024, 1, 6, 12)).get_real_time_return(INDEX_ID)

    assert result.real_time_points == 142.37
    assert result.daily_change == 0
    assert result.is_market_open is False
    assert result.last_session_daily_change == 0.5
    assert result.real_time_return == pytest.approx(42.37)


def test_closed_with_todays_point(session):
    seed_index(session)
    store_point(session, date(2024, 1, 4), 101.0, 1.0)
    store_point(session, date(2024, 1, 5), 102.01, 1.0)

    result = overlay_service(session, fixed_clock(2024, 1, 5, 20)).get_real_time_return(INDEX_ID)

    assert result.real_time_points == 102.01
    assert result.daily_change == 1.0
    assert result.last_official_date == date(2024, 1, 5)
    assert result.is_market_open is False


def build_through_jan4(session):
    seed_index(session)
    service = IndexService(session, StubMarketData(CLOSES), StubDividends(), EngineConfig(),
                           clock=fixed_clock(2024, 1, 4))
    service.update_points(INDEX_ID, date(2024, 1, 1))
    service.fill_missing_history(INDEX_ID)
    return IndexHistoryRepository(session).get_point(INDEX_ID, date(2024, 1, 4))


def test_live_projection_during_session(session):
    official = build_through_jan4(session)
    clock = fixed_clock(2024, 1, 5, 11)
    # AAA +5% on the snapshot price, BBB flat
    service = overlay_service(session, clock, live={"AAA": 11.025, "BBB": 19.6})

    result = service.get_real_time_return(INDEX_ID)

    assert result.is_market_open is True
    assert result.last_official_date == date(2024, 1, 4)
    assert result.daily_change == pytest.approx(3.0)
    assert result.real_time_points == pytest.approx(official.points * 1.03)
    # Read only
    assert IndexHistoryRepository(session).get_point(INDEX_ID, date(2024, 1, 5)) is None


def test_live_projection_prefers_snapshot_weights(session):
    official = build_through_jan4(session)
    # Rebalance after the close: AAA cut to 20%
    IndexCompositionRepository(session).upsert_member(INDEX_ID, "AAA", 0.2, 10.5, date(2024, 1, 5))
    service = overlay_service(session, fixed_clock(2024, 1, 5, 11), live={"AAA": 11.025, "BBB": 19.6})

    result = service.get_real_time_return(INDEX_ID)

    assert result.daily_change == pytest.approx(3.0)
    assert result.real_time_points == pytest.approx(official.points * 1.03)


def test_unavailable_projection_is_none(session):
    seed_index(session)
    clock = fixed_clock(2024, 1, 5, 11)
    # No history at all
    assert overlay_service(session, clock).get_real_time_return(INDEX_ID) is None

    build_service = IndexService(session, StubMarketData(CLOSES), StubDividends(), EngineConfig(),
                                 clock=fixed_clock(2024, 1, 4))
    build_service.update_points(INDEX_ID, date(2024, 1, 4))
    # History but no live prices
    assert overlay_service(session, clock, live={}).get_real_time_return(INDEX_ID) is None
