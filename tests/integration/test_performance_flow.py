import pytest
from datetime import date
from src.db.repositories.index_repo import IndexCompositionRepository, IndexHistoryRepository
from src.index.config import EngineConfig
from src.index.service import IndexService
from tests.conftest import CLOSES, INDEX_ID, StubDividends, StubMarketData, fixed_clock, seed_index


@pytest.fixture
def history(session):
    # BBB entered the index before AAA
    seed_index(session, members=[
        ("AAA", 0.6, 10.0, date(2024, 1, 1)),
        ("BBB", 0.4, 20.0, date(2023, 12, 29)),
    ])
    service = IndexService(session, StubMarketData(CLOSES), StubDividends(), EngineConfig(),
                           clock=fixed_clock(2024, 1, 5))
    service.update_points(INDEX_ID, date(2024, 1, 1))
    service.fill_missing_history(INDEX_ID)
    return service


def test_exited_asset(history):
    IndexCompositionRepository(history.session).remove_member(INDEX_ID, "BBB")

    perf = history.get_asset_performance(INDEX_ID, "BBB")

    assert perf.status == "EXITED"
    assert perf.entry_date == date(2023, 12, 29)
    assert perf.entry_price == 20.0
    assert perf.exit_date == date(2024, 1, 5)
    assert perf.exit_price == 19.6
    assert perf.total_return == pytest.approx(-2.0)
    assert perf.days_in_index == 5
    assert perf.average_weight == pytest.approx(0.4)
    # Only Jan 2 moved the index (+2.2%)
    assert perf.contribution_to_index == pytest.approx(0.4 * 2.2)
    assert perf.first_snapshot_date == date(2024, 1, 1)
    assert perf.last_snapshot_date == date(2024, 1, 5)


def test_active_asset(history):
    perf = history.get_asset_performance(INDEX_ID, "AAA")
    assert perf.status == "ACTIVE"
    assert perf.exit_date is None
    assert perf.exit_price is None
    assert perf.total_return is None
    assert perf.contribution_to_index == pytest.approx(0.6 * 2.2)


def test_unknown_asset(history):
    assert history.get_asset_performance(INDEX_ID, "ZZZ") is None


def test_list_all_sorted_by_entry_desc(history):
    results = history.list_all_assets_performance(INDEX_ID)
    assert [p.ticker for p in results] == ["AAA", "BBB"]


def test_list_all_empty_history(session):
    seed_index(session)
    service = IndexService(session, StubMarketData(CLOSES), StubDividends(), EngineConfig(),
                           clock=fixed_clock(2024, 1, 5))
    assert service.list_all_assets_performance(INDEX_ID) == []


def test_helpers(history):
    assert history.calculate_current_yield(INDEX_ID) == pytest.approx(7.0)
    snapshot = history.get_last_snapshot(INDEX_ID)
    assert set(snapshot) == {"AAA", "BBB"}
    assert history.after_market_ran_today(INDEX_ID)


def test_fix_starting_point(session):
    seed_index(session)
    service = IndexService(session, StubMarketData(CLOSES), StubDividends(), EngineConfig(),
                           clock=fixed_clock(2024, 1, 5))
    IndexHistoryRepository(session).upsert_point(INDEX_ID, date(2024, 1, 3), {
        "points": 101.5,
        "daily_change": 1.5,
        "current_yield": 7.0,
        "dividends_received": 0.0,
        "dividends_by_ticker": {},
        "composition_snapshot": {},
    })

    assert service.fix_starting_point(INDEX_ID)
    anchor = IndexHistoryRepository(session).get_first_point(INDEX_ID)
    assert anchor.date == date(2024, 1, 2)
    assert anchor.points == 100.0
    assert anchor.current_yield == 7.0
    assert not service.fix_starting_point(INDEX_ID)
