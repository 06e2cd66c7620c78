import pytest
from datetime import date
from pydantic import ValidationError
from src.index.config import EngineConfig, RecomputePolicy, load_config


def test_defaults():
    config = EngineConfig()
    assert config.base_points == 100.0
    assert config.exchange_timezone == "America/Sao_Paulo"
    assert config.recompute_policy == RecomputePolicy.CARRY_LAST_SUCCESS
    assert config.lookup_workers == 1


def test_load_from_environment(monkeypatch):
    monkeypatch.setenv("INDEX_HOLIDAYS", "2024-01-01, 2024-02-12")
    monkeypatch.setenv("INDEX_RECOMPUTE_POLICY", "halt")
    monkeypatch.setenv("INDEX_LOOKUP_WORKERS", "4")
    config = load_config()
    assert config.holidays == [date(2024, 1, 1), date(2024, 2, 12)]
    assert config.recompute_policy == RecomputePolicy.HALT
    assert config.lookup_workers == 4


def test_invalid_worker_count():
    with pytest.raises(ValidationError):
        EngineConfig(lookup_workers=0)
