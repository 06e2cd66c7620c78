"""Shared construction of the service for the command line scripts."""

from src.db.session import SessionLocal
from src.index.config import ACTIVE_CONFIG
from src.index.service import IndexService
from src.providers.database import DatabaseMarketData, DatabaseDividendSource
from src.providers.fallback import FallbackMarketData
from src.providers.yahoo.client import YFinanceProvider


def build_service(session, offline: bool = False) -> IndexService:
    """Yahoo first with database fallback, or database only when offline."""
    # Gateways open their own sessions; `session` is only used for index rows
    database = DatabaseMarketData(SessionLocal)
    market_data = database if offline else FallbackMarketData(YFinanceProvider(), database)
    return IndexService(session, market_data, DatabaseDividendSource(SessionLocal), ACTIVE_CONFIG)
