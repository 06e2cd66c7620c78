"""Trading calendar helpers: business days, sessions and venue hours."""

from datetime import date, datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo
import pandas as pd

from src.providers.base import MarketDataGateway
from .config import EngineConfig


def business_days_between(after: date, through: date) -> List[date]:
    """Mon-Fri dates strictly after `after` up to and including `through`."""
    start = after + timedelta(days=1)
    if start > through:
        return []
    return [ts.date() for ts in pd.bdate_range(start=start, end=through)]


def is_weekday(day: date) -> bool:
    return day.weekday() < 5


def exchange_now(config: EngineConfig, now: Optional[datetime] = None) -> datetime:
    """Current time in the exchange timezone. Naive datetimes are taken as UTC."""
    tz = ZoneInfo(config.exchange_timezone)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz)


def exchange_today(config: EngineConfig, now: Optional[datetime] = None) -> date:
    return exchange_now(config, now).date()


def is_market_open(config: EngineConfig, now: Optional[datetime] = None) -> bool:
    """True during the regular session hours of a weekday, in exchange time."""
    local = exchange_now(config, now)
    if not is_weekday(local.date()) or local.date() in config.holidays:
        return False
    return config.market_open_hour <= local.hour < config.market_close_hour


def had_session(
    config: EngineConfig,
    day: date,
    market_data: Optional[MarketDataGateway] = None,
    today: Optional[date] = None,
) -> bool:
    """
    Whether the venue traded on `day`.

    Weekends and configured holidays never count. With a session reference
    ticker configured, the day also needs a close for that ticker (or, for the
    current exchange day, a live quote).
    """
    if not is_weekday(day) or day in config.holidays:
        return False
    ref = config.session_reference_ticker
    if not ref or market_data is None:
        return True
    if market_data.get_close(ref, day) is not None:
        return True
    if day == (today or exchange_today(config)):
        quote = market_data.get_latest_prices([ref]).get(ref)
        return quote is not None and (quote.as_of is None or quote.as_of.date() == day)
    return False
