"""Repositories for stored daily closes and dividend events."""

from typing import Dict, List, Optional
from datetime import date
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.db.models.market_data import DailyPrice, DividendEvent
from .base import BaseRepository


class DailyPriceRepository(BaseRepository[DailyPrice]):
    def __init__(self, session: Session):
        super().__init__(session, DailyPrice)

    def get_close(self, ticker: str, on: date) -> Optional[float]:
        """Close for exactly this date."""
        row = self.session.get(DailyPrice, (ticker, on))
        return float(row.close) if row else None

    def get_price_as_of(self, ticker: str, on: date) -> Optional[float]:
        """Latest close on or before the date."""
        row = (
            self.session.query(DailyPrice)
            .filter(DailyPrice.ticker == ticker, DailyPrice.date <= on)
            .order_by(DailyPrice.date.desc())
            .first()
        )
        return float(row.close) if row else None

    def get_latest(self, tickers: List[str]) -> Dict[str, DailyPrice]:
        """Most recent stored close per ticker."""
        if not tickers:
            return {}
        latest = (
            self.session.query(DailyPrice.ticker, func.max(DailyPrice.date).label("max_date"))
            .filter(DailyPrice.ticker.in_(tickers))
            .group_by(DailyPrice.ticker)
            .subquery()
        )
        rows = (
            self.session.query(DailyPrice)
            .join(
                latest,
                (DailyPrice.ticker == latest.c.ticker)
                & (DailyPrice.date == latest.c.max_date),
            )
            .all()
        )
        return {row.ticker: row for row in rows}

    def upsert_close(
        self,
        ticker: str,
        on: date,
        close: float,
        source: Optional[str] = None,
        commit: bool = True,
    ) -> None:
        stmt = self._insert().values(ticker=ticker, date=on, close=close, source=source)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyPrice.ticker, DailyPrice.date],
            set_={"close": stmt.excluded.close, "source": stmt.excluded.source},
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()


class DividendRepository(BaseRepository[DividendEvent]):
    def __init__(self, session: Session):
        super().__init__(session, DividendEvent)

    def get_dividends(self, tickers: List[str], on: date) -> Dict[str, float]:
        """Cash amount per share with ex-date on the given day, summed per ticker."""
        if not tickers:
            return {}
        rows = (
            self.session.query(DividendEvent.ticker, func.sum(DividendEvent.amount))
            .filter(DividendEvent.ticker.in_(tickers), DividendEvent.ex_date == on)
            .group_by(DividendEvent.ticker)
            .all()
        )
        return {ticker: float(total) for ticker, total in rows if total}

    def list_between(
        self, tickers: List[str], start: date, end: date
    ) -> List[DividendEvent]:
        """Events with ex-date in [start, end], ordered by date then ticker."""
        if not tickers:
            return []
        return (
            self.session.query(DividendEvent)
            .filter(
                DividendEvent.ticker.in_(tickers),
                DividendEvent.ex_date >= start,
                DividendEvent.ex_date <= end,
            )
            .order_by(DividendEvent.ex_date, DividendEvent.ticker)
            .all()
        )

    def add_event(
        self,
        ticker: str,
        ex_date: date,
        amount: float,
        source: Optional[str] = None,
        commit: bool = True,
    ) -> DividendEvent:
        event = DividendEvent(ticker=ticker, ex_date=ex_date, amount=amount, source=source)
        self.session.add(event)
        if commit:
            self.session.commit()
        return event
