"""Stored market data: daily closes and cash dividend events."""

from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Float,
    Integer,
    Index as SQLIndex,
    func,
)
from .base import Base


class DailyPrice(Base):
    __tablename__ = "daily_prices"

    ticker = Column(String(20), primary_key=True)
    date = Column(Date, primary_key=True)
    close = Column(Float, nullable=False)
    source = Column(String(50))  # Provider that reported the close

    ingested_at = Column(DateTime, server_default=func.now())


class DividendEvent(Base):
    """Cash dividend per share, keyed by ex-dividend date."""

    __tablename__ = "dividend_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticker = Column(String(20), nullable=False)
    ex_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)
    source = Column(String(50))

    ingested_at = Column(DateTime, server_default=func.now())

    __table_args__ = (SQLIndex("idx_dividend_ticker_date", "ticker", "ex_date"),)
