"""Index definition, composition and history point SQLAlchemy models."""

from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Float,
    Text,
    JSON,
    ForeignKey,
    Index as SQLIndex,
    func,
)
from .base import Base


class IndexDefinition(Base):
    """Index definition - a synthetic total return index over a basket of equities."""

    __tablename__ = "indices"

    index_id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    base_value = Column(Float, default=100.0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class IndexComposition(Base):
    """
    Current membership of an index.

    Written by the rebalancing process, read-only for the computation engine.
    Only the current state is kept here; history lives in the per-day
    composition snapshots of IndexHistoryPoint.
    """

    __tablename__ = "index_compositions"

    index_id = Column(
        String(50), ForeignKey("indices.index_id"), primary_key=True, nullable=False
    )
    ticker = Column(
        String(20), ForeignKey("tickers.ticker"), primary_key=True, nullable=False
    )
    target_weight = Column(Float, nullable=False)  # 0-1
    entry_price = Column(Float, nullable=False)
    entry_date = Column(Date, nullable=False)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (SQLIndex("idx_composition_ticker", "ticker"),)


class IndexHistoryPoint(Base):
    """
    One persisted day of the index point series.

    composition_snapshot maps ticker -> {weight, price, entry_price, entry_date}
    and records exactly what was used for that day's arithmetic.
    dividends_by_ticker maps ticker -> cash amount per share paid that day.
    """

    __tablename__ = "index_history_points"

    index_id = Column(
        String(50), ForeignKey("indices.index_id"), primary_key=True, nullable=False
    )
    date = Column(Date, primary_key=True, nullable=False)

    points = Column(Float, nullable=False)
    daily_change = Column(Float, nullable=False)  # percent
    current_yield = Column(Float, nullable=True)  # percent
    dividends_received = Column(Float, nullable=False, default=0.0)  # index points
    dividends_by_ticker = Column(JSON, nullable=False, default=dict)
    composition_snapshot = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (SQLIndex("idx_history_index_date", "index_id", "date"),)
