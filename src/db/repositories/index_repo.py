"""Repositories for index definitions, compositions and the point series."""

from typing import Any, Dict, List, Optional, Tuple
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import func

from src.db.models.index import IndexDefinition, IndexComposition, IndexHistoryPoint
from src.db.models.ticker import Ticker
from .base import BaseRepository


class IndexRepository(BaseRepository[IndexDefinition]):
    """Repository for IndexDefinition CRUD operations."""

    def __init__(self, session: Session):
        super().__init__(session, IndexDefinition)

    def get_index(self, index_id: str) -> Optional[IndexDefinition]:
        """Get index definition by ID."""
        return (
            self.session.query(IndexDefinition)
            .filter(IndexDefinition.index_id == index_id)
            .first()
        )

    def upsert(self, index: IndexDefinition, commit: bool = True) -> IndexDefinition:
        """Create or update an index definition."""
        existing = self.get_index(index.index_id)
        if existing:
            existing.name = index.name
            existing.description = index.description
            existing.base_value = index.base_value
        else:
            self.session.add(index)

        if commit:
            self.session.commit()
            self.session.refresh(existing or index)

        return existing or index

    def get_all_indices(self) -> List[IndexDefinition]:
        """Get all index definitions."""
        return self.session.query(IndexDefinition).order_by(IndexDefinition.index_id).all()


class IndexCompositionRepository:
    """Repository for the current composition of an index."""

    def __init__(self, session: Session):
        self.session = session

    def get_composition(
        self, index_id: str
    ) -> List[Tuple[IndexComposition, Optional[float]]]:
        """
        Get current members of an index with their trailing dividend yield.

        Returns:
            List of (composition row, dividend yield fraction or None),
            ordered by ticker so downstream reductions are deterministic
        """
        rows = (
            self.session.query(IndexComposition, Ticker.dividend_yield)
            .outerjoin(Ticker, Ticker.ticker == IndexComposition.ticker)
            .filter(IndexComposition.index_id == index_id)
            .order_by(IndexComposition.ticker)
            .all()
        )
        return [(member, dy) for member, dy in rows]

    def get_tickers(self, index_id: str) -> List[str]:
        results = (
            self.session.query(IndexComposition.ticker)
            .filter(IndexComposition.index_id == index_id)
            .order_by(IndexComposition.ticker)
            .all()
        )
        return [r[0] for r in results]

    def is_member(self, index_id: str, ticker: str) -> bool:
        return (
            self.session.query(IndexComposition.ticker)
            .filter(
                IndexComposition.index_id == index_id,
                IndexComposition.ticker == ticker,
            )
            .first()
            is not None
        )

    def upsert_member(
        self,
        index_id: str,
        ticker: str,
        target_weight: float,
        entry_price: float,
        entry_date: date,
        commit: bool = True,
    ) -> None:
        """Add or update a member. Used by seeding and rebalancing tools."""
        self.session.merge(
            IndexComposition(
                index_id=index_id,
                ticker=ticker,
                target_weight=target_weight,
                entry_price=entry_price,
                entry_date=entry_date,
            )
        )
        if commit:
            self.session.commit()

    def remove_member(self, index_id: str, ticker: str, commit: bool = True) -> bool:
        deleted = (
            self.session.query(IndexComposition)
            .filter(
                IndexComposition.index_id == index_id,
                IndexComposition.ticker == ticker,
            )
            .delete()
        )
        if commit:
            self.session.commit()
        return deleted > 0


class IndexHistoryRepository(BaseRepository[IndexHistoryPoint]):
    """Repository for the persisted point series, keyed by (index_id, date)."""

    def __init__(self, session: Session):
        super().__init__(session, IndexHistoryPoint)

    def _query(self, index_id: str):
        return (
            self.session.query(IndexHistoryPoint)
            .populate_existing()
            .filter(IndexHistoryPoint.index_id == index_id)
        )

    def get_point(self, index_id: str, on: date) -> Optional[IndexHistoryPoint]:
        return self._query(index_id).filter(IndexHistoryPoint.date == on).first()

    def get_latest_point(self, index_id: str) -> Optional[IndexHistoryPoint]:
        return self._query(index_id).order_by(IndexHistoryPoint.date.desc()).first()

    def get_latest_point_before(
        self, index_id: str, before: date
    ) -> Optional[IndexHistoryPoint]:
        """Latest point strictly before the given date."""
        return (
            self._query(index_id)
            .filter(IndexHistoryPoint.date < before)
            .order_by(IndexHistoryPoint.date.desc())
            .first()
        )

    def get_first_point(self, index_id: str) -> Optional[IndexHistoryPoint]:
        return self._query(index_id).order_by(IndexHistoryPoint.date.asc()).first()

    def has_points_after(self, index_id: str, after: date) -> bool:
        return (
            self.session.query(func.count(IndexHistoryPoint.date))
            .filter(
                IndexHistoryPoint.index_id == index_id,
                IndexHistoryPoint.date > after,
            )
            .scalar()
            > 0
        )

    def list_points(
        self,
        index_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[IndexHistoryPoint]:
        """Points in ascending date order, optionally bounded (inclusive)."""
        query = self._query(index_id)
        if start:
            query = query.filter(IndexHistoryPoint.date >= start)
        if end:
            query = query.filter(IndexHistoryPoint.date <= end)
        return query.order_by(IndexHistoryPoint.date.asc()).all()

    def upsert_point(
        self, index_id: str, on: date, values: Dict[str, Any], commit: bool = True
    ) -> IndexHistoryPoint:
        """
        Insert or fully replace the point for (index_id, date) in one statement.

        Args:
            values: points, daily_change, current_yield, dividends_received,
                dividends_by_ticker, composition_snapshot
        """
        stmt = self._insert().values(index_id=index_id, date=on, **values)
        update_dict = {key: stmt.excluded[key] for key in values}
        update_dict["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[IndexHistoryPoint.index_id, IndexHistoryPoint.date],
            set_=update_dict,
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        return self.get_point(index_id, on)
