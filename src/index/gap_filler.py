"""GapFiller - backfill business days missing between the last point and today."""

import logging
from datetime import date
from typing import Callable
from sqlalchemy.orm import Session

from src.db.repositories.index_repo import IndexHistoryRepository
from .calendar import business_days_between
from .models import GapFillReport

logger = logging.getLogger(__name__)


class GapFiller:
    """
    Walk Mon-Fri dates after the latest persisted point, oldest first.

    Each day is handed to `update_points`, which reads the point persisted
    for the day before, so the chain has to run strictly in order. A failed
    day is recorded whatever the exception and the walk continues; the next
    day then compounds from the latest point that does exist.
    """

    def __init__(self, session: Session, update_points: Callable[[str, date], bool]):
        self.session = session
        self.history_repo = IndexHistoryRepository(session)
        self.update_points = update_points

    def missing_days(self, index_id: str, today: date):
        last = self.history_repo.get_latest_point(index_id)
        if last is None or last.date >= today:
            return []
        return business_days_between(last.date, today)

    def backfill(self, index_id: str, today: date) -> GapFillReport:
        report = GapFillReport(index_id=index_id)

        if self.history_repo.get_latest_point(index_id) is None:
            logger.warning(f"No history found for index {index_id}, cannot fill gaps")
            return report

        days = self.missing_days(index_id, today)
        if not days:
            return report

        logger.info(f"Found {len(days)} missing days for index {index_id}")
        for day in days:
            report.attempted.append(day)
            try:
                if self.update_points(index_id, day):
                    report.filled.append(day)
            except ValueError as e:
                logger.warning(f"Skipping {index_id} {day}: {e}")
                report.add_failure(day, str(e))
            except Exception as e:
                logger.exception(f"Unexpected failure on {index_id} {day}")
                self.session.rollback()
                report.add_failure(day, f"{type(e).__name__}: {e}")

        logger.info(
            f"Filled {report.filled_count}/{len(days)} missing days for index {index_id}"
        )
        return report
