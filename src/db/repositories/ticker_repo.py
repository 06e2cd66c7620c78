from typing import Optional
from sqlalchemy import func
from .base import BaseRepository
from src.db.models.ticker import Ticker

class TickerRepository(BaseRepository[Ticker]):
    def __init__(self, session):
        super().__init__(session, Ticker)

    def get(self, ticker: str) -> Optional[Ticker]:
        return self.session.get(Ticker, ticker)

    def upsert(self, ticker_obj: Ticker, commit: bool = True) -> Ticker:
        stmt = self._insert().values(
            ticker=ticker_obj.ticker,
            company_name=ticker_obj.company_name,
            exchange=ticker_obj.exchange,
            sector=ticker_obj.sector,
            dividend_yield=ticker_obj.dividend_yield,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Ticker.ticker],
            set_={
                "company_name": stmt.excluded.company_name,
                "updated_at": func.now(),
                "exchange": stmt.excluded.exchange,
                "sector": stmt.excluded.sector,
                "dividend_yield": stmt.excluded.dividend_yield,
            }
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        return self.get(ticker_obj.ticker)
