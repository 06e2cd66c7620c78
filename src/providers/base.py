from abc import ABC, abstractmethod
from typing import Optional, Dict, List
from datetime import date, datetime
from pydantic import BaseModel


class PriceQuote(BaseModel):
    """Latest known trade price for a ticker."""

    ticker: str
    price: float
    as_of: Optional[datetime] = None
    source: Optional[str] = None


class DividendRecord(BaseModel):
    """Cash dividend per share keyed by ex-dividend date."""

    ticker: str
    ex_date: date
    amount: float


class MarketDataGateway(ABC):
    """Abstract source of latest and historical prices."""

    @abstractmethod
    def get_latest_prices(self, tickers: List[str]) -> Dict[str, PriceQuote]:
        """Fetch the latest trade price per ticker. Missing tickers are omitted."""
        pass

    @abstractmethod
    def get_price_as_of(self, ticker: str, target_date: date) -> Optional[float]:
        """Fetch the latest close on or before the date."""
        pass

    @abstractmethod
    def get_close(self, ticker: str, target_date: date) -> Optional[float]:
        """Fetch the close for exactly this date (None if no session for it)."""
        pass


class DividendSource(ABC):
    """Abstract source of cash dividend events."""

    @abstractmethod
    def get_dividends(self, tickers: List[str], target_date: date) -> Dict[str, float]:
        """
        Fetch dividends with ex-date on the given day.

        Returns:
            Amount per share per ticker, summed when a ticker has several events
        """
        pass

    @abstractmethod
    def list_dividends(
        self, tickers: List[str], start: date, end: date
    ) -> List[DividendRecord]:
        """Fetch every event with ex-date in [start, end]."""
        pass
