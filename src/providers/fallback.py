"""Composite gateway: ask the primary source first, fall back per ticker."""

import logging
from typing import Dict, List, Optional
from datetime import date

from .base import MarketDataGateway, PriceQuote

logger = logging.getLogger(__name__)


class FallbackMarketData(MarketDataGateway):
    """
    Query `primary` and fill whatever it could not answer from `fallback`.

    Typical wiring is Yahoo first, database second.
    """

    def __init__(self, primary: MarketDataGateway, fallback: MarketDataGateway):
        self.primary = primary
        self.fallback = fallback

    def get_latest_prices(self, tickers: List[str]) -> Dict[str, PriceQuote]:
        quotes = self.primary.get_latest_prices(tickers)
        missing = [t for t in tickers if t not in quotes]
        if missing:
            logger.info(f"Primary source missing {len(missing)} quotes, using fallback")
            quotes.update(self.fallback.get_latest_prices(missing))
        return quotes

    def get_price_as_of(self, ticker: str, target_date: date) -> Optional[float]:
        price = self.primary.get_price_as_of(ticker, target_date)
        if price is None:
            price = self.fallback.get_price_as_of(ticker, target_date)
        return price

    def get_close(self, ticker: str, target_date: date) -> Optional[float]:
        price = self.primary.get_close(ticker, target_date)
        if price is None:
            price = self.fallback.get_close(ticker, target_date)
        return price
