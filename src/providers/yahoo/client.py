import logging
import time
from typing import Dict, Optional, List, Tuple
from datetime import date, datetime, timedelta
import yfinance as yf
import pandas as pd
from ..base import MarketDataGateway, DividendSource, PriceQuote, DividendRecord
from ..rate_limiter import YahooRateLimiter

logger = logging.getLogger(__name__)


class YFinanceProvider(MarketDataGateway, DividendSource):
    """
    yfinance implementation of the price and dividend interfaces.

    Index tickers are stored without exchange suffix (PETR4); Yahoo needs
    the venue suffix (PETR4.SA), appended here.
    """

    def __init__(
        self,
        rate_limit_delay: float = 0.25,
        symbol_suffix: str = ".SA",
        timeout: float = 10.0,
        dividend_cache_ttl: float = 3600.0,
    ):
        self.limiter = YahooRateLimiter(min_interval=rate_limit_delay)
        self.symbol_suffix = symbol_suffix
        self.timeout = timeout
        self.dividend_cache_ttl = dividend_cache_ttl
        # ticker -> (monotonic fetch time, series)
        self._dividend_cache: Dict[str, Tuple[float, pd.Series]] = {}

    def _symbol(self, ticker: str) -> str:
        if self.symbol_suffix and not ticker.endswith(self.symbol_suffix):
            return f"{ticker}{self.symbol_suffix}"
        return ticker

    def get_history(self, ticker: str, start: date, end: date) -> pd.DataFrame:
        """Daily bars in [start, end). Empty frame when Yahoo has nothing."""
        self.limiter.wait_if_needed()
        t = yf.Ticker(self._symbol(ticker))
        hist = t.history(
            start=start.strftime("%Y-%m-%d"),
            end=end.strftime("%Y-%m-%d"),
            timeout=self.timeout,
        )
        if hist.empty:
            return hist
        # Drop the exchange timezone, keep the trading date
        hist.index = pd.DatetimeIndex(hist.index).tz_localize(None).normalize()
        return hist

    def get_latest_prices(self, tickers: List[str]) -> Dict[str, PriceQuote]:
        quotes: Dict[str, PriceQuote] = {}
        for ticker in tickers:
            self.limiter.wait_if_needed()
            try:
                hist = yf.Ticker(self._symbol(ticker)).history(
                    period="5d", timeout=self.timeout
                )
                if hist.empty:
                    continue
                ts = hist.index[-1]
                quotes[ticker] = PriceQuote(
                    ticker=ticker,
                    price=float(hist["Close"].iloc[-1]),
                    as_of=ts.to_pydatetime() if hasattr(ts, "to_pydatetime") else datetime.now(),
                    source="yahoo",
                )
            except Exception as e:
                logger.warning(f"Yahoo quote failed for {ticker}: {e}")
        return quotes

    def get_price_as_of(self, ticker: str, target_date: date) -> Optional[float]:
        try:
            # Buffer for weekends and holidays
            hist = self.get_history(
                ticker, target_date - timedelta(days=10), target_date + timedelta(days=1)
            )
            if not hist.empty:
                hist = hist[hist.index <= pd.Timestamp(target_date)]
            if not hist.empty:
                return float(hist["Close"].iloc[-1])
        except Exception as e:
            logger.warning(f"Yahoo history failed for {ticker} as of {target_date}: {e}")
        return None

    def get_close(self, ticker: str, target_date: date) -> Optional[float]:
        try:
            hist = self.get_history(ticker, target_date, target_date + timedelta(days=1))
            ts = pd.Timestamp(target_date)
            if ts in hist.index:
                return float(hist.loc[ts]["Close"])
        except Exception as e:
            logger.warning(f"Yahoo close failed for {ticker} on {target_date}: {e}")
        return None

    def clear_cache(self) -> None:
        """Forget cached dividend series so the next read refetches them."""
        self._dividend_cache.clear()

    def _dividend_series(self, ticker: str) -> pd.Series:
        """Full dividend history of a ticker, refetched once older than the TTL."""
        cached = self._dividend_cache.get(ticker)
        if cached is not None and time.monotonic() - cached[0] < self.dividend_cache_ttl:
            return cached[1]

        self.limiter.wait_if_needed()
        series = yf.Ticker(self._symbol(ticker)).dividends
        if series.empty:
            series = pd.Series(dtype=float, index=pd.DatetimeIndex([]))
        else:
            series.index = pd.DatetimeIndex(series.index).tz_localize(None).normalize()
        self._dividend_cache[ticker] = (time.monotonic(), series)
        return series

    def get_dividends(self, tickers: List[str], target_date: date) -> Dict[str, float]:
        ts = pd.Timestamp(target_date)
        result: Dict[str, float] = {}
        for ticker in tickers:
            try:
                series = self._dividend_series(ticker)
            except Exception as e:
                logger.warning(f"Yahoo dividends failed for {ticker}: {e}")
                continue
            amount = float(series[series.index == ts].sum()) if not series.empty else 0.0
            if amount > 0:
                result[ticker] = amount
        return result

    def list_dividends(
        self, tickers: List[str], start: date, end: date
    ) -> List[DividendRecord]:
        records: List[DividendRecord] = []
        lo, hi = pd.Timestamp(start), pd.Timestamp(end)
        for ticker in tickers:
            try:
                series = self._dividend_series(ticker)
            except Exception as e:
                logger.warning(f"Yahoo dividends failed for {ticker}: {e}")
                continue
            window = series[(series.index >= lo) & (series.index <= hi)]
            for ts, amount in window.items():
                records.append(
                    DividendRecord(ticker=ticker, ex_date=ts.date(), amount=float(amount))
                )
        records.sort(key=lambda r: (r.ex_date, r.ticker))
        return records
