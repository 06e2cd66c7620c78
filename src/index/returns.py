"""Dividend-adjusted return math shared by the daily, recompute and live paths."""

from typing import Dict, Iterable, List, Optional, Tuple


def asset_return(price_today: float, price_yesterday: float, dividend: float = 0.0) -> float:
    """Total return of one asset over one day: (P_t + D_t) / P_{t-1} - 1."""
    return (price_today + dividend) / price_yesterday - 1


def dividend_points(
    dividend: float, price_yesterday: float, weight: float, previous_points: float
) -> float:
    """Share of the index move, in points, that came from a cash dividend."""
    return dividend / price_yesterday * weight * previous_points


def compound(previous_points: float, daily_return: float) -> float:
    return previous_points * (1 + daily_return)


def compound_series(base: float, daily_returns: Iterable[float]) -> List[float]:
    """Fold daily returns into a point series starting from `base`."""
    series = []
    running = base
    for r in daily_returns:
        running = compound(running, r)
        series.append(running)
    return series


def weighted_yield(pairs: Iterable[Tuple[float, Optional[float]]]) -> Optional[float]:
    """
    Weight-average trailing yield in percent.

    Args:
        pairs: (weight, yield fraction or None); members without a yield
            are excluded from both numerator and denominator

    Returns:
        Percent yield, or None when no member has one
    """
    numerator = 0.0
    denominator = 0.0
    for weight, dy in pairs:
        if dy is None or weight <= 0:
            continue
        numerator += weight * dy
        denominator += weight
    if denominator == 0:
        return None
    return numerator / denominator * 100


class ReturnAccumulator:
    """
    Running totals of one day's weighted return.

    Assets are added one at a time in a fixed order. The daily return is the
    plain weighted sum; it is not renormalized by the priced weight, so a
    missing asset counts as a zero return for its weight.
    """

    def __init__(self, previous_points: float):
        self.previous_points = previous_points
        self.weighted_return = 0.0
        self.total_weight = 0.0
        self.dividend_points = 0.0
        self.dividends_by_ticker: Dict[str, float] = {}

    def add(
        self,
        ticker: str,
        weight: float,
        price_today: float,
        price_yesterday: float,
        dividend: float = 0.0,
    ) -> float:
        """Accumulate one asset and return its raw total return."""
        r = asset_return(price_today, price_yesterday, dividend)
        self.weighted_return += weight * r
        self.total_weight += weight
        if dividend > 0:
            self.dividend_points += dividend_points(
                dividend, price_yesterday, weight, self.previous_points
            )
            self.dividends_by_ticker[ticker] = (
                self.dividends_by_ticker.get(ticker, 0.0) + dividend
            )
        return r

    @property
    def points(self) -> float:
        return compound(self.previous_points, self.weighted_return)

    @property
    def daily_change(self) -> float:
        """Weighted return in percent."""
        return self.weighted_return * 100
