"""Index module - computes and maintains dividend-adjusted total return index series."""

from .models import DayResult, RealTimeResult, RecomputeReport, AssetPerformance
from .service import IndexService

__all__ = [
    "DayResult",
    "RealTimeResult",
    "RecomputeReport",
    "AssetPerformance",
    "IndexService",
]
