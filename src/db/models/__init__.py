from .base import Base
from .ticker import Ticker
from .index import IndexDefinition, IndexComposition, IndexHistoryPoint
from .market_data import DailyPrice, DividendEvent
