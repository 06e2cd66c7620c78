from sqlalchemy import Column, String, DateTime, func, Float
from .base import Base

class Ticker(Base):
    __tablename__ = "tickers"

    ticker = Column(String(20), primary_key=True)
    company_name = Column(String(255))
    exchange = Column(String(50))
    sector = Column(String(100))
    # Trailing dividend yield as a fraction (0.065 == 6.5%)
    dividend_yield = Column(Float, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
