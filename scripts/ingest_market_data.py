import sys
import os
from datetime import date, timedelta
from tqdm import tqdm

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.db.session import SessionLocal
from src.db.repositories.index_repo import IndexRepository, IndexCompositionRepository
from src.db.repositories.market_repo import DailyPriceRepository, DividendRepository
from src.providers.yahoo.client import YFinanceProvider


def ingest(days: int, symbol_suffix: str):
    """Store Yahoo daily closes and new dividend events for every index member."""
    session = SessionLocal()
    provider = YFinanceProvider(symbol_suffix=symbol_suffix)
    prices = DailyPriceRepository(session)
    dividends = DividendRepository(session)
    composition_repo = IndexCompositionRepository(session)

    tickers = sorted({
        t
        for idx in IndexRepository(session).get_all_indices()
        for t in composition_repo.get_tickers(idx.index_id)
    })
    print(f"Found {len(tickers)} tickers across all indices")

    end = date.today()
    start = end - timedelta(days=days)
    closes = 0
    events = 0

    for ticker in tqdm(tickers, desc="Ingesting market data"):
        try:
            hist = provider.get_history(ticker, start, end + timedelta(days=1))
            for ts, row in hist.iterrows():
                prices.upsert_close(ticker, ts.date(), float(row["Close"]), source="yahoo", commit=False)
                closes += 1

            known = {(e.ticker, e.ex_date) for e in dividends.list_between([ticker], start, end)}
            for record in provider.list_dividends([ticker], start, end):
                if (record.ticker, record.ex_date) not in known:
                    dividends.add_event(record.ticker, record.ex_date, record.amount, source="yahoo", commit=False)
                    events += 1
            session.commit()
        except Exception as e:
            session.rollback()
            print(f"Error ingesting {ticker}: {e}")

    print(f"✅ Stored {closes} closes and {events} new dividend events")
    session.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Load Yahoo closes and dividends into the database")
    parser.add_argument("--days", type=int, default=30, help="History window in calendar days")
    parser.add_argument("--suffix", default=".SA", help="Yahoo exchange suffix")

    args = parser.parse_args()
    ingest(args.days, args.suffix)
