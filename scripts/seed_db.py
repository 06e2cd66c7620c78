import sys
import os
import pandas as pd
from datetime import date

# Add src to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from src.db.session import engine, SessionLocal
from src.db.models.base import Base
from src.db.models.index import IndexDefinition
from src.db.models.ticker import Ticker
from src.db.repositories.index_repo import IndexRepository, IndexCompositionRepository
from src.db.repositories.ticker_repo import TickerRepository

# Expected columns: index_id, ticker, weight, entry_price, entry_date[, dividend_yield, company_name]
REQUIRED_COLUMNS = ["index_id", "ticker", "weight", "entry_price", "entry_date"]


def seed(csv_path: str, name: str = None):
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    if not csv_path:
        return

    if not os.path.exists(csv_path):
        print(f"File not found: {csv_path}")
        return

    print(f"Reading {csv_path}...")
    df = pd.read_csv(csv_path)
    df.columns = df.columns.str.strip()
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        print(f"Missing columns: {missing}")
        return

    db = SessionLocal()
    index_repo = IndexRepository(db)
    composition_repo = IndexCompositionRepository(db)
    ticker_repo = TickerRepository(db)

    for index_id, members in df.groupby("index_id"):
        index_repo.upsert(
            IndexDefinition(
                index_id=index_id,
                name=name or index_id,
                description=f"Total return index {index_id}",
                base_value=100.0,
            )
        )

        total_weight = members["weight"].sum()
        if abs(total_weight - 1.0) > 1e-6:
            print(f"⚠️ Weights of {index_id} sum to {total_weight:.4f}")

        for _, row in members.iterrows():
            symbol = str(row["ticker"]).strip()
            dy = row.get("dividend_yield")
            ticker_repo.upsert(
                Ticker(
                    ticker=symbol,
                    company_name=str(row.get("company_name", symbol)),
                    dividend_yield=None if pd.isna(dy) else float(dy),
                ),
                commit=False,
            )
            composition_repo.upsert_member(
                index_id,
                symbol,
                float(row["weight"]),
                float(row["entry_price"]),
                date.fromisoformat(str(row["entry_date"]).strip()),
                commit=False,
            )
        db.commit()
        print(f"✅ Seeded {index_id} with {len(members)} members")

    db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Create tables and load index compositions from CSV")
    parser.add_argument("csv_file", nargs="?", help="Path to composition CSV")
    parser.add_argument("--name", help="Display name for the index")

    args = parser.parse_args()
    seed(args.csv_file, args.name)
