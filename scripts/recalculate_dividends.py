import sys
import os
import logging
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.db.session import SessionLocal
from scripts._wiring import build_service


def run(index_id: str, start_date, check_only: bool):
    session = SessionLocal()
    service = build_service(session, offline=True)

    pending = service.check_pending_dividends(index_id)
    print(f"Pending dividend events for {index_id}: {len(pending)}")
    for p in pending:
        print(f"  {p.ex_date} {p.ticker} {p.amount:.4f}")

    if check_only:
        session.close()
        return 0

    report = service.recalculate_with_dividends(index_id, start_date)
    print(f"\nRecalculated: {report.recalculated}")
    print(f"New dividend events: {report.dividends_found}")
    for change in report.changes:
        if abs(change.new_points - change.old_points) > 1e-9:
            print(f"  {change.date}: {change.old_points:.4f} -> {change.new_points:.4f}")
    for error in report.errors:
        print(f"  ❌ {error}")
    if report.halted_at:
        print(f"Halted at {report.halted_at}")

    session.close()
    return 0 if report.success else 1


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Recompute an index series with current dividend data")
    parser.add_argument("index_id")
    parser.add_argument("--start", type=date.fromisoformat, help="First date to recompute (YYYY-MM-DD)")
    parser.add_argument("--check", action="store_true", help="Only list pending dividends")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    sys.exit(run(args.index_id, args.start, args.check))
