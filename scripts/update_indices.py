import sys
import os
import logging
from tqdm import tqdm

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.db.session import SessionLocal
from src.db.repositories.index_repo import IndexRepository
from scripts._wiring import build_service


def run(index_ids, offline: bool):
    """Mark every index to market: fill missed days, then compute today."""
    session = SessionLocal()
    service = build_service(session, offline=offline)
    index_ids = index_ids or [i.index_id for i in IndexRepository(session).get_all_indices()]
    today = service.today()
    print(f"Updating {len(index_ids)} indices for {today}")

    failures = {}
    for index_id in tqdm(index_ids, desc="Updating indices"):
        report = service.backfill(index_id)
        if report.errors:
            failures[index_id] = {str(d): msg for d, msg in report.errors.items()}
        if not service.update_points(index_id, today):
            print(f"{index_id}: no point stored for {today}")

    session.close()
    if failures:
        print("❌ Failed days:")
        for index_id, errors in failures.items():
            for day, msg in errors.items():
                print(f"  {index_id} {day}: {msg}")
        return 1
    print("✅ All indices updated")
    return 0


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Scheduled mark-to-market of index point series")
    parser.add_argument("index_ids", nargs="*", help="Indices to update (default: all)")
    parser.add_argument("--offline", action="store_true", help="Use database prices only")
    parser.add_argument("--verbose", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    sys.exit(run(args.index_ids, args.offline))
