import sys
import os
import pandas as pd

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.db.session import SessionLocal
from scripts._wiring import build_service


def show(index_id: str, offline: bool):
    session = SessionLocal()
    service = build_service(session, offline=offline)

    rt = service.get_real_time_return(index_id)
    if rt is None:
        print(f"No real-time data for {index_id}")
    else:
        state = "open" if rt.is_market_open else "closed"
        print(f"{index_id}: {rt.real_time_points:.2f} pts ({rt.daily_change:+.2f}% today, market {state})")
        print(f"Since base: {rt.real_time_return:+.2f}%  |  last close {rt.last_official_points:.2f} on {rt.last_official_date}")
        if rt.last_session_daily_change is not None:
            print(f"Last session change: {rt.last_session_daily_change:+.2f}%")

    dy = service.calculate_current_yield(index_id)
    if dy is not None:
        print(f"Current yield: {dy:.2f}%")

    performance = service.list_all_assets_performance(index_id)
    if performance:
        df = pd.DataFrame([p.model_dump() for p in performance])
        cols = ["ticker", "status", "entry_date", "days_in_index", "average_weight",
                "contribution_to_index", "total_return"]
        print("\nAsset performance:")
        print(df[cols].to_string(index=False))

    session.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Show real-time level and asset performance of an index")
    parser.add_argument("index_id")
    parser.add_argument("--offline", action="store_true", help="Use database prices only")

    args = parser.parse_args()
    show(args.index_id, args.offline)
