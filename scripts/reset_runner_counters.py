#!/usr/bin/env python3
"""
Script to reset runner completion counters by hand.

The same resets normally run from Cloud Scheduler through the /jobs routes.
Use this when a scheduled run was missed.

Usage:
    # Reset today's completed orders for every runner
    python scripts/reset_runner_counters.py daily

    # Reset the monthly completed orders for every runner
    python scripts/reset_runner_counters.py monthly
"""

import argparse
import asyncio
import os
import sys

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.dependencies.services import get_counter_service
from src.shared.exceptions import AutomationError


async def main(period: str):
    print("=" * 80)
    print(f"RESET RUNNER COUNTERS ({period.upper()})")
    print("=" * 80)
    print()

    counters = get_counter_service()
    try:
        if period == "daily":
            result = await counters.reset_daily_completed()
        else:
            result = await counters.reset_monthly_completed()
    except AutomationError as e:
        print(f"❌ Reset failed: {e}")
        sys.exit(1)

    if not result.runners_reset:
        print("✅ No runners found, nothing to reset.")
        return

    print(f"✅ Reset {result.counter} for {result.runners_reset} runners")
    for runner_id in result.runner_ids:
        print(f"    - {runner_id}")
    print()
    print("=" * 80)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Reset runner completion counters.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/reset_runner_counters.py daily
  python scripts/reset_runner_counters.py monthly
        """,
    )
    parser.add_argument(
        "period",
        choices=["daily", "monthly"],
        help="Which counter to reset.",
    )

    args = parser.parse_args()

    try:
        asyncio.run(main(args.period))
    except KeyboardInterrupt:
        print("\n\n⚠️  Counter reset interrupted by user")
        sys.exit(1)
