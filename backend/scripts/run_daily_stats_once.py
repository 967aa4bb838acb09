"""
Run the daily stats job once, outside the API process.

Usage (from backend/):
  python -m scripts.run_daily_stats_once
"""
import asyncio
import sys
from pathlib import Path

# Ensure backend root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


async def main():
    from database import get_db_context
    from doclens.services.daily_stats import DailyStatsJob
    from doclens.services.payment_processor import build_payment_processor
    from job_runner import run_daily_stats

    processor = build_payment_processor()
    await processor.start()
    try:
        async with get_db_context() as db:
            result = await run_daily_stats(DailyStatsJob(processor, db=db))
            print(result["message"])
    finally:
        await processor.close()


if __name__ == "__main__":
    asyncio.run(main())
