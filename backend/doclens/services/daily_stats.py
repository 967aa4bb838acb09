"""Daily stats aggregation job.

Runs hourly (see server.py scheduler). Each run recomputes today's row:
- user and paid-user counts, with deltas against yesterday's row
- lifetime revenue from Stripe
- page views and traffic sources from Plausible

Failures never propagate: they are recorded in the logs collection with
level ``job-error``.
"""
import re
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from database import database
from doclens.models.stats import AdminStatsResponse, DailyStats, DailyStatsWithSources, PageViewSource
from doclens.models.user import SubscriptionStatus
from doclens.services.analytics_client import PlausibleClient
from doclens.utils.logs import JOB_ERROR_LEVEL, create_log_entry

logger = logging.getLogger(__name__)

WEEKLY_STATS_DAYS = 7

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")


def utc_midnight(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)


def parse_visitors(value: Any) -> int:
    """Visitor counts occasionally arrive as strings; keep the leading integer."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid visitor count: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        raise ValueError(f"Invalid visitor count: {value!r}")
    return int(match.group(1))


class DailyStatsJob:
    def __init__(
        self,
        payment_processor,
        analytics: Optional[PlausibleClient] = None,
        db=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.payment_processor = payment_processor
        self.analytics = analytics or PlausibleClient()
        self.db = db
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    async def run(self) -> Optional[Dict[str, Any]]:
        """Compute and store today's stats. Returns the stored row, or None on failure."""
        today = utc_midnight(self.clock())
        yesterday = today - timedelta(days=1)
        try:
            return await self._calculate(today, yesterday)
        except Exception as e:
            logger.error(f"Error calculating daily stats: {e}")
            await create_log_entry(
                f"Error calculating daily stats: {e}",
                JOB_ERROR_LEVEL,
                db=self._get_db(),
            )
            return None

    async def _calculate(self, today: datetime, yesterday: datetime) -> Dict[str, Any]:
        db = self._get_db()

        yesterdays_stats = await db.daily_stats.find_one({"date": yesterday}, {"_id": 0})
        user_count = await db.users.count_documents({})
        paid_user_count = await db.users.count_documents(
            {"subscription_status": SubscriptionStatus.ACTIVE.value}
        )

        user_delta = user_count
        paid_user_delta = paid_user_count
        if yesterdays_stats:
            user_delta -= yesterdays_stats.get("user_count", 0)
            paid_user_delta -= yesterdays_stats.get("paid_user_count", 0)

        total_revenue = await self.payment_processor.fetch_total_revenue(db)
        page_views = await self.analytics.get_daily_page_views(today.date())

        now = datetime.now(timezone.utc)
        fields = {
            "total_views": page_views["total_views"],
            "prev_day_views_change_percent": page_views["prev_day_views_change_percent"],
            "user_count": user_count,
            "paid_user_count": paid_user_count,
            "user_delta": user_delta,
            "paid_user_delta": paid_user_delta,
            "total_revenue": total_revenue,
            "updated_at": now,
        }
        new_row = DailyStats(date=today, created_at=now)
        await db.daily_stats.update_one(
            {"date": today},
            {
                "$set": fields,
                "$setOnInsert": {"stats_id": new_row.stats_id, "created_at": now},
            },
            upsert=True,
        )
        daily_stats = await db.daily_stats.find_one({"date": today}, {"_id": 0})

        sources = await self.analytics.get_sources()
        for source in sources:
            visitors = parse_visitors(source.get("visitors"))
            await db.page_view_sources.update_one(
                {"date": today, "name": source["source"]},
                {
                    "$set": {"visitors": visitors},
                    "$setOnInsert": {"daily_stats_id": daily_stats["stats_id"]},
                },
                upsert=True,
            )

        logger.info(
            "Daily stats for %s: users=%s (+%s) paid=%s (+%s) revenue=%s views=%s sources=%s",
            today.date(), user_count, user_delta, paid_user_count, paid_user_delta,
            total_revenue, fields["total_views"], len(sources),
        )
        return daily_stats


async def get_admin_stats(db=None) -> AdminStatsResponse:
    """Latest daily stats plus the last week, newest first, each with its sources."""
    if db is None:
        db = database.get_db()

    rows = await db.daily_stats.find({}, {"_id": 0}).sort("date", -1).limit(WEEKLY_STATS_DAYS).to_list(WEEKLY_STATS_DAYS)
    if not rows:
        logger.info("No daily stats have been generated by the daily stats job yet")
        return AdminStatsResponse()

    weekly: List[DailyStatsWithSources] = []
    for row in rows:
        sources = await db.page_view_sources.find(
            {"daily_stats_id": row.get("stats_id")}, {"_id": 0}
        ).to_list(100)
        weekly.append(DailyStatsWithSources(
            **row,
            sources=[PageViewSource(**s) for s in sources],
        ))

    return AdminStatsResponse(daily_stats=weekly[0], weekly_stats=weekly)
