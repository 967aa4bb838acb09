"""
Daily stats job: counts and deltas against yesterday's row, upsert of today's
row and its traffic sources, and failure capture into the logs collection.
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from doclens.services.daily_stats import DailyStatsJob, get_admin_stats, parse_visitors, utc_midnight
from fakes import FakeDatabase, make_user

NOW = datetime(2026, 5, 10, 14, 30, tzinfo=timezone.utc)
TODAY = datetime(2026, 5, 10, tzinfo=timezone.utc)
YESTERDAY = datetime(2026, 5, 9, tzinfo=timezone.utc)


def _job(db, revenue=42.5, sources=None, page_views=None):
    processor = MagicMock()
    processor.fetch_total_revenue = AsyncMock(return_value=revenue)
    analytics = MagicMock()
    analytics.get_daily_page_views = AsyncMock(
        return_value=page_views or {"total_views": 1200, "prev_day_views_change_percent": "15"}
    )
    analytics.get_sources = AsyncMock(
        return_value=sources if sources is not None else [
            {"source": "Google", "visitors": 30},
            {"source": "Direct / None", "visitors": "12"},
        ]
    )
    job = DailyStatsJob(processor, analytics=analytics, db=db, clock=lambda: NOW)
    return job, processor, analytics


def _db_with_users(total, active):
    db = FakeDatabase()
    for i in range(total):
        db.users.docs.append(make_user(
            email=f"user{i}@example.com",
            subscription_status="active" if i < active else None,
        ))
    return db


def test_utc_midnight():
    assert utc_midnight(NOW) == TODAY


@pytest.mark.parametrize("raw,expected", [(5, 5), (7.0, 7), ("12", 12), ("8 visitors", 8), (" 3", 3)])
def test_parse_visitors(raw, expected):
    assert parse_visitors(raw) == expected


def test_parse_visitors_rejects_garbage():
    with pytest.raises(ValueError):
        parse_visitors("lots")


def test_first_run_without_prior_day_delta_equals_count():
    db = _db_with_users(total=5, active=2)
    job, processor, _ = _job(db)

    stats = asyncio.run(job.run())

    assert stats["date"] == TODAY
    assert stats["user_count"] == 5
    assert stats["user_delta"] == 5
    assert stats["paid_user_count"] == 2
    assert stats["paid_user_delta"] == 2
    assert stats["total_revenue"] == 42.5
    assert stats["total_views"] == 1200
    assert stats["prev_day_views_change_percent"] == "15"
    processor.fetch_total_revenue.assert_awaited_once_with(db)


def test_deltas_against_yesterday():
    db = _db_with_users(total=8, active=3)
    db.daily_stats.docs.append({"stats_id": "DST-Y", "date": YESTERDAY, "user_count": 6, "paid_user_count": 4})
    job, _, _ = _job(db)

    stats = asyncio.run(job.run())

    assert stats["user_delta"] == 2
    assert stats["paid_user_delta"] == -1


def test_rerun_same_day_updates_single_row():
    db = _db_with_users(total=1, active=0)
    job, _, _ = _job(db, revenue=10.0)
    first = asyncio.run(job.run())

    db.users.docs.append(make_user(email="late@example.com"))
    job.payment_processor.fetch_total_revenue = AsyncMock(return_value=11.0)
    second = asyncio.run(job.run())

    assert len(db.daily_stats.docs) == 1
    assert second["stats_id"] == first["stats_id"]
    assert second["user_count"] == 2
    assert second["total_revenue"] == 11.0


def test_sources_upserted_per_day_and_name():
    db = _db_with_users(total=1, active=0)
    job, _, analytics = _job(db)
    stats = asyncio.run(job.run())

    analytics.get_sources = AsyncMock(return_value=[{"source": "Google", "visitors": 45}])
    asyncio.run(job.run())

    rows = {r["name"]: r for r in db.page_view_sources.docs}
    assert set(rows) == {"Google", "Direct / None"}
    assert rows["Google"]["visitors"] == 45
    assert rows["Direct / None"]["visitors"] == 12
    assert all(r["daily_stats_id"] == stats["stats_id"] for r in rows.values())
    assert all(r["date"] == TODAY for r in rows.values())


def test_failure_is_logged_not_raised():
    db = _db_with_users(total=1, active=0)
    job, processor, _ = _job(db)
    processor.fetch_total_revenue = AsyncMock(side_effect=RuntimeError("Stripe is down"))

    assert asyncio.run(job.run()) is None

    assert db.daily_stats.docs == []
    assert len(db.logs.docs) == 1
    log = db.logs.docs[0]
    assert log["level"] == "job-error"
    assert log["message"] == "Error calculating daily stats: Stripe is down"


def test_admin_stats_latest_plus_week_newest_first():
    db = FakeDatabase()
    for day in range(1, 10):
        db.daily_stats.docs.append({
            "stats_id": f"DST-{day}",
            "date": datetime(2026, 5, day, tzinfo=timezone.utc),
            "user_count": day,
        })
    db.page_view_sources.docs.append({
        "date": datetime(2026, 5, 9, tzinfo=timezone.utc), "name": "Google", "visitors": 3, "daily_stats_id": "DST-9",
    })

    result = asyncio.run(get_admin_stats(db))

    assert result.daily_stats.stats_id == "DST-9"
    assert [s.stats_id for s in result.weekly_stats] == [f"DST-{d}" for d in range(9, 2, -1)]
    assert [s.name for s in result.daily_stats.sources] == ["Google"]


def test_admin_stats_empty():
    result = asyncio.run(get_admin_stats(FakeDatabase()))
    assert result.daily_stats is None
    assert result.weekly_stats == []
