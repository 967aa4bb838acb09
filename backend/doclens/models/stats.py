"""Daily statistics models.

One DailyStats document per UTC day (keyed by its midnight), one
PageViewSource per (day, traffic source) pair.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timezone
import uuid


class DailyStats(BaseModel):
    stats_id: str = Field(default_factory=lambda: f"DST-{uuid.uuid4().hex[:12].upper()}")
    date: datetime  # UTC midnight

    total_views: int = 0
    prev_day_views_change_percent: str = "0"
    user_count: int = 0
    paid_user_count: int = 0
    user_delta: int = 0
    paid_user_delta: int = 0
    total_revenue: float = 0

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "ignore"}


class PageViewSource(BaseModel):
    date: datetime
    name: str
    visitors: int
    daily_stats_id: Optional[str] = None

    model_config = {"extra": "ignore"}


class LogEntry(BaseModel):
    """Persistent operational log record (job failures)."""
    log_id: str = Field(default_factory=lambda: f"LOG-{uuid.uuid4().hex[:12].upper()}")
    message: str
    level: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "ignore"}


class DailyStatsWithSources(DailyStats):
    sources: List[PageViewSource] = Field(default_factory=list)


class AdminStatsResponse(BaseModel):
    daily_stats: Optional[DailyStatsWithSources] = None
    weekly_stats: List[DailyStatsWithSources] = Field(default_factory=list)
