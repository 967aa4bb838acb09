"""
Plausible Analytics client
Read-only: page views (total and per day) and traffic sources for the stats job
"""
import os
import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import httpx

from doclens.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

ANALYTICS_TIMEOUT_SECONDS = float(os.getenv("ANALYTICS_TIMEOUT_SECONDS", "30"))


def views_change_percent(yesterday_views: int, day_before_views: int) -> str:
    """Day-over-day page view change as an integer percent string.

    "0" when either day had no views. Halves round away from zero.
    """
    if yesterday_views == 0 or day_before_views == 0:
        return "0"
    change = Decimal(yesterday_views - day_before_views) / Decimal(day_before_views) * 100
    rounded = change.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return str(int(rounded))


class PlausibleClient:
    """Plausible Stats API (v1) integration."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        site_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = ANALYTICS_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("PLAUSIBLE_API_KEY", "")
        self.site_id = site_id if site_id is not None else os.getenv("PLAUSIBLE_SITE_ID", "")
        self.base_url = (base_url or os.getenv("PLAUSIBLE_BASE_URL") or "https://plausible.io/api").rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        query = {"site_id": self.site_id, **params}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}{path}", params=query, headers=headers)

        if response.status_code != 200:
            logger.error("Plausible API error %s on %s", response.status_code, path)
            raise UpstreamUnavailable(f"HTTP error! Status: {response.status_code}")
        return response.json()

    async def get_total_page_views(self) -> int:
        data = await self._get("/v1/stats/aggregate", {"metrics": "pageviews"})
        return data["results"]["pageviews"]["value"]

    async def get_page_views_for_date(self, day: date) -> int:
        data = await self._get(
            "/v1/stats/aggregate",
            {"period": "day", "date": day.isoformat(), "metrics": "pageviews"},
        )
        return data["results"]["pageviews"]["value"]

    async def get_prev_day_views_change_percent(self, today: date) -> str:
        yesterday = today - timedelta(days=1)
        day_before = today - timedelta(days=2)
        yesterday_views = await self.get_page_views_for_date(yesterday)
        day_before_views = await self.get_page_views_for_date(day_before)
        logger.debug("Page views %s=%s %s=%s", yesterday, yesterday_views, day_before, day_before_views)
        return views_change_percent(yesterday_views, day_before_views)

    async def get_daily_page_views(self, today: date) -> Dict[str, Any]:
        return {
            "total_views": await self.get_total_page_views(),
            "prev_day_views_change_percent": await self.get_prev_day_views_change_percent(today),
        }

    async def get_sources(self) -> List[Dict[str, Any]]:
        """Visitors per traffic source: [{"source": name, "visitors": n}, ...]"""
        data = await self._get(
            "/v1/stats/breakdown",
            {"property": "visit:source", "metrics": "visitors"},
        )
        return data["results"]
