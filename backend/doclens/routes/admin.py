"""DocLens Admin Routes

Endpoints:
- GET /api/admin/stats - Latest daily stats and the last 7 days
- POST /api/admin/jobs/daily-stats/run - Run the daily stats job now
"""

from fastapi import APIRouter, Depends
import logging

from doclens.dependencies import get_daily_stats_job, get_services, require_admin
from doclens.models.stats import AdminStatsResponse
from doclens.services.daily_stats import DailyStatsJob, get_admin_stats
from job_runner import run_daily_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/stats", response_model=AdminStatsResponse)
async def get_daily_stats(admin=Depends(require_admin), services=Depends(get_services)):
    return await get_admin_stats(services.db)


@router.post("/jobs/daily-stats/run")
async def run_daily_stats_now(
    admin=Depends(require_admin),
    job: DailyStatsJob = Depends(get_daily_stats_job),
):
    logger.info(f"Daily stats job triggered manually by {admin.get('user_id')}")
    return await run_daily_stats(job)
