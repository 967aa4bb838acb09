"""
Shared job runner for scheduled background jobs.
Used by server (scheduler) and admin (manual run).
Each run_* returns a dict with "message" for the admin toast.
"""
import logging

logger = logging.getLogger(__name__)


async def run_daily_stats(job=None):
    """Recompute today's daily stats.

    Failures are recorded by the job itself in the logs collection, so this
    only reports whether a row was written.
    """
    if job is None:
        from server import app
        job = app.state.services.daily_stats_job

    stats = await job.run()
    if stats is None:
        logger.warning("Daily stats job completed with errors (see logs collection)")
        return {"message": "Daily stats job failed; see job-error logs", "ok": False}

    logger.info(f"Daily stats job completed for {stats.get('date')}")
    return {"message": f"Daily stats updated for {stats.get('date')}", "ok": True}
