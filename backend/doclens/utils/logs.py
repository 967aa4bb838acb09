from database import database
from doclens.models.stats import LogEntry
import logging

logger = logging.getLogger(__name__)

JOB_ERROR_LEVEL = "job-error"


async def create_log_entry(message: str, level: str, db=None) -> str:
    """Persist an operational log record (surfaced to admins). Returns its log_id.

    Never raises: a failure to write the record is only logged.
    """
    if db is None:
        db = database.get_db()

    entry = LogEntry(message=message, level=level)
    try:
        await db.logs.insert_one(entry.model_dump())
        logger.info(f"Log entry created: {level} - {message}")
    except Exception as e:
        logger.error(f"Failed to create log entry: {e}")
    return entry.log_id
