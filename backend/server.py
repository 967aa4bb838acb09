from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pymongo.errors import DuplicateKeyError
import uuid
from contextlib import asynccontextmanager
from database import database

from doclens.dependencies import build_services
from doclens.errors import DocLensError, PersistenceConflict
from doclens.routes import all_routers
from doclens.services.plan_registry import plan_registry

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.mongodb import MongoDBJobStore

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DAILY_STATS_CRON = "0 * * * *"

# Import job runners from shared module (used by scheduler and admin run-now)
from job_runner import run_daily_stats


def build_scheduler() -> AsyncIOScheduler:
    """Scheduler with MongoDB job store for persistence (jobs survive restarts)."""
    mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
    db_name = os.environ.get('DB_NAME', 'doclens')

    jobstores = {}
    try:
        from pymongo import MongoClient
        jobstores['default'] = MongoDBJobStore(
            database=db_name,
            collection='scheduled_jobs',
            client=MongoClient(mongo_url)
        )
        logger.info(f"MongoDB job store configured: {db_name}.scheduled_jobs")
    except Exception as e:
        logger.warning(f"Failed to configure MongoDB job store, using memory store: {e}")
        jobstores = {}

    scheduler = AsyncIOScheduler(jobstores=jobstores)

    # Daily stats - recomputed every hour on the hour; one run at a time
    scheduler.add_job(
        run_daily_stats,
        CronTrigger.from_crontab(DAILY_STATS_CRON, timezone="UTC"),
        id="daily_stats",
        name="Daily Stats Aggregation",
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )
    return scheduler


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting DocLens API")
    await database.connect()

    services = build_services(database.get_db())
    await services.payment_processor.start()

    # Stripe price ids in use (never secret keys)
    for plan_id, price_id in plan_registry.get_price_mappings().items():
        logger.info("Stripe price ID plan=%s price_id=%s", plan_id, price_id or "(missing)")

    services.scheduler = build_scheduler()
    services.scheduler.start()
    logger.info("Background job scheduler started")

    app.state.services = services

    yield

    # Shutdown
    logger.info("Shutting down DocLens API")
    services.scheduler.shutdown(wait=False)
    logger.info("Background job scheduler stopped")
    await services.payment_processor.close()
    await services.chatbot.close()
    await database.close()

# Create FastAPI app
app = FastAPI(
    title="DocLens API",
    description="Document analysis SaaS - billing, credits and usage statistics",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
for router in all_routers:
    app.include_router(router)

# Root endpoint
@app.get("/api")
async def root():
    return {
        "service": "DocLens API",
        "version": "1.0.0",
        "status": "operational"
    }

# Health check
@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development")
    }


@app.exception_handler(DocLensError)
async def doclens_exception_handler(request: Request, exc: DocLensError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_exception_handler(request: Request, exc: DuplicateKeyError):
    logger.error(f"Duplicate key on {request.url.path}: {exc}")
    conflict = PersistenceConflict()
    return JSONResponse(status_code=conflict.status_code, content={"error": conflict.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


# Validation error handler: log request_id + errors (loc path)
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = str(uuid.uuid4())
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    logger.warning(
        "Request validation failed request_id=%s path=%s errors=%s",
        request_id, request.url.path, errors,
    )
    return JSONResponse(
        status_code=422,
        content={"error": "VALIDATION_FAILED", "detail": errors, "request_id": request_id},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8001,
        reload=os.getenv("ENVIRONMENT") == "development"
    )
