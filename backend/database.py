from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
import os
import logging
from pathlib import Path
from contextlib import asynccontextmanager

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

    async def connect(self):
        try:
            mongo_url = os.environ['MONGO_URL']
            self.client = AsyncIOMotorClient(mongo_url, tz_aware=True)
            self.db = self.client[os.environ['DB_NAME']]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {os.environ['DB_NAME']}")

            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_db(self):
        return self.db

    async def _create_indexes(self):
        """Create MongoDB indexes; the unique ones back the data invariants."""
        try:
            await self.db.users.create_index("user_id", unique=True)
            await self.db.users.create_index("email", unique=True)
            # Stripe customer id is the webhook join key; absent until first checkout
            await self.db.users.create_index("payment_processor_user_id", unique=True, sparse=True)
            await self.db.users.create_index("subscription_status")

            # One stats row per UTC day, one source row per (day, source)
            await self.db.daily_stats.create_index("date", unique=True)
            await self.db.page_view_sources.create_index([("date", 1), ("name", 1)], unique=True)
            await self.db.page_view_sources.create_index("daily_stats_id")

            await self.db.logs.create_index([("level", 1), ("created_at", -1)])

            # Stripe webhook idempotency - duplicate event_id must not process twice
            await self.db.stripe_events.create_index("event_id", unique=True)
            await self.db.revenue_ledger.create_index("ledger_id", unique=True)

            await self.db.files.create_index("key", unique=True)
            await self.db.files.create_index([("user_id", 1), ("created_at", -1)])
            logger.info("MongoDB indexes created/verified")
        except Exception as e:
            # Indexes may already exist, log but don't fail
            logger.warning(f"Index creation note: {e}")

# Global database instance
database = Database()

@asynccontextmanager
async def get_db_context():
    """Context manager for standalone scripts to access the database.

    Usage in scripts:
        async with get_db_context() as db:
            await db.users.count_documents({})
    """
    client = None
    try:
        mongo_url = os.environ['MONGO_URL']
        db_name = os.environ['DB_NAME']
        client = AsyncIOMotorClient(mongo_url, tz_aware=True)
        db = client[db_name]
        await db.command("ping")
        logger.info(f"Script connected to MongoDB: {db_name}")
        yield db
    finally:
        if client:
            client.close()
            logger.info("Script MongoDB connection closed")
