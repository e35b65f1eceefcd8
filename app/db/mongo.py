import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    mongodb.client = AsyncIOMotorClient(
        settings.MONGODB_URI,
        serverSelectionTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms
    )
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB", extra={"database": settings.MONGODB_DB})

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Split bill indexes
    await db["split_bills"].create_index([("group_id", 1), ("created_at", -1)])
    await db["split_bills"].create_index([("created_by", 1), ("created_at", -1)])
    await db["split_bills"].create_index("participants.user_id")

    # Reminder indexes: the due sweep scans unsent reminders by schedule
    await db["reminders"].create_index([("sent_at", 1), ("scheduled_for", 1)])
    await db["reminders"].create_index([("user_id", 1), ("scheduled_for", -1)])
    await db["reminders"].create_index("split_bill_id")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
