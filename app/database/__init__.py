import logging
from app.core.config import settings
from .mongodb import init_mongodb, close_mongo_connection, check_mongo_connection, get_database
from .redis import init_redis, close_redis, check_redis_connection, get_redis

logger = logging.getLogger(__name__)


async def init_databases():
    """Initialize MongoDB (and Redis when the backplane is enabled)"""
    try:
        await init_mongodb()
        logger.info("MongoDB initialization completed")

        if settings.backplane_enabled:
            await init_redis()
            logger.info("Redis initialization completed")

        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_mongo_connection()
        if settings.backplane_enabled:
            await close_redis()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


async def check_database_health():
    """Check health of all database connections"""
    mongo_status = await check_mongo_connection()
    redis_status = await check_redis_connection() if settings.backplane_enabled else None

    return {
        "mongodb": mongo_status,
        "redis": redis_status,
        "overall": mongo_status and redis_status is not False
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_database",
    "get_redis",
]
