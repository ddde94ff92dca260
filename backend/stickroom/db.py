# stickroom/db.py

import functools
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
import redis.asyncio as redis  # redis-py公式の非同期クライアント

from .config import MONGODB_URI, MONGO_DB_NAME, REDIS_URI
from .errors import GatewayError

logger = logging.getLogger(__name__)

# MongoDB
_mongo_client = AsyncIOMotorClient(MONGODB_URI)
db = _mongo_client[MONGO_DB_NAME]

# Redis (presence)
redis_client = redis.from_url(REDIS_URI, decode_responses=True)

def get_db():
    return db

def get_redis():
    return redis_client


def backend_call(fn):
    """Surface driver failures from a repository method as `GatewayError` (no retry)."""
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            logger.error("%s failed: %s", fn.__qualname__, e)
            raise GatewayError(f"Backend unavailable: {e}") from e
    return wrapper
