"""Storage layer - PostgreSQL pool and Redis cache."""

from hubrelay.storage.cache import RedisCache
from hubrelay.storage.database import Database

__all__ = ["Database", "RedisCache"]
