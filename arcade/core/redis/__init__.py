"""Redis infrastructure: the shared async client."""

from arcade.core.redis.service import (
    RedisInitializationError,
    RedisNotInitializedError,
    RedisService,
)

__all__ = ["RedisService", "RedisInitializationError", "RedisNotInitializedError"]
