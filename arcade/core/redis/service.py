"""
Redis Service - Core Infrastructure Layer

Purpose
-------
Own the process-wide async Redis client used by the short-lived stores:
the verdict cache, the pity cache and the gacha event stream.

Responsibilities
----------------
- Create and verify (PING) a single `redis.asyncio` client
- Expose it through `RedisService.client()`
- Report reachability through `health_check()`
- Close the connection pool on shutdown

Non-Responsibilities
--------------------
- Key layout and serialisation (owned by each store)
- Translating RedisError into domain errors (owned by each store)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from arcade.core.config.config import Config
from arcade.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisInitializationError(RuntimeError):
    """Raised when the Redis client cannot be created or reached."""


class RedisNotInitializedError(RuntimeError):
    """Raised when the client is requested before initialize()."""


class RedisService:
    """
    Class-level holder for the shared async Redis client.

    Public API
    ----------
    - initialize(url=None) / shutdown()
    - client() -> redis.asyncio.Redis
    - health_check() / is_healthy() / get_status()
    """

    _client: Optional[AsyncRedis] = None
    _init_lock: Optional[asyncio.Lock] = None
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the client and verify it with PING.

        Idempotent. Raises RedisInitializationError when Redis is unreachable.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        async with cls._lock():
            if cls._client is not None:
                return

            redis_url = url or Config.REDIS_URL
            url_scheme = redis_url.split("://")[0] if "://" in redis_url else "unknown"
            start_time = time.monotonic()

            client: AsyncRedis = AsyncRedis.from_url(
                redis_url,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                encoding="utf-8",
                decode_responses=True,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
            )

            try:
                await client.ping()  # type: ignore[misc]
            except (RedisError, OSError) as exc:
                await client.aclose()
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url_scheme,
                    },
                    exc_info=True,
                )
                raise RedisInitializationError(
                    f"Failed to initialize RedisService: {exc}"
                ) from exc

            cls._client = client
            cls._is_healthy = True

            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": url_scheme,
                    "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                    "initialization_time_ms": round(
                        (time.monotonic() - start_time) * 1000, 2
                    ),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call even if not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        await client.aclose()
        logger.info("RedisService shutdown complete")

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """Verify connectivity via PING; never raises."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        start_time = time.monotonic()
        try:
            pong = await cls._client.ping()  # type: ignore[misc]
        except (RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        cls._is_healthy = bool(pong)
        logger.debug(
            "Redis health check",
            extra={
                "healthy": cls._is_healthy,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return cls._is_healthy

    @classmethod
    def is_healthy(cls) -> bool:
        """Return cached health status without performing I/O."""
        return cls._is_healthy

    @classmethod
    def get_status(cls) -> dict[str, Any]:
        return {
            "initialized": cls._client is not None,
            "healthy": cls._is_healthy,
        }

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENT ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the shared Redis client.

        Raises
        ------
        RedisNotInitializedError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RedisNotInitializedError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client
