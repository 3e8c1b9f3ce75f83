"""
Database Service - Core Infrastructure Layer

Purpose
-------
Own the process-wide async SQLAlchemy engine behind every durable store of
the arcade backend: catalogue, wallets, game and pull history, pity
counters and the leaderboard.

Responsibilities
----------------
- Build one AsyncEngine from `Config` (or an explicit URL) with a pool that
  fits the URL and environment
- Hand out read sessions (`get_session`) and write transactions
  (`get_transaction`: commit on success, rollback on any exception)
- Create / drop the schema for development databases and tests
- Report reachability through `health_check()`

Non-Responsibilities
--------------------
- Translating driver errors into `StoreUnavailable` (see
  `arcade.modules.shared.store_errors`)
- Migrations

Pool selection
--------------
=====================================  ======================
URL / environment                      Pool
=====================================  ======================
in-memory SQLite                       StaticPool (one shared connection)
ENVIRONMENT=testing                    NullPool
anything else                          AsyncAdaptedQueuePool + pre-ping
=====================================  ======================

Usage
-----
>>> await DatabaseService.initialize()
>>> async with DatabaseService.get_transaction() as session:
...     wallet = await session.get(PlayerWallet, player_id, with_for_update=True)
...     wallet.coin -= price
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool

from arcade.core.config.config import Config
from arcade.core.database.base import Base
from arcade.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """DATABASE_URL missing or the engine could not be built."""


class DatabaseNotInitializedError(RuntimeError):
    """A session was requested before `initialize()` or after `shutdown()`."""


# ============================================================================
# Engine settings
# ============================================================================


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


@dataclass(frozen=True)
class EngineSettings:
    url: str
    pool_class: Type[Pool]
    echo: bool = False
    pool_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, url: Optional[str] = None) -> "EngineSettings":
        database_url = url or getattr(Config, "DATABASE_URL", None)
        if not isinstance(database_url, str) or not database_url:
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if _is_memory_sqlite(database_url):
            return cls(database_url, StaticPool, Config.DATABASE_ECHO)
        if Config.is_testing():
            return cls(database_url, NullPool, Config.DATABASE_ECHO)
        return cls(
            database_url,
            AsyncAdaptedQueuePool,
            Config.DATABASE_ECHO,
            {
                "pool_size": Config.DATABASE_POOL_SIZE,
                "max_overflow": Config.DATABASE_MAX_OVERFLOW,
                "pool_recycle": Config.DATABASE_POOL_RECYCLE,
                "pool_timeout": Config.DATABASE_POOL_TIMEOUT,
                "pool_pre_ping": True,
            },
        )

    @property
    def backend(self) -> str:
        return self.url.split(":", 1)[0]

    def build_engine(self) -> AsyncEngine:
        return create_async_engine(
            self.url, echo=self.echo, poolclass=self.pool_class, **self.pool_options
        )


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Class-level holder for the engine and session factory.

    Public API
    ----------
    - initialize(url=None) / shutdown() / is_initialized()
    - get_session() / get_transaction()
    - create_schema() / drop_schema()
    - health_check() / get_status()
    """

    _engine: Optional[AsyncEngine] = None
    _sessions: Optional[async_sessionmaker[AsyncSession]] = None
    _settings: Optional[EngineSettings] = None
    _init_lock: Optional[asyncio.Lock] = None
    _transactions: int = 0
    _rollbacks: int = 0

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Build the engine. Idempotent.

        Raises
        ------
        DatabaseInitializationError
            Missing URL or engine construction failure.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            settings = EngineSettings.from_config(url)
            try:
                engine = settings.build_engine()
            except (SQLAlchemyError, ImportError, ValueError) as exc:
                logger.critical(
                    "DatabaseService initialization failed",
                    extra={"backend": settings.backend, "error": str(exc)},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._engine = engine
            cls._sessions = async_sessionmaker(
                bind=engine, class_=AsyncSession, expire_on_commit=False
            )
            cls._settings = settings
            cls._transactions = 0
            cls._rollbacks = 0

            logger.info(
                "DatabaseService initialized",
                extra={
                    "backend": settings.backend,
                    "pool_class": settings.pool_class.__name__,
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine; safe to call when not initialized."""
        async with cls._lock():
            engine = cls._engine
            cls._engine = None
            cls._sessions = None
            cls._settings = None
            if engine is None:
                return
            await engine.dispose()
            logger.info(
                "DatabaseService shutdown complete",
                extra={"transactions": cls._transactions, "rollbacks": cls._rollbacks},
            )

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService.initialize() must be awaited before use"
            )
        return cls._engine

    @classmethod
    def _require_sessions(cls) -> async_sessionmaker[AsyncSession]:
        cls._require_engine()
        assert cls._sessions is not None
        return cls._sessions

    # ═══════════════════════════════════════════════════════════════════════
    # SCHEMA
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on `Base.metadata`."""
        engine = cls._require_engine()
        # Model modules register their tables on import.
        import arcade.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", extra={"tables": len(Base.metadata.tables)})

    @classmethod
    async def drop_schema(cls) -> None:
        engine = cls._require_engine()
        import arcade.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ═══════════════════════════════════════════════════════════════════════
    # SESSIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session without transaction management; use for reads."""
        async with cls._require_sessions()() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session inside a transaction: commits when the block exits normally,
        rolls back and re-raises otherwise.
        """
        factory = cls._require_sessions()
        start = time.perf_counter()

        async with factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException as exc:
                await session.rollback()
                cls._rollbacks += 1
                log = logger.error if isinstance(exc, DBAPIError) else logger.debug
                log(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    },
                )
                raise
            cls._transactions += 1

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """`SELECT 1`; never raises."""
        if cls._engine is None:
            return False
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        return True

    @classmethod
    def get_status(cls) -> Dict[str, Any]:
        settings = cls._settings
        return {
            "initialized": cls._engine is not None,
            "backend": settings.backend if settings else None,
            "pool_class": settings.pool_class.__name__ if settings else None,
            "transactions": cls._transactions,
            "rollbacks": cls._rollbacks,
        }
