"""
Service Container
=================

Purpose
-------
Builds the store implementations, game services and background workers of
one arcade process and owns their lifecycle.

Responsibilities
----------------
- Wire SQL stores over `DatabaseService` and Redis stores over `RedisService`
- Build the session, leaderboard and whack-a-mole services with a shared
  `WeightedSampler`
- Build the protocol dispatcher over those services
- Start and stop the background workers (history consumer, leaderboard
  materialiser)

Non-Responsibilities
--------------------
- Infrastructure initialization order (owned by `arcade.main`)
- Business rules

Architecture Notes
------------------
- Every domain service follows the same trailing constructor arguments:
  (config_manager, event_bus, logger)
- Stores take the `DatabaseService` class and a Redis client factory so tests
  can build a container over an in-memory database
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Type

from arcade.core.config.manager import ConfigManager
from arcade.core.database.service import DatabaseService
from arcade.core.logging.logger import get_logger
from arcade.core.redis.service import RedisService
from arcade.modules.claw import (
    CatchOracle,
    RedisVerdictCache,
    SpawnEngine,
    SqlClawRepository,
)
from arcade.modules.gacha import (
    GachaEngine,
    GachaHistoryConsumer,
    PityStateManager,
    RedisGachaEventStream,
    RedisPityCache,
    SqlGachaRepository,
    SqlPityStore,
)
from arcade.modules.leaderboard import (
    LeaderboardMaterialiser,
    LeaderboardService,
    SqlLeaderboardStore,
)
from arcade.modules.session import ClawSessionService, GachaSessionService
from arcade.modules.shared.sampler import WeightedSampler
from arcade.modules.wallet import SqlWalletStore
from arcade.modules.whackamole import SqlMoleWeightStore, WhackAMoleService
from arcade.protocol.dispatcher import ProtocolDispatcher

if TYPE_CHECKING:
    from logging import Logger

    from redis.asyncio.client import Redis as AsyncRedis

    from arcade.core.event.bus import EventBus

logger = get_logger(__name__)


class ServiceContainer:
    """
    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        container.initialize()
        await container.start_workers()
        response = await container.dispatcher.handle(raw)
        await container.shutdown()
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
        database_service: Type[DatabaseService] = DatabaseService,
        redis_client_factory: Callable[[], AsyncRedis] = RedisService.client,
        sampler: Optional[WeightedSampler] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._db = database_service
        self._redis = redis_client_factory
        self._sampler = sampler

        self._claw: Optional[ClawSessionService] = None
        self._gacha: Optional[GachaSessionService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._whackamole: Optional[WhackAMoleService] = None
        self._dispatcher: Optional[ProtocolDispatcher] = None
        self._consumer: Optional[GachaHistoryConsumer] = None
        self._materialiser: Optional[LeaderboardMaterialiser] = None

        self._initialized = False
        self._workers_started = False
        self._init_duration: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        sampler = self._sampler or WeightedSampler()
        self._sampler = sampler
        config = self._config_manager

        wallet = SqlWalletStore(self._db)
        claw_repository = SqlClawRepository(self._db)
        gacha_repository = SqlGachaRepository(self._db)

        pity = PityStateManager(
            store=SqlPityStore(self._db),
            cache=RedisPityCache(
                self._redis,
                ttl_seconds=int(config.get("pity_cache.ttl_seconds", 300)),
            ),
        )
        stream = RedisGachaEventStream(
            str(config.get("stream_consumer.stream_key", "gacha:history")),
            self._redis,
        )

        self._claw = ClawSessionService(
            catalogue=claw_repository,
            wallet=wallet,
            history=claw_repository,
            result_cache=RedisVerdictCache(self._redis),
            oracle=CatchOracle(sampler, claw_repository),
            spawn_engine=SpawnEngine(sampler),
            config_manager=config,
            event_bus=self._event_bus,
            logger=get_logger("arcade.modules.session.claw_service.ClawSessionService"),
        )
        self._gacha = GachaSessionService(
            catalogue=gacha_repository,
            wallet=wallet,
            history=gacha_repository,
            pity=pity,
            engine=GachaEngine(sampler),
            event_stream=stream,
            config_manager=config,
            event_bus=self._event_bus,
            logger=get_logger("arcade.modules.session.gacha_service.GachaSessionService"),
        )
        self._leaderboard = LeaderboardService(
            store=SqlLeaderboardStore(self._db),
            config_manager=config,
            event_bus=self._event_bus,
            logger=get_logger("arcade.modules.leaderboard.service.LeaderboardService"),
        )
        self._whackamole = WhackAMoleService(
            store=SqlMoleWeightStore(self._db),
            sampler=sampler,
            config_manager=config,
            event_bus=self._event_bus,
            logger=get_logger("arcade.modules.whackamole.service.WhackAMoleService"),
        )

        self._dispatcher = ProtocolDispatcher(
            claw_service=self._claw,
            gacha_service=self._gacha,
            leaderboard_service=self._leaderboard,
            whackamole_service=self._whackamole,
        )
        self._consumer = GachaHistoryConsumer(stream, gacha_repository, config)
        self._materialiser = LeaderboardMaterialiser(self._leaderboard)

        self._initialized = True
        self._init_duration = time.perf_counter() - start
        self._logger.info(
            "Service container initialized",
            extra={"duration_ms": round(self._init_duration * 1000, 2)},
        )

    async def start_workers(self) -> None:
        """Start the history consumer and the leaderboard materialiser."""
        self._require_initialized()
        if self._workers_started:
            return
        assert self._consumer is not None and self._materialiser is not None
        await self._consumer.start()
        await self._materialiser.start()
        self._workers_started = True

    async def shutdown(self) -> None:
        """Stop workers; the in-flight batch and pass are allowed to finish."""
        if self._workers_started:
            assert self._consumer is not None and self._materialiser is not None
            await self._materialiser.stop()
            await self._consumer.stop()
            self._workers_started = False
        self._logger.info("Service container shut down")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceContainer not initialized. Call initialize() first."
            )

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def claw(self) -> ClawSessionService:
        self._require_initialized()
        assert self._claw is not None
        return self._claw

    @property
    def gacha(self) -> GachaSessionService:
        self._require_initialized()
        assert self._gacha is not None
        return self._gacha

    @property
    def leaderboard(self) -> LeaderboardService:
        self._require_initialized()
        assert self._leaderboard is not None
        return self._leaderboard

    @property
    def whackamole(self) -> WhackAMoleService:
        self._require_initialized()
        assert self._whackamole is not None
        return self._whackamole

    @property
    def dispatcher(self) -> ProtocolDispatcher:
        self._require_initialized()
        assert self._dispatcher is not None
        return self._dispatcher

    def get_status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "workers_started": self._workers_started,
            "init_duration_ms": (
                round(self._init_duration * 1000, 2) if self._init_duration else None
            ),
            "consumer": self._consumer.get_status() if self._consumer else None,
            "materialiser": (
                self._materialiser.get_status() if self._materialiser else None
            ),
            "dispatcher": self._dispatcher.get_metrics() if self._dispatcher else None,
        }
