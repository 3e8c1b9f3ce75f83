"""
Pity state manager.

Purpose
-------
Keep per-(machine, player) pity counters in two places:

- the durable store (authoritative, written once per pull request)
- the Redis cache (staged after every sub-pull so observers can follow
  a ten-pull in progress)

Responsibilities
----------------
- `load`: durable value, or a fresh `{0, 0}` when the pair never pulled
- `stage`: cache write only; failures are logged and swallowed
- `commit`: durable write, then cache invalidation; failures surface

Non-Responsibilities
--------------------
- Counter transitions (see `arcade.modules.gacha.engine.next_pity`)
- Linearising concurrent requests for the same pair (last commit wins)

Design Notes
------------
Cache layout: hash `gacha:pity:<machine_id>:<player_id>` with fields
`ultra_rare_pity_count` and `super_rare_pity_count` as decimal strings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Type

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from sqlalchemy.exc import IntegrityError

from arcade.core.logging.logger import get_logger
from arcade.core.redis.service import RedisService
from arcade.database.models import GachaPityState
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import PityCache, PityState, PityStore
from arcade.modules.shared.exceptions import StoreUnavailable
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)

ULTRA_FIELD = "ultra_rare_pity_count"
SUPER_FIELD = "super_rare_pity_count"


def pity_key(machine_id: int, player_id: int) -> str:
    return f"gacha:pity:{machine_id}:{player_id}"


# ═══════════════════════════════════════════════════════════════════════════
# MANAGER
# ═══════════════════════════════════════════════════════════════════════════


class PityStateManager:
    def __init__(self, store: PityStore, cache: PityCache) -> None:
        self._store = store
        self._cache = cache

    async def load(self, machine_id: int, player_id: int) -> PityState:
        state = await self._store.load(machine_id, player_id)
        return state if state is not None else PityState()

    async def stage(self, machine_id: int, player_id: int, state: PityState) -> None:
        try:
            await self._cache.put(machine_id, player_id, state)
        except StoreUnavailable as exc:
            logger.warning(
                "Pity stage failed; continuing with in-memory state",
                extra={
                    "machine_id": machine_id,
                    "player_id": player_id,
                    "error": str(exc),
                },
            )

    async def commit(self, machine_id: int, player_id: int, state: PityState) -> None:
        await self._store.save(machine_id, player_id, state)
        await self._cache.invalidate(machine_id, player_id)
        logger.debug(
            "Pity committed",
            extra={
                "machine_id": machine_id,
                "player_id": player_id,
                SUPER_FIELD: state.super_rare,
                ULTRA_FIELD: state.ultra_rare,
            },
        )

    async def peek(self, machine_id: int, player_id: int) -> PityState:
        """Staged value when a pull is in progress, else the durable value."""
        staged = await self._cache.get(machine_id, player_id)
        if staged is not None:
            return staged
        return await self.load(machine_id, player_id)


# ═══════════════════════════════════════════════════════════════════════════
# REDIS CACHE
# ═══════════════════════════════════════════════════════════════════════════


class RedisPityCache(PityCache):
    def __init__(
        self,
        client_factory: Callable[[], AsyncRedis] = RedisService.client,
        ttl_seconds: Optional[int] = 300,
    ) -> None:
        self._client = client_factory
        self._ttl = ttl_seconds

    async def get(self, machine_id: int, player_id: int) -> Optional[PityState]:
        with translate_store_errors("redis", "pity_get"):
            raw = await self._client().hgetall(pity_key(machine_id, player_id))
        if not raw:
            return None
        return PityState(
            super_rare=int(raw.get(SUPER_FIELD, 0)),
            ultra_rare=int(raw.get(ULTRA_FIELD, 0)),
        )

    async def put(self, machine_id: int, player_id: int, state: PityState) -> None:
        key = pity_key(machine_id, player_id)
        with translate_store_errors("redis", "pity_stage"):
            async with self._client().pipeline(transaction=True) as pipe:
                pipe.hset(
                    key,
                    mapping={
                        ULTRA_FIELD: str(state.ultra_rare),
                        SUPER_FIELD: str(state.super_rare),
                    },
                )
                if self._ttl:
                    pipe.expire(key, self._ttl)
                await pipe.execute()

    async def invalidate(self, machine_id: int, player_id: int) -> None:
        with translate_store_errors("redis", "pity_invalidate"):
            await self._client().delete(pity_key(machine_id, player_id))


# ═══════════════════════════════════════════════════════════════════════════
# SQL STORE
# ═══════════════════════════════════════════════════════════════════════════


class SqlPityStore(PityStore):
    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._repo = BaseRepository(GachaPityState, logger)

    async def load(self, machine_id: int, player_id: int) -> Optional[PityState]:
        with translate_store_errors("database", "pity_load"):
            async with self._db.get_session() as session:
                row = await self._repo.find_one_where(
                    session,
                    GachaPityState.gacha_machine_id == machine_id,
                    GachaPityState.player_id == player_id,
                )
                if row is None:
                    return None
                return PityState(
                    super_rare=row.super_rare_pity_count,
                    ultra_rare=row.ultra_rare_pity_count,
                )

    async def save(self, machine_id: int, player_id: int, state: PityState) -> None:
        with translate_store_errors("database", "pity_commit"):
            try:
                await self._upsert(machine_id, player_id, state)
            except IntegrityError:
                # Lost the race to create the row; it exists now.
                await self._upsert(machine_id, player_id, state)

    async def _upsert(self, machine_id: int, player_id: int, state: PityState) -> None:
        async with self._db.get_transaction() as session:
            row = await self._repo.find_one_where(
                session,
                GachaPityState.gacha_machine_id == machine_id,
                GachaPityState.player_id == player_id,
                for_update=True,
            )
            if row is None:
                row = self._repo.add(
                    session,
                    GachaPityState(gacha_machine_id=machine_id, player_id=player_id),
                )
            row.super_rare_pity_count = state.super_rare
            row.ultra_rare_pity_count = state.ultra_rare
