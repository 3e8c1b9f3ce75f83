"""
Redis-backed verdict cache.

Layout: `game_results:<game_id>` holds a JSON array of
`{"itemID", "name", "success"}` objects, written with a TTL.
"""

from __future__ import annotations

import json
from typing import Callable, List, Optional, Sequence

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]

from arcade.core.logging.logger import get_logger
from arcade.core.redis.service import RedisService
from arcade.modules.shared.contracts import CatchVerdict, ResultCache
from arcade.modules.shared.store_errors import translate_store_errors

logger = get_logger(__name__)

KEY_PREFIX = "game_results"


def verdict_key(game_id: int) -> str:
    return f"{KEY_PREFIX}:{game_id}"


def encode_verdicts(verdicts: Sequence[CatchVerdict]) -> str:
    return json.dumps([v.to_dict() for v in verdicts], separators=(",", ":"))


def decode_verdicts(raw: str) -> List[CatchVerdict]:
    return [CatchVerdict.from_dict(entry) for entry in json.loads(raw)]


class RedisVerdictCache(ResultCache):
    """
    Args:
        client_factory: Returns the Redis client; defaults to `RedisService.client`
    """

    def __init__(
        self, client_factory: Callable[[], AsyncRedis] = RedisService.client
    ) -> None:
        self._client = client_factory

    async def put_verdicts(
        self, game_id: int, verdicts: Sequence[CatchVerdict], ttl_seconds: int
    ) -> None:
        with translate_store_errors("redis", "put_verdicts"):
            await self._client().set(
                verdict_key(game_id), encode_verdicts(verdicts), ex=ttl_seconds
            )
        logger.debug(
            "Verdicts cached",
            extra={"game_id": game_id, "items": len(verdicts), "ttl_seconds": ttl_seconds},
        )

    async def get_verdicts(self, game_id: int) -> Optional[List[CatchVerdict]]:
        with translate_store_errors("redis", "get_verdicts"):
            raw = await self._client().get(verdict_key(game_id))
        if raw is None:
            return None
        return decode_verdicts(raw)

    async def delete_verdicts(self, game_id: int) -> None:
        with translate_store_errors("redis", "delete_verdicts"):
            await self._client().delete(verdict_key(game_id))
