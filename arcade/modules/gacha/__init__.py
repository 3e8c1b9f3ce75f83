"""Gacha machine: pull engine, pity state, pull events, history consumer and SQL repository."""

from .consumer import GachaHistoryConsumer
from .engine import GachaEngine, forced_rarity, next_pity
from .events import GachaEvent, RedisGachaEventStream
from .pity import PityStateManager, RedisPityCache, SqlPityStore
from .repository import SqlGachaRepository

__all__ = [
    "GachaEngine",
    "GachaEvent",
    "GachaHistoryConsumer",
    "PityStateManager",
    "RedisGachaEventStream",
    "RedisPityCache",
    "SqlGachaRepository",
    "SqlPityStore",
    "forced_rarity",
    "next_pity",
]
