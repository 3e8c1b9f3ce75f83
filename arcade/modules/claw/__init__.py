"""Claw machine: spawn engine, catch oracle, verdict cache and SQL repository."""

from .catch_oracle import CatchOracle
from .repository import SqlClawRepository
from .result_cache import RedisVerdictCache
from .spawn import SpawnCandidate, SpawnEngine

__all__ = [
    "CatchOracle",
    "RedisVerdictCache",
    "SpawnCandidate",
    "SpawnEngine",
    "SqlClawRepository",
]
