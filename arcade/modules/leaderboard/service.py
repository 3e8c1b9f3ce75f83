"""
Leaderboard Service
===================

Purpose
-------
Owns the whack-a-mole leaderboard: score submission, rank materialisation
and leaderboard queries. A background `LeaderboardMaterialiser` runs the
materialisation pass on a fixed cadence regardless of play traffic.

Domain
------
- Scores are monotone: a submission must beat the stored score
- Ranks are materialised for the top N rows (default 100) in the total
  order (score DESC, player_id ASC); every other row has rank 0
- Between passes a new score changes only the score; ranks wait for the
  next pass
- `get_player_rank` computes a live rank without waiting for a pass

Events
------
- leaderboard.score_updated
- leaderboard.materialised
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from arcade.core.logging.logger import get_logger
from arcade.modules.shared.base_service import BaseService
from arcade.modules.shared.exceptions import (
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.config.manager import ConfigManager
    from arcade.core.event.bus import EventBus
    from arcade.modules.shared.contracts import LeaderboardRow, LeaderboardStore


# ============================================================================
# LeaderboardService
# ============================================================================


class LeaderboardService(BaseService):
    """
    Public Methods
    --------------
    - materialise() -> Recompute top-N ranks in one transaction
    - update_score() -> Submit a new (strictly better) score
    - get_leaderboard() -> Ranked rows ordered by rank
    - get_player_rank() -> Live rank and score for one player
    """

    def __init__(
        self,
        store: LeaderboardStore,
        config_manager: Any,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._store = store

    @property
    def top_n(self) -> int:
        return self.get_config_int("leaderboard.top_n", 100)

    @property
    def max_query_limit(self) -> int:
        return self.get_config_int("leaderboard.max_query_limit", 100)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def materialise(self) -> int:
        """
        Run one materialisation pass.

        Returns:
            Number of rows that received a non-zero rank

        Raises:
            StoreUnavailable: If the pass could not be committed
        """
        start_time = time.monotonic()
        ranked = await self._store.recalculate_ranks(self.top_n)

        await self.emit_event(
            "leaderboard.materialised",
            {
                "ranked": ranked,
                "top_n": self.top_n,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return ranked

    async def update_score(self, player_id: int, score: int) -> LeaderboardRow:
        """
        Submit a score for a player.

        The username is taken from the player record when the row is created.
        The row's rank is untouched until the next materialisation pass.

        Raises:
            ValidationError: If player_id is not positive or score is negative
            NotFoundError: If the player does not exist
            InvalidOperationError: If score does not beat the stored score
        """
        self.validate_ids(player_id=player_id)
        if score < 0:
            raise ValidationError("score", "score cannot be negative")

        row = await self._store.set_score(player_id, score)

        self.log_operation("update_score", player_id=player_id, score=score)
        await self.emit_event(
            "leaderboard.score_updated", {"player_id": player_id, "score": score}
        )
        return row

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_leaderboard(self, limit: int = 100) -> List[LeaderboardRow]:
        """
        Get ranked rows ordered by rank.

        Raises:
            ValidationError: If limit is outside 1..max_query_limit

        Example:
            >>> rows = await service.get_leaderboard(limit=10)
            >>> rows[0].rank
            1
        """
        if limit < 1 or limit > self.max_query_limit:
            raise ValidationError(
                "limit", f"limit must be between 1 and {self.max_query_limit}"
            )
        return await self._store.ranked_rows(limit)

    async def get_player_rank(self, player_id: int) -> LeaderboardRow:
        """
        Live rank: one plus the number of rows ordered before the player.

        Raises:
            NotFoundError: If the player has no leaderboard row
        """
        self.validate_ids(player_id=player_id)

        row = await self._store.get_row(player_id)
        if row is None:
            raise NotFoundError("LeaderboardEntry", player_id)

        ahead = await self._store.count_ahead(player_id, row.score)
        return replace(row, rank=ahead + 1)


# ============================================================================
# LeaderboardMaterialiser
# ============================================================================


class LeaderboardMaterialiser:
    """
    Periodic ticker around `LeaderboardService.materialise`.

    A failed pass is logged and retried on the next tick. Stopping lets the
    pass in flight complete.
    """

    def __init__(
        self,
        service: LeaderboardService,
        interval_seconds: Optional[float] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self._service = service
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else service.get_config_int("leaderboard.recalculate_interval_seconds", 60)
        )
        self.log = logger or get_logger(__name__)

        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._passes = 0
        self._failures = 0
        self._last_pass_time: Optional[float] = None

    async def start(self) -> None:
        if self._task is not None:
            self.log.warning("LeaderboardMaterialiser already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))
        self.log.info(
            "LeaderboardMaterialiser started",
            extra={"interval_seconds": self._interval},
        )

    async def stop(self) -> None:
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        self._stop_event = None
        self.log.info("LeaderboardMaterialiser stopped", extra=self.get_status())

    async def run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass
            await self.run_pass()

    async def run_pass(self) -> Optional[int]:
        """One pass; returns the ranked count, or None when the store failed."""
        try:
            ranked = await self._service.materialise()
        except StoreUnavailable as exc:
            self._failures += 1
            self.log.error(
                "Leaderboard pass failed; waiting for next tick",
                extra={"error": str(exc), "failures": self._failures},
            )
            return None

        self._passes += 1
        self._last_pass_time = time.time()
        return ranked

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._task is not None,
            "interval_seconds": self._interval,
            "passes": self._passes,
            "failures": self._failures,
            "last_pass_time": self._last_pass_time,
        }
