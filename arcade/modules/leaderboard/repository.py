"""
Leaderboard Repository

Purpose
-------
SQL implementation of `LeaderboardStore` over `whackamole_leaderboard`.

Design Notes
------------
Materialisation runs in one transaction:

1. reset every non-zero rank to 0
2. ROW_NUMBER() OVER (ORDER BY score DESC, player_id ASC)
3. write the rank back for rows numbered <= top_n (bulk UPDATE by key)

Readers outside the transaction see either the previous ranking or the new
one, never a mix.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, List, Optional, Type

from sqlalchemy import and_, func, or_, select, update

from arcade.core.logging.logger import get_logger
from arcade.database.models import LeaderboardEntry, Player
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import LeaderboardRow, LeaderboardStore
from arcade.modules.shared.exceptions import InvalidOperationError, NotFoundError
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)


def _to_row(entry: LeaderboardEntry) -> LeaderboardRow:
    return LeaderboardRow(
        player_id=entry.player_id,
        username=entry.username,
        score=entry.score,
        rank=entry.rank,
    )


class SqlLeaderboardStore(LeaderboardStore):
    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._entries = BaseRepository(LeaderboardEntry, logger)
        self._players = BaseRepository(Player, logger)

    async def recalculate_ranks(self, top_n: int) -> int:
        start_time = time.monotonic()
        with translate_store_errors("database", "recalculate_ranks"):
            async with self._db.get_transaction() as session:
                await session.execute(
                    update(LeaderboardEntry)
                    .where(LeaderboardEntry.rank != 0)
                    .values(rank=0)
                    .execution_options(synchronize_session=False)
                )

                numbered = select(
                    LeaderboardEntry.player_id,
                    func.row_number()
                    .over(
                        order_by=(
                            LeaderboardEntry.score.desc(),
                            LeaderboardEntry.player_id.asc(),
                        )
                    )
                    .label("new_rank"),
                ).subquery()
                result = await session.execute(
                    select(numbered.c.player_id, numbered.c.new_rank)
                    .where(numbered.c.new_rank <= top_n)
                    .order_by(numbered.c.new_rank)
                )
                ranked = [
                    {"player_id": player_id, "rank": new_rank}
                    for player_id, new_rank in result.all()
                ]

                if ranked:
                    await session.execute(update(LeaderboardEntry), ranked)

        logger.info(
            "Leaderboard ranks materialised",
            extra={
                "ranked": len(ranked),
                "top_n": top_n,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return len(ranked)

    async def get_row(self, player_id: int) -> Optional[LeaderboardRow]:
        with translate_store_errors("database", "leaderboard_get_row"):
            async with self._db.get_session() as session:
                entry = await self._entries.get(session, player_id)
                return _to_row(entry) if entry is not None else None

    async def set_score(self, player_id: int, score: int) -> LeaderboardRow:
        with translate_store_errors("database", "leaderboard_set_score"):
            async with self._db.get_transaction() as session:
                entry = await self._entries.get(session, player_id, for_update=True)
                if entry is None:
                    player = await self._players.get(session, player_id)
                    if player is None:
                        raise NotFoundError("Player", player_id)
                    entry = self._entries.add(
                        session,
                        LeaderboardEntry(
                            player_id=player_id,
                            username=player.username,
                            score=score,
                            rank=0,
                        ),
                    )
                elif score <= entry.score:
                    raise InvalidOperationError(
                        "update_score",
                        f"new score {score} does not beat stored score {entry.score}",
                    )
                else:
                    entry.score = score
                return _to_row(entry)

    async def ranked_rows(self, limit: int) -> List[LeaderboardRow]:
        with translate_store_errors("database", "leaderboard_ranked_rows"):
            async with self._db.get_session() as session:
                entries = await self._entries.find_many_where(
                    session,
                    LeaderboardEntry.rank > 0,
                    order_by=[LeaderboardEntry.rank.asc()],
                    limit=limit,
                )
                return [_to_row(e) for e in entries]

    async def count_ahead(self, player_id: int, score: int) -> int:
        with translate_store_errors("database", "leaderboard_count_ahead"):
            async with self._db.get_session() as session:
                return await self._entries.count(
                    session,
                    or_(
                        LeaderboardEntry.score > score,
                        and_(
                            LeaderboardEntry.score == score,
                            LeaderboardEntry.player_id < player_id,
                        ),
                    ),
                )
