"""
Gacha Repository

Purpose
-------
SQL data access for gacha machines: catalogue reads, pull sessions and
pull history.

Responsibilities
----------------
- Load a gacha machine with its ordered items as a `GachaMachineSpec`
- Create one pull session per request
- Write pull history idempotently: one row per `(session_id, pull_index)`

Non-Responsibilities
--------------------
- Pity counters (see `arcade.modules.gacha.pity`)
- Stream consumption (see `arcade.modules.gacha.consumer`)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional, Sequence, Set, Type

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from arcade.core.logging.logger import get_logger
from arcade.database.models import (
    GachaMachine,
    GachaMachineItem,
    GachaPullHistory,
    GachaPullSession,
)
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import (
    GachaCatalogue,
    GachaHistorySink,
    GachaMachineSpec,
    GachaSession,
    ItemSpec,
)
from arcade.modules.shared.exceptions import NotFoundError
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)


class SqlGachaRepository(GachaCatalogue, GachaHistorySink):
    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._machines = BaseRepository(GachaMachine, logger)
        self._sessions = BaseRepository(GachaPullSession, logger)
        self._history = BaseRepository(GachaPullHistory, logger)

    # ═══════════════════════════════════════════════════════════════════════
    # CATALOGUE
    # ═══════════════════════════════════════════════════════════════════════

    async def get_gacha_machine(self, machine_id: int) -> GachaMachineSpec:
        with translate_store_errors("database", "get_gacha_machine"):
            async with self._db.get_session() as session:
                machine = await self._machines.get(
                    session,
                    machine_id,
                    options=[
                        selectinload(GachaMachine.items).selectinload(GachaMachineItem.item)
                    ],
                )
                if machine is None:
                    raise NotFoundError("GachaMachine", machine_id)

                return GachaMachineSpec(
                    id=machine.id,
                    name=machine.name,
                    price_single=machine.price_single,
                    price_times_ten=machine.price_times_ten,
                    super_rare_pity=machine.super_rare_pity,
                    ultra_rare_pity=machine.ultra_rare_pity,
                    items=tuple(ItemSpec.from_row(slot.item) for slot in machine.items),
                )

    # ═══════════════════════════════════════════════════════════════════════
    # HISTORY
    # ═══════════════════════════════════════════════════════════════════════

    async def create_pull_session(
        self, machine_id: int, player_id: int, pull_count: int
    ) -> GachaSession:
        with translate_store_errors("database", "create_pull_session"):
            async with self._db.get_transaction() as session:
                row = self._sessions.add(
                    session,
                    GachaPullSession(
                        gacha_machine_id=machine_id,
                        player_id=player_id,
                        pull_count=pull_count,
                    ),
                )
                await self._sessions.flush(session)
                return GachaSession(
                    id=row.id,
                    gacha_machine_id=machine_id,
                    player_id=player_id,
                    pull_count=pull_count,
                )

    async def write_pull_history(
        self,
        session: GachaSession,
        item_ids: Sequence[int],
        message_id: Optional[str] = None,
    ) -> int:
        start_time = time.monotonic()
        with translate_store_errors("database", "write_pull_history"):
            async with self._db.get_transaction() as db_session:
                result = await db_session.execute(
                    select(GachaPullHistory.pull_index).where(
                        GachaPullHistory.session_id == session.id
                    )
                )
                existing: Set[int] = set(result.scalars().all())

                inserted = 0
                for pull_index, item_id in enumerate(item_ids):
                    if pull_index in existing:
                        continue
                    self._history.add(
                        db_session,
                        GachaPullHistory(
                            session_id=session.id,
                            pull_index=pull_index,
                            item_id=item_id,
                            stream_message_id=message_id,
                        ),
                    )
                    inserted += 1

        logger.info(
            "Gacha pull history written",
            extra={
                "session_id": session.id,
                "player_id": session.player_id,
                "machine_id": session.gacha_machine_id,
                "inserted": inserted,
                "skipped": len(item_ids) - inserted,
                "message_id": message_id,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return inserted
