"""
Claw Repository

Purpose
-------
SQL data access for claw machines: catalogue reads and game history.

Responsibilities
----------------
- Load a claw machine with its ordered item slots as a `ClawMachineSpec`
- Create game-record headers (the primary key is the game id)
- Append touched-item records and maintain the game's `success` aggregate

Non-Responsibilities
--------------------
- No reconciliation rules (session orchestration owns them)
- No verdict caching
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional, Type

from sqlalchemy.orm import selectinload

from arcade.core.logging.logger import get_logger
from arcade.database.models import (
    ClawMachine,
    ClawMachineGameRecord,
    ClawMachineItem,
    ClawMachineItemRecord,
)
from arcade.modules.shared.base_repository import BaseRepository
from arcade.modules.shared.contracts import (
    ClawCatalogue,
    ClawHistorySink,
    ClawMachineItemSpec,
    ClawMachineSpec,
    GameRecord,
    ItemSpec,
)
from arcade.modules.shared.exceptions import NotFoundError
from arcade.modules.shared.store_errors import translate_store_errors

if TYPE_CHECKING:
    from arcade.core.database.service import DatabaseService

logger = get_logger(__name__)


class SqlClawRepository(ClawCatalogue, ClawHistorySink):
    """Claw catalogue and history sink over `DatabaseService`."""

    def __init__(self, database_service: Type[DatabaseService]) -> None:
        self._db = database_service
        self._machines = BaseRepository(ClawMachine, logger)
        self._games = BaseRepository(ClawMachineGameRecord, logger)
        self._item_records = BaseRepository(ClawMachineItemRecord, logger)

    # ═══════════════════════════════════════════════════════════════════════
    # CATALOGUE
    # ═══════════════════════════════════════════════════════════════════════

    async def get_claw_machine(self, machine_id: int) -> ClawMachineSpec:
        with translate_store_errors("database", "get_claw_machine"):
            async with self._db.get_session() as session:
                machine = await self._machines.get(
                    session,
                    machine_id,
                    options=[
                        selectinload(ClawMachine.items).selectinload(ClawMachineItem.item)
                    ],
                )
                if machine is None:
                    raise NotFoundError("ClawMachine", machine_id)

                return ClawMachineSpec(
                    id=machine.id,
                    name=machine.name,
                    price=machine.price,
                    max_item=machine.max_item,
                    items=tuple(
                        ClawMachineItemSpec(
                            claw_item_id=slot.id, item=ItemSpec.from_row(slot.item)
                        )
                        for slot in machine.items
                    ),
                )

    # ═══════════════════════════════════════════════════════════════════════
    # HISTORY
    # ═══════════════════════════════════════════════════════════════════════

    async def create_game_record(self, player_id: int, machine_id: int) -> int:
        start_time = time.monotonic()
        with translate_store_errors("database", "create_game_record"):
            async with self._db.get_transaction() as session:
                record = self._games.add(
                    session,
                    ClawMachineGameRecord(
                        claw_machine_id=machine_id, player_id=player_id, success=False
                    ),
                )
                await self._games.flush(session)
                game_id = record.id

        logger.debug(
            "Claw game record created",
            extra={
                "game_id": game_id,
                "player_id": player_id,
                "machine_id": machine_id,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return game_id

    async def append_item_record(self, game_id: int, item_id: int, catched: bool) -> None:
        with translate_store_errors("database", "append_item_record"):
            async with self._db.get_transaction() as session:
                game = await self._games.get(session, game_id, for_update=True)
                if game is None:
                    raise NotFoundError("ClawMachineGameRecord", game_id)

                self._item_records.add(
                    session,
                    ClawMachineItemRecord(game_id=game_id, item_id=item_id, catched=catched),
                )
                if catched:
                    game.success = True

        logger.debug(
            "Claw item record appended",
            extra={"game_id": game_id, "item_id": item_id, "catched": catched},
        )

    async def get_game_record(self, game_id: int) -> Optional[GameRecord]:
        with translate_store_errors("database", "get_game_record"):
            async with self._db.get_session() as session:
                game = await self._games.get(session, game_id)
                if game is None:
                    return None
                records = await self._item_records.find_many_where(
                    session,
                    ClawMachineItemRecord.game_id == game_id,
                    order_by=[ClawMachineItemRecord.id],
                )
                return GameRecord(
                    game_id=game.id,
                    claw_machine_id=game.claw_machine_id,
                    player_id=game.player_id,
                    success=game.success,
                    item_records=tuple((r.item_id, r.catched) for r in records),
                )
