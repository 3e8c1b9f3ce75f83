"""
Claw Session Service
====================

Purpose
-------
Orchestrates a claw game from the server's side:

1. `start_game`: validate, charge the machine price, create the game record,
   pre-roll catch verdicts, cache them under the game id, return them
2. `add_touched_item_record`: reconcile a client report against the cached
   verdict and append the item record
3. `spawn_items`: draw the items dropped into the pit for the physical UI

Domain
------
- The verdict list is cached for `verdict_cache.ttl_seconds` (default 300)
- A cache write failure at game start is logged; the game still starts and
  later reports fail with ResultExpired
- Any report deletes the verdict list: a matching one after its item record
  is appended, a mismatching one before VerdictMismatch is raised

Events
------
- claw.game_started
- claw.item_touched
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from arcade.core.logging.logger import LogContext
from arcade.modules.claw.spawn import SpawnCandidate
from arcade.modules.session.base import SessionService
from arcade.modules.shared.exceptions import (
    ResultExpired,
    StoreUnavailable,
    UnknownItem,
    VerdictMismatch,
)
from arcade.modules.shared.validators import validate_percentage

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.event.bus import EventBus
    from arcade.modules.claw.catch_oracle import CatchOracle
    from arcade.modules.claw.spawn import SpawnEngine
    from arcade.modules.shared.contracts import (
        CatchVerdict,
        ClawCatalogue,
        ClawHistorySink,
        ResultCache,
        WalletStore,
    )


@dataclass(frozen=True)
class ClawGameStarted:
    game_id: int
    verdicts: Tuple[CatchVerdict, ...]


@dataclass(frozen=True)
class TouchedItemRecord:
    game_id: int
    item_id: int
    catched: bool


class ClawSessionService(SessionService):
    """
    Public Methods
    --------------
    - start_game() -> Charge, record and pre-roll a claw game
    - add_touched_item_record() -> Reconcile one client report
    - spawn_items() -> Spawn list for a machine
    - get_player_info() -> Player and wallet snapshot
    """

    def __init__(
        self,
        catalogue: ClawCatalogue,
        wallet: WalletStore,
        history: ClawHistorySink,
        result_cache: ResultCache,
        oracle: CatchOracle,
        spawn_engine: SpawnEngine,
        config_manager: Any,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        super().__init__(wallet, config_manager, event_bus, logger)
        self._catalogue = catalogue
        self._history = history
        self._cache = result_cache
        self._oracle = oracle
        self._spawn = spawn_engine

    @property
    def verdict_ttl_seconds(self) -> int:
        return self.get_config_int("verdict_cache.ttl_seconds", 300)

    # ========================================================================
    # START GAME
    # ========================================================================

    async def start_game(self, player_id: int, machine_id: int) -> ClawGameStarted:
        """
        Start a claw game.

        Returns:
            ClawGameStarted with the game id and the verdicts in machine order

        Raises:
            ValidationError: If an identifier is not positive
            NotFoundError: If the machine or player does not exist
            ConfigError: If the machine's items are misconfigured
            InsufficientFunds: If the player cannot pay; nothing is recorded
            StoreUnavailable: If the wallet or history store fails
        """
        self.validate_ids(player_id=player_id, machine_id=machine_id)

        async with LogContext(
            player_id=player_id, machine_id=machine_id, operation="start_claw_game"
        ):
            machine = await self._catalogue.get_claw_machine(machine_id)
            self._oracle.validate(machine)
            for slot in machine.items:
                validate_percentage("catch_percentage", slot.item.catch_percentage)

            await self.charge_coin(player_id, machine.price)

            try:
                game_id = await self._history.create_game_record(player_id, machine_id)
            except StoreUnavailable:
                await self.refund_coin(player_id, machine.price, "create_game_record failed")
                raise

            verdicts = self._oracle.roll_verdicts(machine)

            try:
                await self._cache.put_verdicts(game_id, verdicts, self.verdict_ttl_seconds)
            except StoreUnavailable as exc:
                self.log.warning(
                    "Verdict cache write failed; reports for this game will expire",
                    extra={"game_id": game_id, "error": str(exc)},
                )

            self.log_operation(
                "start_claw_game",
                game_id=game_id,
                price=machine.price,
                items=len(verdicts),
            )
            await self.emit_event(
                "claw.game_started",
                {
                    "game_id": game_id,
                    "player_id": player_id,
                    "machine_id": machine_id,
                    "price": machine.price,
                    "verdicts": [v.to_dict() for v in verdicts],
                },
            )
            return ClawGameStarted(game_id=game_id, verdicts=tuple(verdicts))

    # ========================================================================
    # RECONCILIATION
    # ========================================================================

    async def add_touched_item_record(
        self, game_id: int, item_id: int, catched: bool
    ) -> TouchedItemRecord:
        """
        Reconcile a touched-item report against the cached verdict.

        Raises:
            ResultExpired: No verdict list for the game
            UnknownItem: The item is not part of the game's verdicts
            VerdictMismatch: `catched` disagrees; the verdict list is deleted
        """
        self.validate_ids(game_id=game_id, item_id=item_id)

        async with LogContext(game_id=game_id, operation="add_touched_item_record"):
            verdicts = await self._cache.get_verdicts(game_id)
            if verdicts is None:
                raise ResultExpired(game_id)

            index = next(
                (i for i, v in enumerate(verdicts) if v.item_id == item_id), None
            )
            if index is None:
                raise UnknownItem(game_id, item_id)

            expected = verdicts[index].success
            if expected != catched:
                await self._cache.delete_verdicts(game_id)
                self.log.warning(
                    "Catch verdict mismatch; game verdicts invalidated",
                    extra={"item_id": item_id, "expected": expected, "got": catched},
                )
                raise VerdictMismatch(game_id, item_id, expected, catched)

            await self._history.append_item_record(game_id, item_id, catched)
            # The first reconciled report consumes the whole verdict list.
            await self._cache.delete_verdicts(game_id)

            await self.emit_event(
                "claw.item_touched",
                {"game_id": game_id, "item_id": item_id, "catched": catched},
            )
            return TouchedItemRecord(game_id=game_id, item_id=item_id, catched=catched)

    # ========================================================================
    # SPAWN
    # ========================================================================

    async def spawn_items(self, machine_id: int) -> List[int]:
        """Spawn list of claw item ids for the machine's pit."""
        self.validate_ids(machine_id=machine_id)
        machine = await self._catalogue.get_claw_machine(machine_id)

        max_output = machine.max_item or self.get_config_int("claw.max_output_default", 10)
        candidates = [
            SpawnCandidate(
                id=slot.claw_item_id,
                spawn_percent=slot.item.spawn_percentage,
                max_per_round=slot.item.max_item_spawned,
            )
            for slot in machine.items
        ]
        return self._spawn.spawn_with_controls(candidates, max_output)
