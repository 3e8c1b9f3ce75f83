"""
Gacha Session Service
=====================

Purpose
-------
Orchestrates a gacha pull request:

1. validate the request and the machine's authoring
2. charge `price_single` or `price_times_ten`
3. load pity, resolve the sub-pulls in order, staging pity after each
4. commit pity once, create the pull session
5. publish one consolidated event for the history consumer

Domain
------
- pull_count is 1 or 10
- pity staging failures are tolerated; a pity commit or session write
  failure refunds the price and surfaces
- when the event cannot be published, history is written inline with the
  consumer's row selection so the pull is never lost

Events
------
- gacha.pulled
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from arcade.core.logging.logger import LogContext
from arcade.database.models.enums import Rarity
from arcade.modules.gacha.events import GachaEvent, publish_event
from arcade.modules.session.base import SessionService
from arcade.modules.shared.exceptions import ConfigError, StoreUnavailable
from arcade.modules.shared.validators import validate_pull_count, validate_weights

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.event.bus import EventBus
    from arcade.modules.gacha.engine import GachaEngine
    from arcade.modules.gacha.pity import PityStateManager
    from arcade.modules.shared.contracts import (
        EventStream,
        GachaCatalogue,
        GachaHistorySink,
        GachaMachineSpec,
        PityState,
        WalletStore,
    )


@dataclass(frozen=True)
class GachaPullResult:
    session_id: int
    item_ids: Tuple[int, ...]
    pity: PityState


class GachaSessionService(SessionService):
    """
    Public Methods
    --------------
    - pull() -> Resolve a 1- or 10-pull
    - get_machine_info() -> Machine snapshot with items
    - get_pity_state() -> Current (staged or durable) pity counters
    - get_player_info() -> Player and wallet snapshot
    """

    def __init__(
        self,
        catalogue: GachaCatalogue,
        wallet: WalletStore,
        history: GachaHistorySink,
        pity: PityStateManager,
        engine: GachaEngine,
        event_stream: EventStream,
        config_manager: Any,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        super().__init__(wallet, config_manager, event_bus, logger)
        self._catalogue = catalogue
        self._history = history
        self._pity = pity
        self._engine = engine
        self._stream = event_stream

    @staticmethod
    def validate_machine(machine: GachaMachineSpec) -> None:
        """
        Raises:
            ConfigError: negative weights, no pullable item, or pity thresholds
                out of order
        """
        validate_weights((item.id, item.pull_weight) for item in machine.items)
        if not any(item.pull_weight > 0 for item in machine.items):
            raise ConfigError("gacha machine has no pullable item", machine_id=machine.id)
        if machine.super_rare_pity < 1 or machine.ultra_rare_pity < machine.super_rare_pity:
            raise ConfigError(
                "pity thresholds must satisfy 1 <= super_rare_pity <= ultra_rare_pity",
                machine_id=machine.id,
                super_rare_pity=machine.super_rare_pity,
                ultra_rare_pity=machine.ultra_rare_pity,
            )

    # ========================================================================
    # PULL
    # ========================================================================

    async def pull(
        self, player_id: int, machine_id: int, pull_count: int
    ) -> GachaPullResult:
        """
        Resolve a pull request.

        Raises:
            ValidationError: Bad identifiers or pull_count not in {1, 10}
            NotFoundError: Unknown machine or player
            ConfigError: Machine misconfigured (checked before charging)
            InsufficientFunds: Player cannot pay; balance unchanged
            StoreUnavailable: Wallet, pity commit or session write failed
        """
        self.validate_ids(player_id=player_id, machine_id=machine_id)
        validate_pull_count(pull_count)

        async with LogContext(
            player_id=player_id, machine_id=machine_id, operation="gacha_pull"
        ):
            machine = await self._catalogue.get_gacha_machine(machine_id)
            self.validate_machine(machine)

            price = machine.price_for(pull_count)
            await self.charge_coin(player_id, price)

            try:
                state = await self._pity.load(machine_id, player_id)
                item_ids: List[int] = []
                for _ in range(pull_count):
                    item_id, state = self._engine.pull_once(state, machine)
                    item_ids.append(item_id)
                    await self._pity.stage(machine_id, player_id, state)

                await self._pity.commit(machine_id, player_id, state)
                session = await self._history.create_pull_session(
                    machine_id, player_id, pull_count
                )
            except StoreUnavailable:
                await self.refund_coin(player_id, price, "gacha pull not recorded")
                raise

            await self._publish(GachaEvent(session=session, item_ids=tuple(item_ids)))

            rarities = {item.id: item.rarity for item in machine.items}
            self.log_operation(
                "gacha_pull",
                session_id=session.id,
                pull_count=pull_count,
                price=price,
                ultra_rare_pulled=sum(
                    1 for i in item_ids if rarities[i] is Rarity.ULTRA_RARE
                ),
            )
            await self.emit_event(
                "gacha.pulled",
                {
                    "session_id": session.id,
                    "player_id": player_id,
                    "machine_id": machine_id,
                    "pull_count": pull_count,
                    "item_ids": item_ids,
                },
            )
            return GachaPullResult(session_id=session.id, item_ids=tuple(item_ids), pity=state)

    async def _publish(self, event: GachaEvent) -> None:
        try:
            await publish_event(self._stream, event)
            return
        except StoreUnavailable as exc:
            self.log.error(
                "Gacha event publish failed; writing history inline",
                extra={"session_id": event.session.id, "error": str(exc)},
            )

        write_all_items = bool(self._config.get("stream_consumer.write_all_items", False))
        try:
            await self._history.write_pull_history(
                event.session, event.history_item_ids(write_all_items)
            )
        except StoreUnavailable as exc:
            self.log_error("write_pull_history", exc, session_id=event.session.id)

    # ========================================================================
    # READS
    # ========================================================================

    async def get_machine_info(self, machine_id: int) -> GachaMachineSpec:
        self.validate_ids(machine_id=machine_id)
        return await self._catalogue.get_gacha_machine(machine_id)

    async def get_pity_state(self, machine_id: int, player_id: int) -> PityState:
        self.validate_ids(machine_id=machine_id, player_id=player_id)
        return await self._pity.peek(machine_id, player_id)
