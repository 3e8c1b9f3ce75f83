"""
Gacha pull engine.

Purpose
-------
Resolve sub-pulls against a gacha machine while tracking the per-player
pity counters that force super-rare and ultra-rare items.

Design Notes
------------
Selection, checked in order for each sub-pull:

    ultra >= machine.ultra_rare_pity  -> weighted pick among ultra_rare items
    super >= machine.super_rare_pity  -> weighted pick among super_rare items
    otherwise                         -> weighted pick among all items

Counter transition after the pick:

    ultra_rare  -> ultra = 0,      super + 1
    super_rare  -> ultra + 1,      super = 0
    other       -> ultra + 1,      super + 1

A forced bucket with no positive-weight items falls back to all items and
logs a warning. `next_pity` is a pure function; the engine never touches a
store.

Usage
-----
    engine = GachaEngine(WeightedSampler())
    item_id, state = engine.pull_once(state, machine)
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from arcade.core.logging.logger import get_logger
from arcade.database.models.enums import Rarity
from arcade.modules.shared.contracts import GachaMachineSpec, ItemSpec, PityState
from arcade.modules.shared.exceptions import ConfigError
from arcade.modules.shared.sampler import NO_PICK, WeightedSampler

logger = get_logger(__name__)


def next_pity(state: PityState, rarity: Rarity) -> PityState:
    if rarity is Rarity.ULTRA_RARE:
        return PityState(super_rare=state.super_rare + 1, ultra_rare=0)
    if rarity is Rarity.SUPER_RARE:
        return PityState(super_rare=0, ultra_rare=state.ultra_rare + 1)
    return PityState(super_rare=state.super_rare + 1, ultra_rare=state.ultra_rare + 1)


def forced_rarity(state: PityState, machine: GachaMachineSpec) -> Optional[Rarity]:
    """Rarity the next sub-pull is forced to, or None for a natural draw."""
    if state.ultra_rare >= machine.ultra_rare_pity:
        return Rarity.ULTRA_RARE
    if state.super_rare >= machine.super_rare_pity:
        return Rarity.SUPER_RARE
    return None


class GachaEngine:
    def __init__(self, sampler: WeightedSampler) -> None:
        self._sampler = sampler

    def _pick(self, items: Sequence[ItemSpec]) -> int:
        return self._sampler.pick_weighted((item.id, item.pull_weight) for item in items)

    def pull_once(
        self, state: PityState, machine: GachaMachineSpec
    ) -> Tuple[int, PityState]:
        """
        Resolve one sub-pull.

        Returns:
            (item_id, state after the transition)

        Raises:
            ConfigError: machine has no item with positive pull weight
        """
        by_id: Dict[int, ItemSpec] = {item.id: item for item in machine.items}
        forced = forced_rarity(state, machine)

        item_id = NO_PICK
        if forced is not None:
            bucket = [item for item in machine.items if item.rarity is forced]
            item_id = self._pick(bucket)
            if item_id == NO_PICK:
                logger.warning(
                    "Forced rarity bucket is empty; drawing from all items",
                    extra={
                        "machine_id": machine.id,
                        "forced_rarity": forced.value,
                        "super_rare_pity_count": state.super_rare,
                        "ultra_rare_pity_count": state.ultra_rare,
                    },
                )

        if item_id == NO_PICK:
            item_id = self._pick(machine.items)
        if item_id == NO_PICK:
            raise ConfigError(
                "gacha machine has no item with positive pull weight",
                machine_id=machine.id,
            )

        return item_id, next_pity(state, by_id[item_id].rarity)

    def pull_many(
        self,
        state: PityState,
        machine: GachaMachineSpec,
        count: int,
    ) -> Tuple[List[int], PityState]:
        """Apply `count` sub-pulls strictly in sequence."""
        item_ids: List[int] = []
        for _ in range(count):
            item_id, state = self.pull_once(state, machine)
            item_ids.append(item_id)
        return item_ids, state
