"""
Whack-a-Mole Service
====================

Purpose
-------
Serves the mole spawn table and draws moles for the runtime. Scores and
ranks live in `arcade.modules.leaderboard`.

Domain
------
- Each mole type has a non-negative integer weight
- `pick_mole` is a weight-proportional draw; zero-weight moles never appear
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

from arcade.modules.shared.base_service import BaseService
from arcade.modules.shared.exceptions import ConfigError, ValidationError
from arcade.modules.shared.sampler import NO_PICK

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.event.bus import EventBus
    from arcade.modules.shared.contracts import MoleWeight, MoleWeightStore
    from arcade.modules.shared.sampler import WeightedSampler


class WhackAMoleService(BaseService):
    def __init__(
        self,
        store: MoleWeightStore,
        sampler: WeightedSampler,
        config_manager: Any,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._store = store
        self._sampler = sampler

    async def get_mole_weights(self) -> List[MoleWeight]:
        return await self._store.list_weights()

    async def pick_mole(self) -> MoleWeight:
        """
        Draw one mole type.

        Raises:
            ConfigError: If no mole type has a positive weight
        """
        weights = await self._store.list_weights()
        picked = self._sampler.pick_weighted((w.id, w.weight) for w in weights)
        if picked == NO_PICK:
            raise ConfigError("no mole type has a positive weight")
        return next(w for w in weights if w.id == picked)

    async def set_mole_weight(self, mole_type: str, weight: int) -> MoleWeight:
        """
        Raises:
            ValidationError: If mole_type is blank or weight is negative
        """
        mole_type = (mole_type or "").strip()
        if not mole_type:
            raise ValidationError("mole_type", "mole_type cannot be empty")
        if weight < 0:
            raise ValidationError("weight", "weight cannot be negative")

        result = await self._store.set_weight(mole_type, weight)
        self.log_operation("set_mole_weight", mole_type=mole_type, weight=weight)
        return result
