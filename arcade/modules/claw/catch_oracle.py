"""
Claw catch oracle.

Purpose
-------
Pre-roll a server-authoritative catch verdict for every item in a claw
machine before the client plays its animation. The verdict list is later
used to reconcile the client's touched-item reports.

Responsibilities
----------------
- Validate machine authoring (every item needs a positive catch percentage)
- Roll `catch_percentage` once per item, in declared order

Non-Responsibilities
--------------------
- Caching the verdicts (see `RedisVerdictCache`)
- Charging the player or writing game records (session orchestration)
"""

from __future__ import annotations

from typing import List

from arcade.core.logging.logger import get_logger
from arcade.modules.shared.contracts import CatchVerdict, ClawCatalogue, ClawMachineSpec
from arcade.modules.shared.exceptions import ConfigError
from arcade.modules.shared.sampler import WeightedSampler

logger = get_logger(__name__)


class CatchOracle:
    def __init__(self, sampler: WeightedSampler, catalogue: ClawCatalogue) -> None:
        self._sampler = sampler
        self._catalogue = catalogue

    @staticmethod
    def validate(machine: ClawMachineSpec) -> None:
        """
        Raises:
            ConfigError: machine has no items, or an item has catch_percentage <= 0
        """
        if not machine.items:
            raise ConfigError("claw machine has no items", machine_id=machine.id)

        for slot in machine.items:
            if slot.item.catch_percentage <= 0:
                raise ConfigError(
                    "claw item has zero catch percentage",
                    machine_id=machine.id,
                    claw_item_id=slot.claw_item_id,
                    item_id=slot.item.id,
                )

    def roll_verdicts(self, machine: ClawMachineSpec) -> List[CatchVerdict]:
        """Validate, then roll one verdict per claw item keyed by its slot id."""
        self.validate(machine)

        verdicts = [
            CatchVerdict(
                item_id=slot.claw_item_id,
                name=slot.item.name,
                success=self._sampler.roll(slot.item.catch_percentage),
            )
            for slot in machine.items
        ]

        logger.debug(
            "Catch verdicts rolled",
            extra={
                "machine_id": machine.id,
                "items": len(verdicts),
                "successes": sum(1 for v in verdicts if v.success),
            },
        )
        return verdicts

    async def pre_determine(self, machine_id: int) -> List[CatchVerdict]:
        machine = await self._catalogue.get_claw_machine(machine_id)
        return self.roll_verdicts(machine)
