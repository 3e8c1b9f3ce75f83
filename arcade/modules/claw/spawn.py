"""
Claw spawn engine.

Produces the list of items dropped into the claw pit for one round. Each
draw is weighted by `spawn_percent` among the items still below their
per-round cap; the round ends at `max_output` picks or when nothing is
eligible.

The output is used by the physical UI only; catch verdicts are rolled
separately against every item in the machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from arcade.core.logging.logger import get_logger
from arcade.modules.shared.sampler import NO_PICK, WeightedSampler

logger = get_logger(__name__)


@dataclass(frozen=True)
class SpawnCandidate:
    id: int
    spawn_percent: int
    max_per_round: int


class SpawnEngine:
    """Stateless between calls apart from the sampler it draws from."""

    def __init__(self, sampler: WeightedSampler) -> None:
        self._sampler = sampler

    def spawn_with_controls(
        self, items: Sequence[SpawnCandidate], max_output: int
    ) -> List[int]:
        picks: List[int] = []
        counts: Dict[int, int] = {}

        while len(picks) < max_output:
            eligible = [
                (item.id, item.spawn_percent)
                for item in items
                if counts.get(item.id, 0) < item.max_per_round
            ]
            if not eligible:
                break

            picked = self._sampler.pick_weighted(eligible)
            if picked == NO_PICK:
                break

            picks.append(picked)
            counts[picked] = counts.get(picked, 0) + 1

        logger.debug(
            "Spawn round generated",
            extra={
                "candidates": len(items),
                "max_output": max_output,
                "spawned": len(picks),
            },
        )
        return picks
