"""
Weighted sampler shared by every randomized reward decision.

Purpose
-------
Own one pseudo-random generator per instance and expose the two draws the
games need:

- `roll(percent)`: Bernoulli trial with probability `percent / 100`
- `pick_weighted(entries)`: weight-proportional choice over `(id, weight)`

Design Notes
------------
- The generator is mutated on every draw, so draws are serialised with a
  per-instance lock. Engines are handed a sampler; nothing reaches for the
  module-level `random` functions.
- Seeding: explicit `seed` argument, else `Config.RNG_SEED`, else the wall
  clock. Two samplers with the same seed produce the same draw sequence.
- Entry order is significant: ties are resolved by input order.

Usage
-----
    sampler = WeightedSampler(seed=7)
    if sampler.roll(item.catch_percentage):
        ...
    item_id = sampler.pick_weighted([(1, 70), (2, 25), (3, 5)])
"""

from __future__ import annotations

import random
import threading
import time
from typing import Iterable, Optional, Sequence, Tuple

from arcade.core.config.config import Config

WeightedEntry = Tuple[int, int]

# Returned by pick_weighted when no entry carries positive weight.
NO_PICK = 0


class WeightedSampler:
    def __init__(self, seed: Optional[int] = None) -> None:
        if seed is None:
            seed = Config.RNG_SEED
        if seed is None:
            seed = time.time_ns()
        self.seed = seed
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def roll(self, percent: int) -> bool:
        if percent <= 0:
            return False
        if percent >= 100:
            return True
        with self._lock:
            draw = self._rng.randrange(100)
        return draw < percent

    def pick_weighted(self, entries: Iterable[WeightedEntry]) -> int:
        """
        Pick an id with probability proportional to its weight.

        Entries with weight <= 0 are ignored. Returns `NO_PICK` when the
        remaining total weight is zero.
        """
        eligible: Sequence[WeightedEntry] = [(i, w) for i, w in entries if w > 0]
        total = sum(w for _, w in eligible)
        if total <= 0:
            return NO_PICK

        with self._lock:
            r = self._rng.randrange(total)

        running = 0
        for entry_id, weight in eligible:
            running += weight
            if running > r:
                return entry_id
        # unreachable: r < total
        return eligible[-1][0]

    def reseed(self, seed: int) -> None:
        with self._lock:
            self.seed = seed
            self._rng.seed(seed)
