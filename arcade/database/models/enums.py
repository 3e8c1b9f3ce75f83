"""
Database Model Enums
====================

Lightweight enumerations for database models. Stored as their string value.
"""

from __future__ import annotations

import enum


class Rarity(str, enum.Enum):
    """
    Item rarity tiers.

    `SUPER_RARE` and `ULTRA_RARE` are the pitiable tiers of a gacha machine.
    """

    COMMON = "common"
    RARE = "rare"
    SUPER_RARE = "super_rare"
    ULTRA_RARE = "ultra_rare"
    EPIC = "epic"

    @classmethod
    def parse(cls, value: str) -> "Rarity":
        """Parse a stored rarity, tolerating case and surrounding spaces."""
        return cls(value.strip().lower())
