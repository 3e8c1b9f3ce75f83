"""
ORM models. Importing this package registers every table on `Base.metadata`.
"""

from arcade.database.models.catalogue import (
    ClawMachine,
    ClawMachineItem,
    GachaMachine,
    GachaMachineItem,
    Item,
)
from arcade.database.models.claw import ClawMachineGameRecord, ClawMachineItemRecord
from arcade.database.models.enums import Rarity
from arcade.database.models.gacha import (
    GachaPityState,
    GachaPullHistory,
    GachaPullSession,
)
from arcade.database.models.player import Player, PlayerWallet
from arcade.database.models.whackamole import LeaderboardEntry, MoleWeightConfig

__all__ = [
    "Rarity",
    "Player",
    "PlayerWallet",
    "Item",
    "ClawMachine",
    "ClawMachineItem",
    "GachaMachine",
    "GachaMachineItem",
    "ClawMachineGameRecord",
    "ClawMachineItemRecord",
    "GachaPityState",
    "GachaPullSession",
    "GachaPullHistory",
    "LeaderboardEntry",
    "MoleWeightConfig",
]
