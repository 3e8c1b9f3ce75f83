"""
Store contracts and value types shared by the game services.

Purpose
-------
The reward core talks to its collaborators only through the contracts in
this module:

- `ClawCatalogue` / `GachaCatalogue`: machine + item configuration reads
- `WalletStore`: player balance adjustments
- `ClawHistorySink` / `GachaHistorySink`: game and pull records
- `ResultCache`: short-lived verdict lists keyed by game id
- `PityCache` / `PityStore`: staged and authoritative pity counters
- `EventStream`: append-only log with consumer-group acknowledgement
- `LeaderboardStore`: leaderboard rows
- `MoleWeightStore`: whack-a-mole spawn weights

SQLAlchemy and Redis implementations live next to the services that use
them; tests substitute in-memory fakes.

Design Notes
------------
Value types are frozen dataclasses so they can be shared across tasks.
Store implementations translate driver failures into `StoreUnavailable`.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from arcade.database.models.enums import Rarity


# ============================================================================
# Value types
# ============================================================================


@dataclass(frozen=True)
class ItemSpec:
    id: int
    name: str
    rarity: Rarity = Rarity.COMMON
    spawn_percentage: int = 0
    catch_percentage: int = 0
    pull_weight: int = 0
    max_item_spawned: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "ItemSpec":
        """Build from an `Item` ORM row."""
        return cls(
            id=row.id,
            name=row.name,
            rarity=Rarity.parse(row.rarity),
            spawn_percentage=row.spawn_percentage,
            catch_percentage=row.catch_percentage,
            pull_weight=row.pull_weight,
            max_item_spawned=row.max_item_spawned,
        )


@dataclass(frozen=True)
class ClawMachineItemSpec:
    """An item placed in a claw machine; `claw_item_id` identifies the slot."""

    claw_item_id: int
    item: ItemSpec


@dataclass(frozen=True)
class ClawMachineSpec:
    id: int
    name: str
    price: int
    max_item: int
    items: Tuple[ClawMachineItemSpec, ...] = ()


@dataclass(frozen=True)
class GachaMachineSpec:
    id: int
    name: str
    price_single: int
    price_times_ten: int
    super_rare_pity: int
    ultra_rare_pity: int
    items: Tuple[ItemSpec, ...] = ()

    def price_for(self, pull_count: int) -> int:
        return self.price_times_ten if pull_count == 10 else self.price_single


@dataclass(frozen=True)
class PityState:
    super_rare: int = 0
    ultra_rare: int = 0


@dataclass(frozen=True)
class CatchVerdict:
    """
    Pre-rolled outcome for one claw item.

    Serialised as `{"itemID": ..., "name": ..., "success": ...}`.
    """

    item_id: int
    name: str
    success: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"itemID": self.item_id, "name": self.name, "success": self.success}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatchVerdict":
        return cls(
            item_id=int(data["itemID"]),
            name=str(data.get("name", "")),
            success=bool(data["success"]),
        )


@dataclass(frozen=True)
class PlayerInfo:
    id: int
    username: str


@dataclass(frozen=True)
class WalletSnapshot:
    """Balances composed with the base player record."""

    player: PlayerInfo
    coin: int
    diamond: int

    @property
    def player_id(self) -> int:
        return self.player.id


@dataclass(frozen=True)
class GameRecord:
    game_id: int
    claw_machine_id: int
    player_id: int
    success: bool
    item_records: Tuple[Tuple[int, bool], ...] = ()


@dataclass(frozen=True)
class GachaSession:
    id: int
    gacha_machine_id: int
    player_id: int
    pull_count: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "id": self.id,
            "gacha_machine_id": self.gacha_machine_id,
            "player_id": self.player_id,
            "pull_count": self.pull_count,
        }


@dataclass(frozen=True)
class StreamEntry:
    message_id: str
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LeaderboardRow:
    player_id: int
    username: str
    score: int
    rank: int


@dataclass(frozen=True)
class MoleWeight:
    id: int
    mole_type: str
    weight: int


# ============================================================================
# Contracts
# ============================================================================


class ClawCatalogue(abc.ABC):
    """Read access to claw machine configuration."""

    @abc.abstractmethod
    async def get_claw_machine(self, machine_id: int) -> ClawMachineSpec:
        """Raises NotFoundError on unknown ids."""


class GachaCatalogue(abc.ABC):
    """Read access to gacha machine configuration."""

    @abc.abstractmethod
    async def get_gacha_machine(self, machine_id: int) -> GachaMachineSpec:
        """Raises NotFoundError on unknown ids."""


class WalletStore(abc.ABC):
    """
    Player balances.

    `conditional_debit` is True for stores that implement
    `debit_coin_if_sufficient` atomically; callers prefer it when available.
    """

    conditional_debit: bool = False

    @abc.abstractmethod
    async def get_wallet(self, player_id: int) -> WalletSnapshot: ...

    @abc.abstractmethod
    async def adjust_coin(self, player_id: int, delta: int) -> int:
        """Apply `delta` unconditionally and return the new balance."""

    async def debit_coin_if_sufficient(self, player_id: int, amount: int) -> Optional[int]:
        """Debit iff balance >= amount; new balance, or None when insufficient."""
        raise NotImplementedError


class ClawHistorySink(abc.ABC):
    @abc.abstractmethod
    async def create_game_record(self, player_id: int, machine_id: int) -> int:
        """Persist a game header and return its game_id."""

    @abc.abstractmethod
    async def append_item_record(self, game_id: int, item_id: int, catched: bool) -> None: ...

    @abc.abstractmethod
    async def get_game_record(self, game_id: int) -> Optional[GameRecord]: ...


class GachaHistorySink(abc.ABC):
    @abc.abstractmethod
    async def create_pull_session(
        self, machine_id: int, player_id: int, pull_count: int
    ) -> GachaSession: ...

    @abc.abstractmethod
    async def write_pull_history(
        self,
        session: GachaSession,
        item_ids: Sequence[int],
        message_id: Optional[str] = None,
    ) -> int:
        """
        Write one history row per item id, skipping rows already present.

        Returns the number of rows inserted.
        """


class ResultCache(abc.ABC):
    @abc.abstractmethod
    async def put_verdicts(
        self, game_id: int, verdicts: Sequence[CatchVerdict], ttl_seconds: int
    ) -> None: ...

    @abc.abstractmethod
    async def get_verdicts(self, game_id: int) -> Optional[List[CatchVerdict]]: ...

    @abc.abstractmethod
    async def delete_verdicts(self, game_id: int) -> None: ...


class PityCache(abc.ABC):
    @abc.abstractmethod
    async def get(self, machine_id: int, player_id: int) -> Optional[PityState]: ...

    @abc.abstractmethod
    async def put(self, machine_id: int, player_id: int, state: PityState) -> None: ...

    @abc.abstractmethod
    async def invalidate(self, machine_id: int, player_id: int) -> None: ...


class PityStore(abc.ABC):
    @abc.abstractmethod
    async def load(self, machine_id: int, player_id: int) -> Optional[PityState]: ...

    @abc.abstractmethod
    async def save(self, machine_id: int, player_id: int, state: PityState) -> None: ...


class EventStream(abc.ABC):
    """Append-only log with consumer groups and at-least-once delivery."""

    @abc.abstractmethod
    async def append(self, fields: Mapping[str, str]) -> str: ...

    @abc.abstractmethod
    async def ensure_group(self, group: str) -> None:
        """Create the consumer group; an existing group is not an error."""

    @abc.abstractmethod
    async def read_group(
        self,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int],
        pending: bool = False,
    ) -> List[StreamEntry]:
        """
        Read entries for `consumer`.

        `pending=True` returns entries already delivered to this consumer but
        not acknowledged; otherwise new entries are read, blocking up to
        `block_ms`.
        """

    @abc.abstractmethod
    async def ack(self, group: str, message_id: str) -> None: ...


class LeaderboardStore(abc.ABC):
    @abc.abstractmethod
    async def recalculate_ranks(self, top_n: int) -> int:
        """Materialise ranks in one transaction; returns rows ranked."""

    @abc.abstractmethod
    async def get_row(self, player_id: int) -> Optional[LeaderboardRow]: ...

    @abc.abstractmethod
    async def set_score(self, player_id: int, score: int) -> LeaderboardRow:
        """
        Store `score` when it beats the stored one, atomically.

        A new row is created with rank 0. Raises InvalidOperationError when
        `score` is not strictly greater, NotFoundError for unknown players.
        """

    @abc.abstractmethod
    async def ranked_rows(self, limit: int) -> List[LeaderboardRow]: ...

    @abc.abstractmethod
    async def count_ahead(self, player_id: int, score: int) -> int:
        """Rows ordered before (score, player_id) in the leaderboard order."""


class MoleWeightStore(abc.ABC):
    @abc.abstractmethod
    async def list_weights(self) -> List[MoleWeight]:
        """All mole types ordered by id."""

    @abc.abstractmethod
    async def set_weight(self, mole_type: str, weight: int) -> MoleWeight:
        """Create or update the weight of a mole type."""
