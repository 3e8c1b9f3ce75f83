"""
In-memory implementations of the store contracts.

Each fake keeps its state in plain dicts and lists so tests can assert on it
directly. `fail_*` attributes make the next call(s) raise `StoreUnavailable`.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from arcade.modules.shared.contracts import (
    CatchVerdict,
    ClawCatalogue,
    ClawHistorySink,
    ClawMachineSpec,
    EventStream,
    GachaCatalogue,
    GachaHistorySink,
    GachaMachineSpec,
    GachaSession,
    GameRecord,
    MoleWeight,
    MoleWeightStore,
    PityCache,
    PityState,
    PityStore,
    PlayerInfo,
    ResultCache,
    StreamEntry,
    WalletSnapshot,
    WalletStore,
)
from arcade.modules.shared.exceptions import NotFoundError, StoreUnavailable


class FakeClawCatalogue(ClawCatalogue):
    def __init__(self) -> None:
        self.machines: Dict[int, ClawMachineSpec] = {}

    def add(self, machine: ClawMachineSpec) -> ClawMachineSpec:
        self.machines[machine.id] = machine
        return machine

    async def get_claw_machine(self, machine_id: int) -> ClawMachineSpec:
        try:
            return self.machines[machine_id]
        except KeyError:
            raise NotFoundError("ClawMachine", machine_id) from None


class FakeGachaCatalogue(GachaCatalogue):
    def __init__(self) -> None:
        self.machines: Dict[int, GachaMachineSpec] = {}

    def add(self, machine: GachaMachineSpec) -> GachaMachineSpec:
        self.machines[machine.id] = machine
        return machine

    async def get_gacha_machine(self, machine_id: int) -> GachaMachineSpec:
        try:
            return self.machines[machine_id]
        except KeyError:
            raise NotFoundError("GachaMachine", machine_id) from None


class FakeWallet(WalletStore):
    """
    `conditional_debit=False` exercises the debit-then-revert path; that
    store lets the balance go negative like a plain counter would.
    """

    def __init__(self, conditional_debit: bool = True) -> None:
        self.conditional_debit = conditional_debit
        self.players: Dict[int, str] = {}
        self.coin: Dict[int, int] = {}
        self.diamond: Dict[int, int] = {}
        self.adjustments: List[Tuple[int, int]] = []
        self.fail_adjust = False

    def add_player(self, player_id: int, coin: int, username: str = "", diamond: int = 0) -> None:
        self.players[player_id] = username or f"player-{player_id}"
        self.coin[player_id] = coin
        self.diamond[player_id] = diamond

    def _require(self, player_id: int) -> None:
        if player_id not in self.players:
            raise NotFoundError("Player", player_id)

    async def get_wallet(self, player_id: int) -> WalletSnapshot:
        self._require(player_id)
        return WalletSnapshot(
            player=PlayerInfo(id=player_id, username=self.players[player_id]),
            coin=self.coin[player_id],
            diamond=self.diamond[player_id],
        )

    async def adjust_coin(self, player_id: int, delta: int) -> int:
        if self.fail_adjust:
            raise StoreUnavailable("database", "adjust_coin")
        self._require(player_id)
        self.coin[player_id] += delta
        self.adjustments.append((player_id, delta))
        return self.coin[player_id]

    async def debit_coin_if_sufficient(self, player_id: int, amount: int) -> Optional[int]:
        if self.fail_adjust:
            raise StoreUnavailable("database", "debit_coin")
        self._require(player_id)
        if self.coin[player_id] < amount:
            return None
        self.coin[player_id] -= amount
        self.adjustments.append((player_id, -amount))
        return self.coin[player_id]


class FakeClawHistory(ClawHistorySink):
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.games: Dict[int, Tuple[int, int]] = {}
        self.records: Dict[int, List[Tuple[int, bool]]] = {}
        self.fail_create = False

    async def create_game_record(self, player_id: int, machine_id: int) -> int:
        if self.fail_create:
            raise StoreUnavailable("database", "create_game_record")
        game_id = next(self._ids)
        self.games[game_id] = (player_id, machine_id)
        self.records[game_id] = []
        return game_id

    async def append_item_record(self, game_id: int, item_id: int, catched: bool) -> None:
        if game_id not in self.games:
            raise NotFoundError("ClawMachineGameRecord", game_id)
        self.records[game_id].append((item_id, catched))

    async def get_game_record(self, game_id: int) -> Optional[GameRecord]:
        if game_id not in self.games:
            return None
        player_id, machine_id = self.games[game_id]
        records = tuple(self.records[game_id])
        return GameRecord(
            game_id=game_id,
            claw_machine_id=machine_id,
            player_id=player_id,
            success=any(catched for _, catched in records),
            item_records=records,
        )


class FakeResultCache(ResultCache):
    def __init__(self) -> None:
        self.entries: Dict[int, List[CatchVerdict]] = {}
        self.ttls: Dict[int, int] = {}
        self.fail_put = False

    async def put_verdicts(
        self, game_id: int, verdicts: Sequence[CatchVerdict], ttl_seconds: int
    ) -> None:
        if self.fail_put:
            raise StoreUnavailable("redis", "put_verdicts")
        self.entries[game_id] = list(verdicts)
        self.ttls[game_id] = ttl_seconds

    async def get_verdicts(self, game_id: int) -> Optional[List[CatchVerdict]]:
        verdicts = self.entries.get(game_id)
        return list(verdicts) if verdicts is not None else None

    async def delete_verdicts(self, game_id: int) -> None:
        self.entries.pop(game_id, None)
        self.ttls.pop(game_id, None)

    def expire(self, game_id: int) -> None:
        self.entries.pop(game_id, None)


class FakeGachaHistory(GachaHistorySink):
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.sessions: Dict[int, GachaSession] = {}
        self.rows: Dict[Tuple[int, int], int] = {}
        self.fail_writes = 0
        self.fail_create = False

    async def create_pull_session(
        self, machine_id: int, player_id: int, pull_count: int
    ) -> GachaSession:
        if self.fail_create:
            raise StoreUnavailable("database", "create_pull_session")
        session = GachaSession(
            id=next(self._ids),
            gacha_machine_id=machine_id,
            player_id=player_id,
            pull_count=pull_count,
        )
        self.sessions[session.id] = session
        return session

    async def write_pull_history(
        self,
        session: GachaSession,
        item_ids: Sequence[int],
        message_id: Optional[str] = None,
    ) -> int:
        if self.fail_writes:
            self.fail_writes -= 1
            raise StoreUnavailable("database", "write_pull_history")
        inserted = 0
        for pull_index, item_id in enumerate(item_ids):
            if (session.id, pull_index) in self.rows:
                continue
            self.rows[(session.id, pull_index)] = item_id
            inserted += 1
        return inserted

    def items_for(self, session_id: int) -> List[int]:
        return [
            item_id
            for (sid, _), item_id in sorted(self.rows.items())
            if sid == session_id
        ]


class FakePityStore(PityStore):
    def __init__(self) -> None:
        self.states: Dict[Tuple[int, int], PityState] = {}
        self.saves = 0
        self.fail_save = False

    async def load(self, machine_id: int, player_id: int) -> Optional[PityState]:
        return self.states.get((machine_id, player_id))

    async def save(self, machine_id: int, player_id: int, state: PityState) -> None:
        if self.fail_save:
            raise StoreUnavailable("database", "pity_commit")
        self.states[(machine_id, player_id)] = state
        self.saves += 1


class FakePityCache(PityCache):
    def __init__(self) -> None:
        self.states: Dict[Tuple[int, int], PityState] = {}
        self.staged: List[PityState] = []
        self.fail_put = False

    async def get(self, machine_id: int, player_id: int) -> Optional[PityState]:
        return self.states.get((machine_id, player_id))

    async def put(self, machine_id: int, player_id: int, state: PityState) -> None:
        if self.fail_put:
            raise StoreUnavailable("redis", "pity_stage")
        self.states[(machine_id, player_id)] = state
        self.staged.append(state)

    async def invalidate(self, machine_id: int, player_id: int) -> None:
        self.states.pop((machine_id, player_id), None)


class FakeEventStream(EventStream):
    """
    Single-group stream with per-consumer pending lists.

    `read_group(pending=False)` delivers undelivered entries and moves them to
    the consumer's pending list; `ack` removes them from it.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.entries: List[StreamEntry] = []
        self.groups: Set[str] = set()
        self.delivered = 0
        self.pending: Dict[str, List[str]] = {}
        self.acked: List[str] = []
        self.fail_append = False
        self.fail_read = 0

    async def append(self, fields: Mapping[str, str]) -> str:
        if self.fail_append:
            raise StoreUnavailable("redis", "stream_append")
        message_id = f"{next(self._ids)}-0"
        self.entries.append(StreamEntry(message_id=message_id, fields=dict(fields)))
        return message_id

    async def ensure_group(self, group: str) -> None:
        self.groups.add(group)

    async def read_group(
        self,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int],
        pending: bool = False,
    ) -> List[StreamEntry]:
        if self.fail_read:
            self.fail_read -= 1
            raise StoreUnavailable("redis", "stream_read")
        if group not in self.groups:
            raise StoreUnavailable("redis", "stream_read", "NOGROUP")

        mine = self.pending.setdefault(consumer, [])
        if pending:
            by_id = {e.message_id: e for e in self.entries}
            return [by_id[m] for m in mine[:count]]

        batch = self.entries[self.delivered : self.delivered + count]
        if not batch and block_ms:
            await asyncio.sleep(min(block_ms, 10) / 1000)
        self.delivered += len(batch)
        mine.extend(e.message_id for e in batch)
        return list(batch)

    async def ack(self, group: str, message_id: str) -> None:
        for ids in self.pending.values():
            if message_id in ids:
                ids.remove(message_id)
        self.acked.append(message_id)


class FakeMoleWeightStore(MoleWeightStore):
    def __init__(self, weights: Optional[Sequence[Tuple[str, int]]] = None) -> None:
        self.weights: List[MoleWeight] = [
            MoleWeight(id=i, mole_type=mole_type, weight=weight)
            for i, (mole_type, weight) in enumerate(weights or (), start=1)
        ]

    async def list_weights(self) -> List[MoleWeight]:
        return list(self.weights)

    async def set_weight(self, mole_type: str, weight: int) -> MoleWeight:
        for index, existing in enumerate(self.weights):
            if existing.mole_type == mole_type:
                updated = MoleWeight(id=existing.id, mole_type=mole_type, weight=weight)
                self.weights[index] = updated
                return updated
        created = MoleWeight(id=len(self.weights) + 1, mole_type=mole_type, weight=weight)
        self.weights.append(created)
        return created
