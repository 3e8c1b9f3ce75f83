"""
Binary envelope and payload codec for game clients.

Wire Format
-----------
All integers are little-endian with explicit widths.

    envelope := u16 type | u32 payload_len | payload
    string   := u32 byte_len | utf-8 bytes
    list     := u32 count | element*
    bool     := 1 byte (0 or 1)

Payloads are records whose fields are written in declaration order; a
record nested in a list is written inline. Requests use odd type numbers,
responses even ones, `ErrorResp` is 255.

Usage
-----
    raw = StartClawGameReq(player_id=7, machine_id=1).to_envelope()
    message_type, payload = decode_envelope(raw)
    request = StartClawGameReq.decode(payload)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, ClassVar, Dict, Sequence, Tuple, Type, TypeVar

R = TypeVar("R", bound="Record")


class MessageType(IntEnum):
    START_CLAW_GAME_REQ = 1
    START_CLAW_GAME_RESP = 2
    ADD_TOUCHED_ITEM_RECORD_REQ = 3
    ADD_TOUCHED_ITEM_RECORD_RESP = 4
    SPAWN_ITEM_REQ = 5
    SPAWN_ITEM_RESP = 6
    GET_PLAYER_INFO_WS_REQ = 7
    GET_PLAYER_INFO_WS_RESP = 8
    GET_PULL_RESULT_WS_REQ = 9
    GET_PULL_RESULT_WS_RESP = 10
    GET_MACHINE_INFO_WS_REQ = 11
    GET_MACHINE_INFO_WS_RESP = 12
    GET_MOLE_WEIGHT_REQ = 13
    GET_MOLE_WEIGHT_RESP = 14
    GET_LEADERBOARD_REQ = 15
    GET_LEADERBOARD_RESP = 16
    ERROR_RESP = 255


class ProtocolError(ValueError):
    """Raised when bytes cannot be encoded to or decoded from the wire format."""


# ============================================================================
# Field codecs
# ============================================================================


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ProtocolError(
                f"truncated payload: need {size} bytes at offset {self._pos}"
            )
        chunk = self._data[self._pos : end].tobytes()
        self._pos = end
        return chunk

    def unpack(self, codec: struct.Struct) -> Any:
        return codec.unpack(self.take(codec.size))[0]

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise ProtocolError(f"{len(self._data) - self._pos} trailing bytes in payload")


class _Scalar:
    def __init__(self, fmt: str) -> None:
        self._struct = struct.Struct("<" + fmt)

    def write(self, out: bytearray, value: Any) -> None:
        try:
            out += self._struct.pack(value)
        except struct.error as exc:
            raise ProtocolError(f"cannot encode {value!r}: {exc}") from exc

    def read(self, reader: _Reader) -> Any:
        return reader.unpack(self._struct)


U32_LEN = _Scalar("I")


class _String:
    def write(self, out: bytearray, value: str) -> None:
        encoded = value.encode("utf-8")
        U32_LEN.write(out, len(encoded))
        out += encoded

    def read(self, reader: _Reader) -> str:
        size = U32_LEN.read(reader)
        try:
            return reader.take(size).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"invalid utf-8 string: {exc}") from exc


class _List:
    def __init__(self, element: Any) -> None:
        self._element = element

    def write(self, out: bytearray, values: Sequence[Any]) -> None:
        U32_LEN.write(out, len(values))
        for value in values:
            self._element.write(out, value)

    def read(self, reader: _Reader) -> Tuple[Any, ...]:
        count = U32_LEN.read(reader)
        return tuple(self._element.read(reader) for _ in range(count))


class _Nested:
    def __init__(self, record: Type["Record"]) -> None:
        self._record = record

    def write(self, out: bytearray, value: "Record") -> None:
        value._write(out)

    def read(self, reader: _Reader) -> "Record":
        return self._record._read(reader)


BOOL = _Scalar("?")
I32 = _Scalar("i")
U32 = _Scalar("I")
I64 = _Scalar("q")
U64 = _Scalar("Q")
STRING = _String()


def list_of(element: Any) -> _List:
    return _List(element)


def nested(record: Type["Record"]) -> _Nested:
    return _Nested(record)


# ============================================================================
# Records
# ============================================================================


class Record:
    """Dataclass base whose fields map one-to-one onto `FIELDS` codecs."""

    FIELDS: ClassVar[Dict[str, Any]] = {}

    def _write(self, out: bytearray) -> None:
        for name, codec in self.FIELDS.items():
            codec.write(out, getattr(self, name))

    @classmethod
    def _read(cls: Type[R], reader: _Reader) -> R:
        values = {name: codec.read(reader) for name, codec in cls.FIELDS.items()}
        return cls(**values)

    def encode(self) -> bytes:
        out = bytearray()
        self._write(out)
        return bytes(out)

    @classmethod
    def decode(cls: Type[R], payload: bytes) -> R:
        reader = _Reader(payload)
        record = cls._read(reader)
        reader.finish()
        return record


class Message(Record):
    MESSAGE_TYPE: ClassVar[MessageType]

    def to_envelope(self) -> bytes:
        return encode_envelope(self.MESSAGE_TYPE, self.encode())


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClawResult(Record):
    item_id: int
    catched: bool

    FIELDS = {"item_id": U64, "catched": BOOL}


@dataclass(frozen=True)
class MachineItem(Record):
    item_id: int
    name: str
    rarity: str
    pull_weight: int

    FIELDS = {"item_id": U64, "name": STRING, "rarity": STRING, "pull_weight": I32}


@dataclass(frozen=True)
class MoleWeightEntry(Record):
    mole_type: str
    weight: int

    FIELDS = {"mole_type": STRING, "weight": I32}


@dataclass(frozen=True)
class LeaderboardPlayer(Record):
    rank: int
    player_id: int
    username: str
    score: int

    FIELDS = {"rank": I32, "player_id": U64, "username": STRING, "score": I64}


# ---------------------------------------------------------------------------
# Claw machine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartClawGameReq(Message):
    player_id: int
    machine_id: int

    MESSAGE_TYPE = MessageType.START_CLAW_GAME_REQ
    FIELDS = {"player_id": U64, "machine_id": U64}


@dataclass(frozen=True)
class StartClawGameResp(Message):
    game_id: int
    results: Tuple[ClawResult, ...] = ()

    MESSAGE_TYPE = MessageType.START_CLAW_GAME_RESP
    FIELDS = {"game_id": U64, "results": list_of(nested(ClawResult))}


@dataclass(frozen=True)
class AddTouchedItemRecordReq(Message):
    game_id: int
    item_id: int
    catched: bool

    MESSAGE_TYPE = MessageType.ADD_TOUCHED_ITEM_RECORD_REQ
    FIELDS = {"game_id": U64, "item_id": U64, "catched": BOOL}


@dataclass(frozen=True)
class AddTouchedItemRecordResp(Message):
    game_id: int
    item_id: int
    catched: bool

    MESSAGE_TYPE = MessageType.ADD_TOUCHED_ITEM_RECORD_RESP
    FIELDS = {"game_id": U64, "item_id": U64, "catched": BOOL}


@dataclass(frozen=True)
class SpawnItemReq(Message):
    machine_id: int

    MESSAGE_TYPE = MessageType.SPAWN_ITEM_REQ
    FIELDS = {"machine_id": U64}


@dataclass(frozen=True)
class SpawnItemResp(Message):
    items: Tuple[int, ...] = ()

    MESSAGE_TYPE = MessageType.SPAWN_ITEM_RESP
    FIELDS = {"items": list_of(U64)}


# ---------------------------------------------------------------------------
# Player
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GetPlayerInfoWsReq(Message):
    player_id: int

    MESSAGE_TYPE = MessageType.GET_PLAYER_INFO_WS_REQ
    FIELDS = {"player_id": U64}


@dataclass(frozen=True)
class GetPlayerInfoWsResp(Message):
    player_id: int
    username: str
    coin: int
    diamond: int

    MESSAGE_TYPE = MessageType.GET_PLAYER_INFO_WS_RESP
    FIELDS = {"player_id": U64, "username": STRING, "coin": I64, "diamond": I64}


# ---------------------------------------------------------------------------
# Gacha machine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GetPullResultWsReq(Message):
    player_id: int
    machine_id: int
    pull_count: int

    MESSAGE_TYPE = MessageType.GET_PULL_RESULT_WS_REQ
    FIELDS = {"player_id": U64, "machine_id": U64, "pull_count": I32}


@dataclass(frozen=True)
class GetPullResultWsResp(Message):
    item_ids: Tuple[int, ...] = ()

    MESSAGE_TYPE = MessageType.GET_PULL_RESULT_WS_RESP
    FIELDS = {"item_ids": list_of(U64)}


@dataclass(frozen=True)
class GetMachineInfoWsReq(Message):
    machine_id: int

    MESSAGE_TYPE = MessageType.GET_MACHINE_INFO_WS_REQ
    FIELDS = {"machine_id": U64}


@dataclass(frozen=True)
class GetMachineInfoWsResp(Message):
    machine_id: int
    name: str
    price: int
    price_times_ten: int
    super_rare_pity: int
    ultra_rare_pity: int
    items: Tuple[MachineItem, ...] = ()

    MESSAGE_TYPE = MessageType.GET_MACHINE_INFO_WS_RESP
    FIELDS = {
        "machine_id": U64,
        "name": STRING,
        "price": I64,
        "price_times_ten": I64,
        "super_rare_pity": I32,
        "ultra_rare_pity": I32,
        "items": list_of(nested(MachineItem)),
    }


# ---------------------------------------------------------------------------
# Whack-a-mole
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GetMoleWeightReq(Message):
    MESSAGE_TYPE = MessageType.GET_MOLE_WEIGHT_REQ
    FIELDS: ClassVar[Dict[str, Any]] = {}


@dataclass(frozen=True)
class GetMoleWeightResp(Message):
    moles: Tuple[MoleWeightEntry, ...] = ()

    MESSAGE_TYPE = MessageType.GET_MOLE_WEIGHT_RESP
    FIELDS = {"moles": list_of(nested(MoleWeightEntry))}


@dataclass(frozen=True)
class GetLeaderboardReq(Message):
    player_id: int = 0
    limit: int = 0

    MESSAGE_TYPE = MessageType.GET_LEADERBOARD_REQ
    FIELDS = {"player_id": U64, "limit": U32}


@dataclass(frozen=True)
class GetLeaderboardResp(Message):
    top_players: Tuple[LeaderboardPlayer, ...] = ()
    your_rank: int = 0
    your_score: int = 0

    MESSAGE_TYPE = MessageType.GET_LEADERBOARD_RESP
    FIELDS = {
        "top_players": list_of(nested(LeaderboardPlayer)),
        "your_rank": I32,
        "your_score": I64,
    }


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorResp(Message):
    code: int
    message: str

    MESSAGE_TYPE = MessageType.ERROR_RESP
    FIELDS = {"code": I32, "message": STRING}


MESSAGES: Dict[MessageType, Type[Message]] = {
    cls.MESSAGE_TYPE: cls
    for cls in (
        StartClawGameReq,
        StartClawGameResp,
        AddTouchedItemRecordReq,
        AddTouchedItemRecordResp,
        SpawnItemReq,
        SpawnItemResp,
        GetPlayerInfoWsReq,
        GetPlayerInfoWsResp,
        GetPullResultWsReq,
        GetPullResultWsResp,
        GetMachineInfoWsReq,
        GetMachineInfoWsResp,
        GetMoleWeightReq,
        GetMoleWeightResp,
        GetLeaderboardReq,
        GetLeaderboardResp,
        ErrorResp,
    )
}


# ============================================================================
# Envelope
# ============================================================================

_HEADER = struct.Struct("<HI")


def encode_envelope(message_type: int, payload: bytes) -> bytes:
    try:
        return _HEADER.pack(int(message_type), len(payload)) + payload
    except struct.error as exc:
        raise ProtocolError(f"cannot encode envelope: {exc}") from exc


def decode_envelope(data: bytes) -> Tuple[int, bytes]:
    """
    Split raw bytes into (type, payload).

    The type is returned as a plain int so unknown tags reach the caller.

    Raises:
        ProtocolError: header truncated or length mismatch
    """
    if len(data) < _HEADER.size:
        raise ProtocolError("truncated envelope header")
    message_type, size = _HEADER.unpack_from(data)
    payload = bytes(data[_HEADER.size :])
    if len(payload) != size:
        raise ProtocolError(
            f"envelope declares {size} payload bytes, got {len(payload)}"
        )
    return message_type, payload


def decode_message(data: bytes) -> Message:
    """Decode an envelope into its payload record."""
    message_type, payload = decode_envelope(data)
    try:
        cls = MESSAGES[MessageType(message_type)]
    except ValueError as exc:
        raise ProtocolError(f"unknown message type {message_type}") from exc
    return cls.decode(payload)
