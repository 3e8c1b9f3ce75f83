"""
Gacha pull events and the Redis stream that carries them.

Wire format
-----------
Each stream entry has a single field `data` holding JSON:

    {"type": "gacha_event",
     "session": {"id", "gacha_machine_id", "player_id", "pull_count"},
     "item_ids": [int, ...]}

One consolidated event per pull request. `decode` also accepts a single
`item_id` field so per-sub-pull events parse to a one-element list.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import ResponseError

from arcade.core.logging.logger import get_logger
from arcade.core.redis.service import RedisService
from arcade.modules.shared.contracts import EventStream, GachaSession, StreamEntry
from arcade.modules.shared.exceptions import StreamParseError
from arcade.modules.shared.store_errors import translate_store_errors

logger = get_logger(__name__)

EVENT_TYPE = "gacha_event"
DATA_FIELD = "data"


@dataclass(frozen=True)
class GachaEvent:
    session: GachaSession
    item_ids: Tuple[int, ...]

    def to_fields(self) -> dict[str, str]:
        payload = {
            "type": EVENT_TYPE,
            "session": self.session.to_dict(),
            "item_ids": list(self.item_ids),
        }
        return {DATA_FIELD: json.dumps(payload, separators=(",", ":"))}

    def history_item_ids(self, write_all_items: bool = False) -> Tuple[int, ...]:
        """
        Item ids that become history rows for this event.

        By default only the last item id is kept: one row per event, even for
        a ten-pull. `write_all_items` writes one row per item id instead.
        """
        # FLAG: one row per event drops nine of ten items from a ten-pull's
        # history. Kept as the default to match existing history data; switch
        # with stream_consumer.write_all_items once the intended granularity
        # is confirmed.
        if write_all_items:
            return self.item_ids
        return self.item_ids[-1:]

    @classmethod
    def from_entry(cls, entry: StreamEntry) -> "GachaEvent":
        """
        Raises:
            StreamParseError: missing `data`, bad JSON, wrong type or shape
        """
        raw = entry.fields.get(DATA_FIELD)
        if raw is None:
            raise StreamParseError(entry.message_id, "missing 'data' field")

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StreamParseError(entry.message_id, f"invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise StreamParseError(entry.message_id, "payload is not an object")
        if payload.get("type") != EVENT_TYPE:
            raise StreamParseError(
                entry.message_id, f"unexpected event type {payload.get('type')!r}"
            )

        try:
            session = _parse_session(payload["session"])
            item_ids = _parse_item_ids(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise StreamParseError(entry.message_id, f"malformed event: {exc}") from exc

        if not item_ids:
            raise StreamParseError(entry.message_id, "event carries no item ids")
        return cls(session=session, item_ids=item_ids)


def _parse_session(raw: Mapping[str, Any]) -> GachaSession:
    return GachaSession(
        id=int(raw["id"]),
        gacha_machine_id=int(raw["gacha_machine_id"]),
        player_id=int(raw["player_id"]),
        pull_count=int(raw["pull_count"]),
    )


def _parse_item_ids(payload: Mapping[str, Any]) -> Tuple[int, ...]:
    if "item_ids" in payload:
        ids = payload["item_ids"]
        if not isinstance(ids, list):
            raise TypeError("item_ids is not a list")
        return tuple(int(i) for i in ids)
    return (int(payload["item_id"]),)


async def publish_event(stream: EventStream, event: GachaEvent) -> str:
    """Append `event` to `stream`; returns the message id."""
    message_id = await stream.append(event.to_fields())
    logger.debug(
        "Gacha event published",
        extra={
            "message_id": message_id,
            "session_id": event.session.id,
            "items": len(event.item_ids),
        },
    )
    return message_id


class RedisGachaEventStream(EventStream):
    """Redis stream with consumer groups (XADD / XREADGROUP / XACK)."""

    def __init__(
        self,
        stream_key: str,
        client_factory: Callable[[], AsyncRedis] = RedisService.client,
        max_length: Optional[int] = None,
    ) -> None:
        self.stream_key = stream_key
        self._client = client_factory
        self._max_length = max_length

    async def append(self, fields: Mapping[str, str]) -> str:
        with translate_store_errors("redis", "stream_append"):
            message_id = await self._client().xadd(
                self.stream_key,
                dict(fields),
                maxlen=self._max_length,
                approximate=True,
            )
        return str(message_id)

    async def ensure_group(self, group: str) -> None:
        with translate_store_errors("redis", "stream_group_create"):
            try:
                await self._client().xgroup_create(
                    self.stream_key, group, id="0", mkstream=True
                )
            except ResponseError as exc:
                if "BUSYGROUP" not in str(exc):
                    raise
                logger.debug(
                    "Consumer group already exists",
                    extra={"stream_key": self.stream_key, "group": group},
                )

    async def read_group(
        self,
        group: str,
        consumer: str,
        count: int,
        block_ms: Optional[int],
        pending: bool = False,
    ) -> List[StreamEntry]:
        with translate_store_errors("redis", "stream_read"):
            response = await self._client().xreadgroup(
                group,
                consumer,
                {self.stream_key: "0" if pending else ">"},
                count=count,
                block=None if pending else block_ms,
            )

        entries: List[StreamEntry] = []
        for _stream, messages in response or []:
            for message_id, fields in messages:
                # Pending reads return deleted entries with empty fields.
                entries.append(StreamEntry(message_id=str(message_id), fields=dict(fields or {})))
        return entries

    async def ack(self, group: str, message_id: str) -> None:
        with translate_store_errors("redis", "stream_ack"):
            await self._client().xack(self.stream_key, group, message_id)
