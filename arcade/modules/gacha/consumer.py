"""
Gacha History Consumer

Purpose
-------
Drain gacha pull events from the Redis stream and persist them as
`GachaPullHistory` rows. This is the asynchronous write path for pull
history: the pull request only publishes, this consumer writes.

Consumes
--------
Stream `stream_consumer.stream_key`, field `data`:
    {"type": "gacha_event",
     "session": {"id", "gacha_machine_id", "player_id", "pull_count"},
     "item_ids": [...]}

Responsibilities
----------------
- Ensure the consumer group exists (an existing group is fine)
- Re-deliver this consumer's pending (unacked) entries before reading new ones
- Write the event's history rows, then ack: one row holding the last item id
  by default, one row per item id with `stream_consumer.write_all_items`
- Track metrics (received, persisted, acked, parse and write failures)

Non-Responsibilities
--------------------
- Publishing events (see `arcade.modules.gacha.events.publish_event`)
- Deciding pull outcomes

Delivery Semantics
------------------
- At-least-once: an entry is acked only after its rows are committed.
- A write failure leaves the entry pending; the next poll retries it after
  `stream_consumer.retry_backoff_seconds`.
- A malformed entry raises `StreamParseError`; it is logged, left unacked and
  parked for this process so it is not retried in a hot loop. Operators
  inspect it with XPENDING; a parked id is forgotten once it leaves the
  pending list.

Configuration Keys
------------------
- stream_consumer.consumer_group        : str (default "gacha-history-writers")
- stream_consumer.consumer_name         : str (default "consumer-1")
- stream_consumer.batch_size            : int (default 10)
- stream_consumer.block_timeout_seconds : int (default 5)
- stream_consumer.retry_backoff_seconds : int (default 1)
- stream_consumer.write_all_items       : bool (default false)

Example Usage
-------------
>>> consumer = GachaHistoryConsumer(stream, gacha_repository)
>>> await consumer.start()
>>> status = consumer.get_status()
>>> await consumer.stop()
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from arcade.core.config.manager import ConfigManager
from arcade.core.logging.logger import LogContext, get_logger
from arcade.modules.gacha.events import GachaEvent
from arcade.modules.shared.exceptions import StoreUnavailable, StreamParseError

if TYPE_CHECKING:
    from arcade.modules.shared.contracts import (
        EventStream,
        GachaHistorySink,
        StreamEntry,
    )

logger = get_logger(__name__)


@dataclass
class PollResult:
    received: int = 0
    persisted: int = 0
    parse_failures: int = 0
    write_failures: int = 0


class GachaHistoryConsumer:
    """Single-instance stream consumer for gacha pull history."""

    def __init__(
        self,
        stream: EventStream,
        history_sink: GachaHistorySink,
        config_manager: Any = ConfigManager,
    ) -> None:
        self._stream = stream
        self._sink = history_sink
        self._config = config_manager

        self._group = str(
            self._config.get("stream_consumer.consumer_group", "gacha-history-writers")
        )
        self._consumer = str(self._config.get("stream_consumer.consumer_name", "consumer-1"))
        self._batch_size = self._get_config_int("stream_consumer.batch_size", 10)
        self._block_timeout = self._get_config_int("stream_consumer.block_timeout_seconds", 5)
        self._retry_backoff = self._get_config_int("stream_consumer.retry_backoff_seconds", 1)
        self._write_all_items = bool(
            self._config.get("stream_consumer.write_all_items", False)
        )

        self._parked: Set[str] = set()
        self._group_ready = False

        self._is_running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task[None]] = None

        # Metrics
        self._messages_received = 0
        self._messages_persisted = 0
        self._rows_written = 0
        self._parse_failures = 0
        self._write_failures = 0
        self._polls = 0
        self._last_ack_time: Optional[float] = None

        logger.info(
            "GachaHistoryConsumer initialized",
            extra={
                "consumer_group": self._group,
                "consumer_name": self._consumer,
                "batch_size": self._batch_size,
                "block_timeout_seconds": self._block_timeout,
                "write_all_items": self._write_all_items,
            },
        )

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        if self._is_running:
            logger.warning("GachaHistoryConsumer already running")
            return

        await self.ensure_group()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))
        logger.info("GachaHistoryConsumer started")

    async def stop(self) -> None:
        """Signal the loop and wait for the current batch to finish."""
        if self._stop_event is None or self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self._block_timeout + 1)
        except asyncio.TimeoutError:
            # Blocked inside XREADGROUP with nothing in flight.
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        self._stop_event = None
        logger.info("GachaHistoryConsumer stopped", extra=self.get_status())

    async def ensure_group(self) -> None:
        await self._stream.ensure_group(self._group)
        self._group_ready = True

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until `stop_event` is set; the batch in flight always completes."""
        self._is_running = True
        try:
            if not self._group_ready:
                await self.ensure_group()

            while not stop_event.is_set():
                try:
                    result = await self.poll_once()
                except StoreUnavailable as exc:
                    logger.warning(
                        "Stream read failed; retrying after backoff",
                        extra={"error": str(exc), "backoff_seconds": self._retry_backoff},
                    )
                    await self._wait(stop_event, self._retry_backoff)
                    continue

                if result.write_failures:
                    await self._wait(stop_event, self._retry_backoff)
        finally:
            self._is_running = False

    @staticmethod
    async def _wait(stop_event: asyncio.Event, seconds: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ═══════════════════════════════════════════════════════════════════════
    # POLLING
    # ═══════════════════════════════════════════════════════════════════════

    async def poll_once(self) -> PollResult:
        """
        Process one batch: redelivered pending entries first, else new ones.

        Raises:
            StoreUnavailable: the stream read itself failed
        """
        self._polls += 1
        entries = await self._read_pending()
        if not entries:
            entries = await self._stream.read_group(
                self._group,
                self._consumer,
                count=self._batch_size,
                block_ms=self._block_timeout * 1000,
            )

        result = PollResult()
        for entry in entries:
            await self._process_entry(entry, result)
        return result

    async def _read_pending(self) -> List[StreamEntry]:
        count = self._batch_size + len(self._parked)
        pending = await self._stream.read_group(
            self._group,
            self._consumer,
            count=count,
            block_ms=None,
            pending=True,
        )
        if len(pending) < count:
            # Whole pending list seen: forget parked ids an operator acked or claimed.
            self._parked &= {e.message_id for e in pending}
        return [e for e in pending if e.message_id not in self._parked][: self._batch_size]

    async def _process_entry(self, entry: StreamEntry, result: PollResult) -> None:
        self._messages_received += 1
        result.received += 1

        try:
            event = GachaEvent.from_entry(entry)
        except StreamParseError as exc:
            self._parse_failures += 1
            result.parse_failures += 1
            self._parked.add(entry.message_id)
            logger.error(
                "Malformed gacha event left unacked",
                extra={"message_id": entry.message_id, "reason": exc.reason},
            )
            return

        start_time = time.monotonic()
        with LogContext(
            player_id=event.session.player_id,
            machine_id=event.session.gacha_machine_id,
            operation="gacha_history_write",
        ):
            try:
                rows = await self._sink.write_pull_history(
                    event.session,
                    event.history_item_ids(self._write_all_items),
                    message_id=entry.message_id,
                )
            except StoreUnavailable as exc:
                self._write_failures += 1
                result.write_failures += 1
                logger.warning(
                    "Gacha history write failed; entry stays pending",
                    extra={
                        "message_id": entry.message_id,
                        "session_id": event.session.id,
                        "error": str(exc),
                    },
                )
                return

            await self._stream.ack(self._group, entry.message_id)

        self._messages_persisted += 1
        self._rows_written += rows
        self._last_ack_time = time.time()
        result.persisted += 1

        logger.debug(
            "Gacha event persisted",
            extra={
                "message_id": entry.message_id,
                "session_id": event.session.id,
                "rows": rows,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self._is_running,
            "consumer_group": self._group,
            "consumer_name": self._consumer,
            "messages_received": self._messages_received,
            "messages_persisted": self._messages_persisted,
            "rows_written": self._rows_written,
            "parse_failures": self._parse_failures,
            "write_failures": self._write_failures,
            "parked": len(self._parked),
            "polls": self._polls,
            "last_ack_time": self._last_ack_time,
        }

    def _get_config_int(self, key: str, default: int) -> int:
        val = self._config.get(key, default)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        logger.warning(
            "Invalid integer config value, using default",
            extra={"config_key": key, "value": val, "default": default},
        )
        return default
