"""
Unit tests for GachaHistoryConsumer.

Covers at-least-once delivery: pending redelivery, parse-failure parking,
write failures left unacked and idempotent history writes.
"""

import asyncio

import pytest

from arcade.core.config.manager import ConfigManager
from arcade.modules.gacha.consumer import GachaHistoryConsumer
from arcade.modules.gacha.events import GachaEvent
from arcade.modules.shared.contracts import GachaSession
from arcade.modules.shared.exceptions import StoreUnavailable


def _session(session_id: int = 1) -> GachaSession:
    return GachaSession(id=session_id, gacha_machine_id=2, player_id=3, pull_count=1)


@pytest.fixture
async def consumer(event_stream, gacha_history):
    consumer = GachaHistoryConsumer(event_stream, gacha_history, ConfigManager)
    await consumer.ensure_group()
    return consumer


class TestPollOnce:
    """Test one batch at a time."""

    async def test_persists_and_acks_new_entries(self, consumer, event_stream, gacha_history):
        first = await event_stream.append(GachaEvent(_session(1), (10,)).to_fields())
        second = await event_stream.append(GachaEvent(_session(2), (11, 12)).to_fields())

        result = await consumer.poll_once()

        assert result.received == 2
        assert result.persisted == 2
        assert event_stream.acked == [first, second]
        assert gacha_history.items_for(1) == [10]
        assert gacha_history.items_for(2) == [12]
        assert event_stream.pending["consumer-1"] == []

    async def test_ten_pull_event_writes_last_item_by_default(
        self, consumer, event_stream, gacha_history
    ):
        await event_stream.append(GachaEvent(_session(), tuple(range(10, 20))).to_fields())

        await consumer.poll_once()

        assert gacha_history.items_for(1) == [19]
        assert consumer.get_status()["rows_written"] == 1

    async def test_write_all_items_writes_one_row_per_item(self, event_stream, gacha_history):
        ConfigManager.override("stream_consumer.write_all_items", True)
        consumer = GachaHistoryConsumer(event_stream, gacha_history, ConfigManager)
        await consumer.ensure_group()
        await event_stream.append(GachaEvent(_session(), tuple(range(10, 20))).to_fields())

        await consumer.poll_once()

        assert gacha_history.items_for(1) == list(range(10, 20))
        assert consumer.get_status()["rows_written"] == 10

    async def test_empty_stream_yields_empty_result(self, consumer):
        result = await consumer.poll_once()

        assert result.received == 0
        assert consumer.get_status()["polls"] == 1

    async def test_write_failure_leaves_entry_pending_then_retries(
        self, consumer, event_stream, gacha_history
    ):
        message_id = await event_stream.append(GachaEvent(_session(), (10,)).to_fields())
        gacha_history.fail_writes = 1

        first = await consumer.poll_once()

        assert first.write_failures == 1
        assert event_stream.acked == []
        assert event_stream.pending["consumer-1"] == [message_id]

        second = await consumer.poll_once()

        assert second.persisted == 1
        assert event_stream.acked == [message_id]
        assert gacha_history.items_for(1) == [10]

    async def test_malformed_entry_is_parked_and_not_acked(
        self, consumer, event_stream, gacha_history
    ):
        bad = await event_stream.append({"data": "not json"})
        good = await event_stream.append(GachaEvent(_session(), (10,)).to_fields())

        result = await consumer.poll_once()

        assert result.parse_failures == 1
        assert result.persisted == 1
        assert event_stream.acked == [good]
        assert bad in event_stream.pending["consumer-1"]

        again = await consumer.poll_once()

        assert again.received == 0
        assert consumer.get_status()["parked"] == 1
        assert consumer.get_status()["parse_failures"] == 1

    async def test_parked_id_is_forgotten_once_acked_elsewhere(self, consumer, event_stream):
        bad = await event_stream.append({"data": "not json"})
        await consumer.poll_once()
        assert consumer.get_status()["parked"] == 1

        # Operator acks the poison entry by hand.
        await event_stream.ack("gacha-history-writers", bad)
        await consumer.poll_once()

        assert consumer.get_status()["parked"] == 0

    async def test_redelivered_event_does_not_duplicate_history(
        self, consumer, event_stream, gacha_history
    ):
        fields = GachaEvent(_session(), (10, 11)).to_fields()
        await event_stream.append(fields)
        await event_stream.append(fields)

        await consumer.poll_once()

        assert gacha_history.items_for(1) == [11]
        assert consumer.get_status()["rows_written"] == 1
        assert consumer.get_status()["messages_persisted"] == 2

    async def test_read_failure_propagates(self, consumer, event_stream):
        event_stream.fail_read = 1

        with pytest.raises(StoreUnavailable):
            await consumer.poll_once()


class TestLifecycle:
    """Test the background loop."""

    async def test_start_drains_stream_and_stop_finishes(self, event_stream, gacha_history):
        consumer = GachaHistoryConsumer(event_stream, gacha_history, ConfigManager)
        await event_stream.append(GachaEvent(_session(), (10,)).to_fields())

        await consumer.start()
        assert "gacha-history-writers" in event_stream.groups

        for _ in range(200):
            if consumer.get_status()["messages_persisted"]:
                break
            await asyncio.sleep(0.01)
        await consumer.stop()

        status = consumer.get_status()
        assert status["messages_persisted"] == 1
        assert status["is_running"] is False
        assert gacha_history.items_for(1) == [10]

    async def test_read_failures_back_off_and_recover(self, event_stream, gacha_history):
        ConfigManager.override("stream_consumer.retry_backoff_seconds", 0)
        consumer = GachaHistoryConsumer(event_stream, gacha_history, ConfigManager)
        await event_stream.append(GachaEvent(_session(), (10,)).to_fields())
        event_stream.fail_read = 2

        await consumer.start()
        for _ in range(200):
            if consumer.get_status()["messages_persisted"]:
                break
            await asyncio.sleep(0.01)
        await consumer.stop()

        assert consumer.get_status()["messages_persisted"] == 1

    async def test_stop_without_start_is_noop(self, event_stream, gacha_history):
        consumer = GachaHistoryConsumer(event_stream, gacha_history, ConfigManager)

        await consumer.stop()

        assert consumer.get_status()["is_running"] is False
