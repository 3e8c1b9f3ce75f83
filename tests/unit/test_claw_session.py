"""
Unit tests for ClawSessionService.

Covers charging, verdict caching, touched-item reconciliation and spawning.
"""

import pytest

from arcade.core.config.manager import ConfigManager
from arcade.modules.claw.catch_oracle import CatchOracle
from arcade.modules.claw.spawn import SpawnEngine
from arcade.modules.session.claw_service import ClawSessionService
from arcade.modules.shared.contracts import (
    CatchVerdict,
    ClawMachineItemSpec,
    ClawMachineSpec,
    ItemSpec,
)
from arcade.modules.shared.exceptions import (
    ConfigError,
    InsufficientFunds,
    NotFoundError,
    ResultExpired,
    StoreUnavailable,
    UnknownItem,
    ValidationError,
    VerdictMismatch,
)

PLAYER_ID = 1
MACHINE_ID = 10


def _machine(price: int = 30, catch_percentage: int = 100, max_item: int = 4) -> ClawMachineSpec:
    return ClawMachineSpec(
        id=MACHINE_ID,
        name="Lucky Claw",
        price=price,
        max_item=max_item,
        items=(
            ClawMachineItemSpec(
                claw_item_id=101,
                item=ItemSpec(
                    id=1,
                    name="Bear",
                    spawn_percentage=60,
                    catch_percentage=catch_percentage,
                    max_item_spawned=3,
                ),
            ),
            ClawMachineItemSpec(
                claw_item_id=102,
                item=ItemSpec(
                    id=2,
                    name="Cat",
                    spawn_percentage=40,
                    catch_percentage=catch_percentage,
                    max_item_spawned=3,
                ),
            ),
        ),
    )


def _service(wallet, claw_catalogue, claw_history, result_cache, sampler, event_bus, test_logger):
    return ClawSessionService(
        catalogue=claw_catalogue,
        wallet=wallet,
        history=claw_history,
        result_cache=result_cache,
        oracle=CatchOracle(sampler, claw_catalogue),
        spawn_engine=SpawnEngine(sampler),
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=test_logger,
    )


@pytest.fixture
def service(wallet, claw_catalogue, claw_history, result_cache, sampler, event_bus, test_logger):
    wallet.add_player(PLAYER_ID, coin=100, username="alice")
    claw_catalogue.add(_machine())
    return _service(
        wallet, claw_catalogue, claw_history, result_cache, sampler, event_bus, test_logger
    )


class TestStartGame:
    """Test game start orchestration."""

    async def test_charges_records_and_caches_verdicts(
        self, service, wallet, claw_history, result_cache
    ):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        assert wallet.coin[PLAYER_ID] == 70
        assert started.game_id in claw_history.games
        assert [v.item_id for v in started.verdicts] == [101, 102]
        assert all(v.success for v in started.verdicts)
        assert await result_cache.get_verdicts(started.game_id) == list(started.verdicts)
        assert result_cache.ttls[started.game_id] == 300

    async def test_publishes_game_started_event(self, service, event_bus):
        received = []
        event_bus.subscribe("claw.game_started", received.append)

        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        assert received[0]["game_id"] == started.game_id
        assert received[0]["price"] == 30
        assert received[0]["verdicts"][0] == {"itemID": 101, "name": "Bear", "success": True}

    async def test_verdict_ttl_follows_config(self, service, result_cache):
        ConfigManager.override("verdict_cache.ttl_seconds", 42)

        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        assert result_cache.ttls[started.game_id] == 42

    async def test_insufficient_funds_leaves_everything_unchanged(
        self, service, wallet, claw_history, result_cache
    ):
        wallet.coin[PLAYER_ID] = 29

        with pytest.raises(InsufficientFunds) as exc_info:
            await service.start_game(PLAYER_ID, MACHINE_ID)

        assert exc_info.value.current == 29
        assert exc_info.value.required == 30
        assert wallet.coin[PLAYER_ID] == 29
        assert claw_history.games == {}
        assert result_cache.entries == {}

    async def test_unconditional_wallet_reverts_negative_debit(
        self,
        unconditional_wallet,
        claw_catalogue,
        claw_history,
        result_cache,
        sampler,
        event_bus,
        test_logger,
    ):
        unconditional_wallet.add_player(PLAYER_ID, coin=10)
        claw_catalogue.add(_machine())
        service = _service(
            unconditional_wallet,
            claw_catalogue,
            claw_history,
            result_cache,
            sampler,
            event_bus,
            test_logger,
        )

        with pytest.raises(InsufficientFunds) as exc_info:
            await service.start_game(PLAYER_ID, MACHINE_ID)

        assert exc_info.value.current == 10
        assert unconditional_wallet.coin[PLAYER_ID] == 10
        assert unconditional_wallet.adjustments == [(PLAYER_ID, -30), (PLAYER_ID, 30)]
        assert claw_history.games == {}

    async def test_unconditional_wallet_charges_when_affordable(
        self,
        unconditional_wallet,
        claw_catalogue,
        claw_history,
        result_cache,
        sampler,
        event_bus,
        test_logger,
    ):
        unconditional_wallet.add_player(PLAYER_ID, coin=30)
        claw_catalogue.add(_machine())
        service = _service(
            unconditional_wallet,
            claw_catalogue,
            claw_history,
            result_cache,
            sampler,
            event_bus,
            test_logger,
        )

        await service.start_game(PLAYER_ID, MACHINE_ID)

        assert unconditional_wallet.coin[PLAYER_ID] == 0

    async def test_history_failure_refunds_and_raises(self, service, wallet, claw_history):
        claw_history.fail_create = True

        with pytest.raises(StoreUnavailable):
            await service.start_game(PLAYER_ID, MACHINE_ID)

        assert wallet.coin[PLAYER_ID] == 100
        assert wallet.adjustments == [(PLAYER_ID, -30), (PLAYER_ID, 30)]

    async def test_cache_failure_still_starts_game(self, service, wallet, result_cache):
        result_cache.fail_put = True

        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        assert wallet.coin[PLAYER_ID] == 70
        with pytest.raises(ResultExpired):
            await service.add_touched_item_record(started.game_id, 101, True)

    async def test_misconfigured_machine_is_not_charged(self, service, wallet, claw_catalogue):
        claw_catalogue.add(_machine(catch_percentage=0))

        with pytest.raises(ConfigError):
            await service.start_game(PLAYER_ID, MACHINE_ID)

        assert wallet.coin[PLAYER_ID] == 100

    async def test_free_machine_does_not_touch_wallet(self, service, wallet, claw_catalogue):
        claw_catalogue.add(_machine(price=0))

        await service.start_game(PLAYER_ID, MACHINE_ID)

        assert wallet.adjustments == []

    async def test_unknown_machine(self, service):
        with pytest.raises(NotFoundError):
            await service.start_game(PLAYER_ID, 999)

    async def test_non_positive_ids_are_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.start_game(0, MACHINE_ID)


class TestAddTouchedItemRecord:
    """Test reconciliation of client reports."""

    async def test_matching_report_consumes_verdicts(self, service, claw_history, result_cache):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        record = await service.add_touched_item_record(started.game_id, 102, True)

        assert record.catched is True
        assert await result_cache.get_verdicts(started.game_id) is None
        game = await claw_history.get_game_record(started.game_id)
        assert game.success is True
        assert game.item_records == ((102, True),)

    async def test_matching_miss_report_deletes_whole_list(
        self, service, claw_history, result_cache
    ):
        game_id = await claw_history.create_game_record(PLAYER_ID, MACHINE_ID)
        await result_cache.put_verdicts(
            game_id,
            [
                CatchVerdict(item_id=1, name="a", success=True),
                CatchVerdict(item_id=2, name="b", success=False),
            ],
            ttl_seconds=300,
        )

        await service.add_touched_item_record(game_id, 2, False)

        assert await result_cache.get_verdicts(game_id) is None
        assert claw_history.records[game_id] == [(2, False)]

    async def test_report_after_list_consumed_is_expired(self, service, claw_history):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)
        await service.add_touched_item_record(started.game_id, 101, True)

        with pytest.raises(ResultExpired):
            await service.add_touched_item_record(started.game_id, 102, True)

        assert claw_history.records[started.game_id] == [(101, True)]

    async def test_mismatch_invalidates_game(self, service, claw_history, result_cache):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        with pytest.raises(VerdictMismatch) as exc_info:
            await service.add_touched_item_record(started.game_id, 101, False)

        assert exc_info.value.expected is True
        assert exc_info.value.got is False
        assert exc_info.value.status_code == 409
        assert await result_cache.get_verdicts(started.game_id) is None
        assert claw_history.records[started.game_id] == []

        with pytest.raises(ResultExpired):
            await service.add_touched_item_record(started.game_id, 102, True)

    async def test_unknown_item_keeps_verdicts(self, service, result_cache):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)

        with pytest.raises(UnknownItem):
            await service.add_touched_item_record(started.game_id, 999, True)

        assert len(await result_cache.get_verdicts(started.game_id)) == 2

    async def test_expired_game(self, service, result_cache):
        started = await service.start_game(PLAYER_ID, MACHINE_ID)
        result_cache.expire(started.game_id)

        with pytest.raises(ResultExpired) as exc_info:
            await service.add_touched_item_record(started.game_id, 101, True)

        assert exc_info.value.status_code == 410


class TestSpawnAndPlayerInfo:
    async def test_spawn_uses_machine_max_item(self, service):
        picks = await service.spawn_items(MACHINE_ID)

        assert len(picks) == 4
        assert set(picks) <= {101, 102}

    async def test_spawn_falls_back_to_config_default(self, service, claw_catalogue):
        claw_catalogue.add(_machine(max_item=0))
        ConfigManager.override("claw.max_output_default", 5)

        picks = await service.spawn_items(MACHINE_ID)

        # Both items cap at 3 per round.
        assert len(picks) == 5

    async def test_get_player_info(self, service):
        snapshot = await service.get_player_info(PLAYER_ID)

        assert snapshot.player.username == "alice"
        assert snapshot.coin == 100
        assert snapshot.player_id == PLAYER_ID

    async def test_get_player_info_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.get_player_info(77)
