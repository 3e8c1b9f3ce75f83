"""
Unit tests for shared building blocks: exceptions, validators, config,
the event bus and store error translation.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from arcade.core.config.manager import ConfigManager
from arcade.core.event.bus import EventBus, ListenerFailure, ListenerPriority
from arcade.modules.shared.exceptions import (
    ConfigError,
    ErrorSeverity,
    InsufficientFunds,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
    VerdictMismatch,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from arcade.modules.shared.store_errors import translate_store_errors
from arcade.modules.shared.validators import (
    validate_identifier,
    validate_percentage,
    validate_pull_count,
    validate_weights,
)


class TestExceptions:
    """Test structured domain errors."""

    def test_insufficient_funds_details(self):
        exc = InsufficientFunds(player_id=1, required=30, current=10)

        assert exc.status_code == 402
        assert exc.details["deficit"] == 20
        assert exc.to_dict()["error_code"] == "INSUFFICIENT_FUNDS"
        assert exc.severity is ErrorSeverity.INFO

    def test_store_unavailable_is_retryable_and_alerts(self):
        exc = StoreUnavailable("redis", "put_verdicts", "timeout")

        assert is_transient_error(exc)
        assert should_alert(exc)
        assert "timeout" in exc.message

    def test_verdict_mismatch_is_a_warning(self):
        exc = VerdictMismatch(game_id=1, item_id=2, expected=True, got=False)

        assert get_error_severity(exc) is ErrorSeverity.WARNING
        assert not should_alert(exc)

    def test_plain_exceptions_are_errors(self):
        assert get_error_severity(RuntimeError("boom")) is ErrorSeverity.ERROR
        assert not is_transient_error(RuntimeError("boom"))

    def test_not_found_code(self):
        assert NotFoundError("ClawMachine", 3).error_code == "CLAWMACHINE_NOT_FOUND"

    def test_str_includes_details(self):
        assert "machine_id" in str(ConfigError("bad", machine_id=4))


class TestValidators:
    @pytest.mark.parametrize("value", [0, -1, True, "3", None])
    def test_identifier_rejects(self, value):
        with pytest.raises(ValidationError):
            validate_identifier("player_id", value)

    def test_identifier_accepts_positive(self):
        validate_identifier("player_id", 1)

    def test_pull_count(self):
        validate_pull_count(1)
        validate_pull_count(10)
        with pytest.raises(ValidationError):
            validate_pull_count(3)

    @pytest.mark.parametrize("value", [-1, 101])
    def test_percentage_bounds(self, value):
        with pytest.raises(ConfigError):
            validate_percentage("catch_percentage", value)

    def test_weights_allow_zero_but_not_negative(self):
        validate_weights([(1, 0), (2, 5)])
        with pytest.raises(ConfigError):
            validate_weights([(1, 5), (2, -1)])


class TestConfigManager:
    """Test YAML-backed tunables."""

    def test_reads_shipped_yaml(self):
        assert ConfigManager.get("stream_consumer.stream_key") == "gacha:history"
        assert ConfigManager.get("leaderboard.top_n") == 100
        assert ConfigManager.get("verdict_cache.ttl_seconds") == 300

    def test_missing_key_returns_default(self):
        assert ConfigManager.get("nope.missing", 7) == 7

    def test_override_wins_until_reset(self):
        ConfigManager.override("leaderboard.top_n", 5)
        assert ConfigManager.get("leaderboard.top_n") == 5

        ConfigManager.reset()
        assert ConfigManager.get("leaderboard.top_n") == 100

    def test_get_all_keys_is_flattened(self):
        keys = ConfigManager.get_all_keys()

        assert "server.port" in keys
        assert "pity_cache.ttl_seconds" in keys

    def test_initialize_from_custom_directory(self, tmp_path):
        (tmp_path / "a.yaml").write_text("claw:\n  max_output_default: 3\n")

        ConfigManager.initialize(tmp_path)

        assert ConfigManager.get("claw.max_output_default") == 3


class TestEventBus:
    """Test publish / subscribe."""

    async def test_priority_order_and_wildcards(self):
        bus = EventBus()
        calls = []
        bus.subscribe("gacha.pulled", lambda e: calls.append("normal"))
        bus.subscribe(
            "gacha.*", lambda e: calls.append("critical"), priority=ListenerPriority.CRITICAL
        )

        await bus.publish("gacha.pulled", {"player_id": 1})

        assert calls == ["critical", "normal"]

    async def test_failing_listener_is_isolated(self):
        bus = EventBus()
        seen = []

        def boom(event):
            raise RuntimeError("listener failed")

        bus.subscribe("claw.game_started", boom)
        bus.subscribe("claw.game_started", seen.append)

        results = await bus.publish("claw.game_started", {"game_id": 1})

        assert seen == [{"game_id": 1}]
        assert any(isinstance(r, ListenerFailure) for r in results)

    async def test_once_listener_runs_once(self):
        bus = EventBus()
        seen = []
        bus.subscribe("leaderboard.materialised", seen.append, once=True)

        await bus.publish("leaderboard.materialised", {})
        await bus.publish("leaderboard.materialised", {})

        assert len(seen) == 1
        assert bus.get_metrics()["published"]["leaderboard.materialised"] == 2

    def test_unsubscribe(self):
        bus = EventBus()
        listener_id = bus.subscribe("x", lambda e: None)

        assert bus.unsubscribe("x", listener_id) is True
        assert bus.listener_count() == 0

    def test_rejects_wrong_arity(self):
        with pytest.raises(ValueError):
            EventBus().subscribe("x", lambda: None)


class TestTranslateStoreErrors:
    def test_driver_error_becomes_store_unavailable(self):
        with pytest.raises(StoreUnavailable) as exc_info:
            with translate_store_errors("redis", "get_verdicts"):
                raise RedisConnectionError("refused")

        assert exc_info.value.backend == "redis"
        assert exc_info.value.operation == "get_verdicts"

    def test_domain_errors_pass_through(self):
        with pytest.raises(NotFoundError):
            with translate_store_errors("database", "get_wallet"):
                raise NotFoundError("Player", 1)
