"""
Base Service

Common plumbing for the game services (claw and gacha sessions,
leaderboard, whack-a-mole): tunable lookups through ConfigManager, domain
event emission on the EventBus, structured operation logs and identifier
validation.

Services never manage transactions (stores do) and never own randomness
(engines receive an injected WeightedSampler).

    class LeaderboardService(BaseService):
        def __init__(self, store, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self._store = store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from arcade.modules.shared.validators import validate_identifier

if TYPE_CHECKING:
    from logging import Logger

    from arcade.core.config.manager import ConfigManager
    from arcade.core.event.bus import EventBus


class BaseService:
    """
    Args:
        config_manager: ConfigManager class (or any object with `get`)
        event_bus: Bus for domain events; None disables emission
        logger: Logger named after the concrete service
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    # ========================================================================
    # Tunables
    # ========================================================================

    def get_config_int(self, key: str, default: int) -> int:
        """Integer tunable; malformed values fall back to `default` with a warning."""
        value = self._config.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            self.log.warning(
                "Invalid integer config value, using default",
                extra={"config_key": key, "value": value, "default": default},
            )
            return default

    # ========================================================================
    # Events & logging
    # ========================================================================

    async def emit_event(self, event_type: str, data: Dict[str, Any]) -> None:
        if self._events is None:
            return
        await self._events.publish(event_type, data)

    def log_operation(self, operation: str, **fields: Any) -> None:
        self.log.info(
            f"{type(self).__name__}: {operation}",
            extra={"operation": operation, **fields},
        )

    def log_error(self, operation: str, error: Exception, **fields: Any) -> None:
        self.log.error(
            f"{type(self).__name__}: {operation} failed: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                **fields,
            },
        )

    # ========================================================================
    # Validation
    # ========================================================================

    def validate_ids(self, **identifiers: int) -> None:
        """Every keyword must be a positive identifier (ValidationError otherwise)."""
        for name, value in identifiers.items():
            validate_identifier(name, value)
