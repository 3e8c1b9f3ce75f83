"""
Domain exceptions for the arcade reward core.

Purpose
-------
Define the structured, domain-specific exception hierarchy raised by the game
services: authoring corruption, wallet underflow, reconciliation failures,
store outages and malformed stream messages. The protocol dispatcher turns
every one of these into an `ErrorResp` envelope using `status_code`.

Design Notes
------------
- All domain exceptions inherit from `ArcadeDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
  - `status_code`: numeric code surfaced to game clients
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., cheat signals)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class ArcadeDomainException(Exception):
    """
    Base exception for all arcade domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ArcadeDomainException(
        ...     "Pull failed",
        ...     {"machine_id": 3}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    STATUS_CODE: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.STATUS_CODE

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "status_code": self.status_code,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


# ============================================================================
# Authoring / configuration
# ============================================================================


class ConfigError(ArcadeDomainException):
    """
    Raised when machine or item configuration is corrupt.

    Zero catch percentage on a claw item, negative weights and similar
    authoring mistakes. Never retried.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 500

    def __init__(self, reason: str, **details: Any) -> None:
        self.reason = reason
        super().__init__(
            f"Configuration error: {reason}",
            details={"reason": reason, **details},
            error_code="CONFIG_ERROR",
        )


# ============================================================================
# Wallet
# ============================================================================


class InsufficientFunds(ArcadeDomainException):
    """
    Raised when a debit would drive a wallet balance below zero.

    The wallet balance is guaranteed unchanged when this is raised.

    Args:
        player_id: Player whose wallet was charged
        required: Price of the action
        current: Balance observed at the time of the attempt
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 402

    def __init__(self, player_id: int, required: int, current: int) -> None:
        self.player_id = player_id
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient coin: need {required:,}, have {current:,}",
            details={
                "player_id": player_id,
                "required": required,
                "current": current,
                "deficit": max(required - current, 0),
            },
            error_code="INSUFFICIENT_FUNDS",
        )


# ============================================================================
# Claw reconciliation
# ============================================================================


class ResultExpired(ArcadeDomainException):
    """The verdict list for a game is gone (TTL expired or already consumed)."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 410

    def __init__(self, game_id: int) -> None:
        self.game_id = game_id
        super().__init__(
            f"Results for game {game_id} expired or not found",
            details={"game_id": game_id},
            error_code="RESULT_EXPIRED",
        )


class UnknownItem(ArcadeDomainException):
    """The reported item is not part of the game's verdict list."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 404

    def __init__(self, game_id: int, item_id: int) -> None:
        self.game_id = game_id
        self.item_id = item_id
        super().__init__(
            f"Item {item_id} is not part of game {game_id}",
            details={"game_id": game_id, "item_id": item_id},
            error_code="UNKNOWN_ITEM",
        )


class VerdictMismatch(ArcadeDomainException):
    """
    The client-reported outcome disagrees with the server verdict.

    Treated as a cheat or client bug signal; the game's verdicts are
    invalidated before this is raised.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 409

    def __init__(self, game_id: int, item_id: int, expected: bool, got: bool) -> None:
        self.game_id = game_id
        self.item_id = item_id
        self.expected = expected
        self.got = got
        super().__init__(
            f"Catch verdict mismatch: expected {expected}, got {got}",
            details={
                "game_id": game_id,
                "item_id": item_id,
                "expected": expected,
                "got": got,
            },
            error_code="VERDICT_MISMATCH",
        )


# ============================================================================
# Infrastructure-facing
# ============================================================================


class StoreUnavailable(ArcadeDomainException):
    """
    Raised when an upstream store (database, cache, stream) fails.

    Args:
        backend: "database", "redis" or similar
        operation: Logical operation that failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True
    STATUS_CODE = 503

    def __init__(self, backend: str, operation: str, reason: str = "") -> None:
        self.backend = backend
        self.operation = operation
        super().__init__(
            f"{backend} unavailable during {operation}"
            + (f": {reason}" if reason else ""),
            details={"backend": backend, "operation": operation, "reason": reason},
            error_code="STORE_UNAVAILABLE",
        )


class StreamParseError(ArcadeDomainException):
    """A stream entry could not be decoded into a gacha event."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 422

    def __init__(self, message_id: str, reason: str) -> None:
        self.message_id = message_id
        self.reason = reason
        super().__init__(
            f"Malformed stream message {message_id}: {reason}",
            details={"message_id": message_id, "reason": reason},
            error_code="STREAM_PARSE_ERROR",
        )


# ============================================================================
# Request-level
# ============================================================================


class ValidationError(ArcadeDomainException):
    """
    Raised when request input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 400

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(ArcadeDomainException):
    """
    Raised when a requested entity cannot be found.

    Args:
        resource_type: Type of resource (e.g., "ClawMachine", "Player")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 404

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InvalidOperationError(ArcadeDomainException):
    """
    Raised when an action violates a game rule.

    Example:
        >>> raise InvalidOperationError(
        ...     "update_score",
        ...     "new score 10 does not beat stored score 20"
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False
    STATUS_CODE = 409

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True if the exception represents a retryable failure."""
    if isinstance(exc, ArcadeDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of an exception for logging; unknown errors are ERROR."""
    if isinstance(exc, ArcadeDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
