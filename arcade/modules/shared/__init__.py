"""
Arcade Shared Module

Purpose
-------
Domain-level foundations for all game modules:
- Domain exceptions and error translation
- Base service and repository patterns
- Store contracts and value types
- The weighted sampler
- Domain validation utilities

Usage
-----
    from arcade.modules.shared import (
        BaseService,
        InsufficientFunds,
        WeightedSampler,
        validate_identifier,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    ArcadeDomainException,
    ConfigError,
    ErrorSeverity,
    InsufficientFunds,
    InvalidOperationError,
    NotFoundError,
    ResultExpired,
    StoreUnavailable,
    StreamParseError,
    UnknownItem,
    ValidationError,
    VerdictMismatch,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from .sampler import NO_PICK, WeightedSampler
from .store_errors import translate_store_errors
from .validators import (
    validate_identifier,
    validate_percentage,
    validate_pull_count,
    validate_weights,
)

__all__ = [
    "ArcadeDomainException",
    "BaseRepository",
    "BaseService",
    "ConfigError",
    "ErrorSeverity",
    "InsufficientFunds",
    "InvalidOperationError",
    "NO_PICK",
    "NotFoundError",
    "ResultExpired",
    "StoreUnavailable",
    "StreamParseError",
    "UnknownItem",
    "ValidationError",
    "VerdictMismatch",
    "WeightedSampler",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
    "translate_store_errors",
    "validate_identifier",
    "validate_percentage",
    "validate_pull_count",
    "validate_weights",
]
