"""
Domain validators for the arcade reward core.

Validators accept data to validate, raise a structured domain exception on
failure and return None on success.

Usage
-----
    from arcade.modules.shared.validators import validate_identifier
    validate_identifier("player_id", player_id)
    # Raises: ValidationError when player_id <= 0
"""

from __future__ import annotations

from typing import Iterable, Tuple

from arcade.modules.shared.exceptions import ConfigError, ValidationError

ALLOWED_PULL_COUNTS = (1, 10)


def validate_identifier(name: str, value: int) -> None:
    """Identifiers are positive integers."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")


def validate_pull_count(pull_count: int) -> None:
    if pull_count not in ALLOWED_PULL_COUNTS:
        raise ValidationError(
            "pull_count",
            f"pull_count must be one of {ALLOWED_PULL_COUNTS}, got {pull_count!r}",
        )


def validate_percentage(name: str, value: int) -> None:
    if not 0 <= value <= 100:
        raise ConfigError(f"{name} must be within 0..100", value=value)


def validate_weights(entries: Iterable[Tuple[int, int]]) -> None:
    """Weights may be zero (ignored by the sampler) but never negative."""
    for entry_id, weight in entries:
        if weight < 0:
            raise ConfigError("negative weight", entry_id=entry_id, weight=weight)
