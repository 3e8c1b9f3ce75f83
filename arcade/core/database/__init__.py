"""Database infrastructure: declarative base and the async engine service."""

from arcade.core.database.base import Base, IdMixin, TimestampMixin
from arcade.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
