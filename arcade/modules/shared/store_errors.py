"""
Translation of driver-level failures into `StoreUnavailable`.

Store implementations wrap every I/O block:

    with translate_store_errors("database", "append_item_record"):
        async with self._db.get_transaction() as session:
            ...

Domain exceptions raised inside the block pass through untouched.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from redis.exceptions import RedisError
from sqlalchemy.exc import DBAPIError, OperationalError

from arcade.core.database.service import DatabaseNotInitializedError
from arcade.core.logging.logger import get_logger
from arcade.core.redis.service import RedisNotInitializedError
from arcade.modules.shared.exceptions import ArcadeDomainException, StoreUnavailable

logger = get_logger(__name__)

_DRIVER_ERRORS = (
    OperationalError,
    DBAPIError,
    RedisError,
    ConnectionError,
    DatabaseNotInitializedError,
    RedisNotInitializedError,
)


@contextmanager
def translate_store_errors(backend: str, operation: str) -> Iterator[None]:
    try:
        yield
    except ArcadeDomainException:
        raise
    except _DRIVER_ERRORS as exc:
        logger.error(
            "Store operation failed",
            extra={
                "backend": backend,
                "store_operation": operation,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        raise StoreUnavailable(backend, operation, str(exc)) from exc
