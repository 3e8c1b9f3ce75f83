"""
Pytest Configuration and Fixtures for the Arcade Test Suite
===========================================================

Purpose
-------
Centralized fixtures for unit and integration tests: seeded samplers,
in-memory store fakes, an in-memory SQLite `DatabaseService` and opt-in
Postgres / Redis testcontainers.

Architecture Notes
------------------
- Unit tests use the fakes in `tests.fakes` (fast, isolated) or the
  aiosqlite-backed `DatabaseService` for SQL stores
- Integration tests use testcontainers (real Postgres and Redis) and skip
  when no Docker daemon is reachable
- Environment variables are set before any `arcade` import so `Config.load()`
  sees the testing environment
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import AsyncGenerator, Generator, Type

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOGS_DIR", os.path.join(tempfile.gettempdir(), "arcade-test-logs"))

import docker  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from docker.errors import DockerException  # noqa: E402
from testcontainers.postgres import PostgresContainer  # noqa: E402
from testcontainers.redis import RedisContainer  # noqa: E402

from arcade.core.config.manager import ConfigManager
from arcade.core.database.service import DatabaseService
from arcade.core.event.bus import EventBus
from arcade.core.redis.service import RedisService
from arcade.modules.shared.sampler import WeightedSampler
from tests.fakes import (
    FakeClawCatalogue,
    FakeClawHistory,
    FakeEventStream,
    FakeGachaCatalogue,
    FakeGachaHistory,
    FakePityCache,
    FakePityStore,
    FakeResultCache,
    FakeWallet,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config_manager() -> Generator[None, None, None]:
    """Every test starts from the shipped YAML tunables."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


# ============================================================================
# RANDOMNESS
# ============================================================================


@pytest.fixture
def sampler() -> WeightedSampler:
    return WeightedSampler(seed=1234)


# ============================================================================
# IN-MEMORY STORES (Unit Tests)
# ============================================================================


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet(conditional_debit=True)


@pytest.fixture
def unconditional_wallet() -> FakeWallet:
    return FakeWallet(conditional_debit=False)


@pytest.fixture
def claw_catalogue() -> FakeClawCatalogue:
    return FakeClawCatalogue()


@pytest.fixture
def claw_history() -> FakeClawHistory:
    return FakeClawHistory()


@pytest.fixture
def result_cache() -> FakeResultCache:
    return FakeResultCache()


@pytest.fixture
def gacha_catalogue() -> FakeGachaCatalogue:
    return FakeGachaCatalogue()


@pytest.fixture
def gacha_history() -> FakeGachaHistory:
    return FakeGachaHistory()


@pytest.fixture
def pity_store() -> FakePityStore:
    return FakePityStore()


@pytest.fixture
def pity_cache() -> FakePityCache:
    return FakePityCache()


@pytest.fixture
def event_stream() -> FakeEventStream:
    return FakeEventStream()


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.arcade")


# ============================================================================
# DATABASE FIXTURES (SQL store tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Type[DatabaseService], None]:
    """
    In-memory SQLite database with the full schema.

    Scope: function (fresh database per test)
    """
    await DatabaseService.initialize("sqlite+aiosqlite:///:memory:")
    await DatabaseService.create_schema()
    try:
        yield DatabaseService
    finally:
        await DatabaseService.shutdown()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


def _docker_available() -> bool:
    try:
        client = docker.from_env()
        client.ping()
    except DockerException:
        return False
    client.close()
    return True


@pytest.fixture(scope="session")
def docker_required() -> None:
    if not _docker_available():
        pytest.skip("Docker daemon not reachable; integration tests skipped")


@pytest.fixture(scope="session")
def postgres_container(docker_required: None) -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_container(docker_required: None) -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()
    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def postgres_database(
    postgres_container: PostgresContainer,
) -> AsyncGenerator[Type[DatabaseService], None]:
    """
    `DatabaseService` bound to the Postgres container with a fresh schema.

    Scope: function (schema dropped and recreated per test)
    """
    connection_url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    await DatabaseService.initialize(connection_url)
    await DatabaseService.drop_schema()
    await DatabaseService.create_schema()
    try:
        yield DatabaseService
    finally:
        await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def redis_service(
    redis_container: RedisContainer,
) -> AsyncGenerator[Type[RedisService], None]:
    """
    `RedisService` bound to the Redis container, flushed before each test.

    Scope: function
    """
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    await RedisService.initialize(f"redis://{host}:{port}/0")
    await RedisService.client().flushdb()
    try:
        yield RedisService
    finally:
        await RedisService.shutdown()
