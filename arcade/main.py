"""
Arcade Reward Core - Application Entry Point
============================================

Bootstrap
---------
- Logging
- Config validation
- ConfigManager (YAML tunables)
- Database and Redis services
- Service container (stores, services, dispatcher, workers)
- Envelope server
- Graceful shutdown on SIGINT / SIGTERM
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from arcade.core.config.config import Config
from arcade.core.config.manager import ConfigManager
from arcade.core.database.service import DatabaseService
from arcade.core.event.bus import EventBus
from arcade.core.logging.logger import get_logger, setup_logging, shutdown_logging
from arcade.core.redis.service import RedisService
from arcade.core.services.container import ServiceContainer
from arcade.protocol.server import EnvelopeServer

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _startup() -> tuple[ServiceContainer, EnvelopeServer]:
    """Initialize all infrastructure components before serving."""
    logger.info("========== ARCADE INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Load tunables
    try:
        ConfigManager.initialize()
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Database
    try:
        await DatabaseService.initialize()
        if not Config.is_production():
            await DatabaseService.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Redis
    try:
        await RedisService.initialize()
        logger.info("✓ Redis service initialized")
    except Exception as exc:
        logger.critical(f"Redis initialization failed: {exc}", exc_info=True)
        raise

    # Step 5: Services and background workers
    try:
        container = ServiceContainer(
            config_manager=ConfigManager,
            event_bus=EventBus(),
            logger=get_logger("arcade.core.services.container"),
        )
        container.initialize()
        await container.start_workers()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    # Step 6: Client protocol
    try:
        server = EnvelopeServer(container.dispatcher, ConfigManager)
        await server.start()
        logger.info("✓ Envelope server started")
    except Exception as exc:
        logger.critical(f"Envelope server startup failed: {exc}", exc_info=True)
        await container.shutdown()
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container, server


# ============================================================================
# Application Shutdown
# ============================================================================


async def _shutdown(
    container: Optional[ServiceContainer], server: Optional[EnvelopeServer]
) -> None:
    """Gracefully shut down the server, workers and infrastructure services."""
    logger.info("========== ARCADE SHUTDOWN START ==========")

    if server is not None:
        try:
            await server.stop()
            logger.info("✓ Envelope server stopped")
        except Exception as exc:
            logger.error(f"Error while stopping envelope server: {exc}", exc_info=True)

    if container is not None:
        try:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await RedisService.shutdown()
        logger.info("✓ Redis service shut down")
    except Exception as exc:
        logger.error(f"Redis service shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            logger.debug(f"{sig.name} handler not supported on this platform")


async def main() -> None:
    """
    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (config, DB, Redis, services)
        3. Serve until a shutdown signal arrives
        4. Shut down in reverse order
    """
    container: Optional[ServiceContainer] = None
    server: Optional[EnvelopeServer] = None
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        container, server = await _startup()
        await stop_event.wait()
        logger.info("Shutdown signal received")

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    finally:
        await _shutdown(container, server)


def run() -> None:
    """Console script entry point."""
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Manual shutdown via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run()
