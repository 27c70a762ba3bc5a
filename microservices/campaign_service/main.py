"""
Campaign Service Main Entrypoint

Runs the campaign worker: opens the repository and event bus, starts the
clip/stats consumers and the auto-close sweep, and stays up until SIGINT or
SIGTERM.

    python -m microservices.campaign_service.main
"""

import asyncio
import signal

from core.config_manager import ConfigManager
from core.logger import setup_service_logger

from .factory import CampaignServiceFactory

SERVICE_NAME = "campaign_service"
SERVICE_VERSION = "2.0.0"

logger = setup_service_logger(SERVICE_NAME)


async def run() -> None:
    config = ConfigManager(SERVICE_NAME)
    factory = CampaignServiceFactory(config)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            pass

    logger.info(f"Starting {SERVICE_NAME} v{SERVICE_VERSION} ({config.settings.environment})")
    try:
        await factory.initialize()

        if not await factory.repository.health_check():
            logger.warning("Database health check failed at startup")

        await stop.wait()
    finally:
        logger.info(f"Shutting down {SERVICE_NAME}")
        await factory.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
