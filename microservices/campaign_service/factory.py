"""
Campaign Service Factory

Factory for creating campaign service instances with proper dependency injection.
"""

import logging
from typing import List, Optional

from core.config_manager import ConfigManager
from core.nats_client import NATSEventBus
from core.postgres_client import PostgresClientWrapper

from .campaign_repository import CampaignRepository
from .campaign_service import CampaignService
from .events.handlers import CampaignEventHandler
from .events.models import CampaignStreamConfig
from .participant_service import ParticipantService
from .scheduler import AutoCloseScheduler
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)


class CampaignServiceFactory:
    """Factory for creating campaign service components"""

    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config or ConfigManager("campaign_service")
        self._repository: Optional[CampaignRepository] = None
        self._service: Optional[CampaignService] = None
        self._participant_service: Optional[ParticipantService] = None
        self._waitlist_service: Optional[WaitlistService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._event_handler: Optional[CampaignEventHandler] = None
        self._scheduler: Optional[AutoCloseScheduler] = None
        self._consumers: List[str] = []

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Campaign Service components...")
        settings = self.config.settings

        # Initialize repository
        self._repository = CampaignRepository(PostgresClientWrapper("campaign_service"))
        await self._repository.initialize()

        # Initialize NATS client
        events = settings.events
        try:
            self._nats_client = NATSEventBus(
                service_name="campaign_service",
                config=self.config,
                max_deliver=events.max_deliver,
                retry_base_seconds=events.retry_base_seconds,
                ack_wait_seconds=events.ack_wait_seconds,
            )
            await self._nats_client.connect()
            logger.info("NATS client connected")
        except Exception as e:
            logger.warning(f"NATS client initialization failed: {e}")
            self._nats_client = None

        # Initialize services
        self._service = CampaignService(
            repository=self._repository,
            event_bus=self._nats_client,
            platform_fee_rate=settings.platform_fee_rate,
        )
        self._participant_service = ParticipantService(
            repository=self._repository,
            event_bus=self._nats_client,
        )
        self._waitlist_service = WaitlistService(repository=self._repository)

        # Initialize event handler and durable consumers
        self._event_handler = CampaignEventHandler(campaign_repository=self._repository)
        if self._nats_client:
            for pattern, suffix in CampaignStreamConfig.SUBSCRIPTIONS.items():
                consumer = await self._nats_client.subscribe_to_events(
                    pattern,
                    self._event_handler.handle_event,
                    durable=f"{events.durable_prefix}-{suffix}",
                )
                if consumer:
                    self._consumers.append(consumer)
            logger.info(f"Subscribed to {len(self._consumers)} event consumer(s)")

        # Auto-close sweep
        if settings.auto_close_enabled:
            self._scheduler = AutoCloseScheduler(
                self._service,
                interval_seconds=settings.auto_close_interval_seconds,
            )
            self._scheduler.start()

        logger.info("Campaign Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Campaign Service components...")

        if self._scheduler:
            self._scheduler.shutdown()
            self._scheduler = None

        if self._nats_client:
            await self._nats_client.close()
            self._consumers.clear()

        if self._repository:
            await self._repository.close()

        logger.info("Campaign Service components closed")

    @property
    def repository(self) -> CampaignRepository:
        """Get campaign repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def service(self) -> CampaignService:
        """Get campaign service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def participant_service(self) -> ParticipantService:
        """Get participant service"""
        if not self._participant_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._participant_service

    @property
    def waitlist_service(self) -> WaitlistService:
        """Get waitlist service"""
        if not self._waitlist_service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._waitlist_service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def event_handler(self) -> CampaignEventHandler:
        """Get event handler"""
        if not self._event_handler:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._event_handler

    @property
    def scheduler(self) -> Optional[AutoCloseScheduler]:
        """Get auto-close scheduler"""
        return self._scheduler


# Global factory instance
_factory: Optional[CampaignServiceFactory] = None


async def get_factory() -> CampaignServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = CampaignServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "CampaignServiceFactory",
    "get_factory",
    "close_factory",
]
