"""
Component Tests for Service Wiring

The factory's dependency wiring and the auto-close scheduler, with the
database and NATS replaced by the in-memory doubles.
"""

import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from core.config import CampaignConfig
from microservices.campaign_service import factory as factory_module
from microservices.campaign_service.factory import CampaignServiceFactory
from microservices.campaign_service.models import CampaignStatus
from microservices.campaign_service.scheduler import AUTO_CLOSE_JOB_ID, AutoCloseScheduler


class ConnectableEventBus:
    """MockEventBus plus the connect() the factory calls"""

    def __init__(self, bus):
        self._bus = bus
        self.connected = False

    def __getattr__(self, name):
        return getattr(self._bus, name)

    async def connect(self):
        self.connected = True


@pytest.fixture
def wired_factory(monkeypatch, mock_repository, mock_event_bus):
    """Factory whose repository and event bus are the in-memory doubles"""
    bus = ConnectableEventBus(mock_event_bus)
    monkeypatch.setattr(factory_module, "PostgresClientWrapper", MagicMock())
    monkeypatch.setattr(factory_module, "CampaignRepository", lambda db: mock_repository)
    monkeypatch.setattr(factory_module, "NATSEventBus", lambda **kwargs: bus)

    settings = CampaignConfig(auto_close_enabled=False)
    return CampaignServiceFactory(config=SimpleNamespace(settings=settings)), bus


class TestCampaignServiceFactory:

    @pytest.mark.asyncio
    async def test_initialize_wires_services_and_consumers(self, wired_factory, mock_event_bus):
        factory, bus = wired_factory

        await factory.initialize()

        assert bus.connected is True
        assert factory.service.repository is factory.repository
        assert factory.participant_service.event_bus is bus
        assert factory.waitlist_service.repository is factory.repository
        assert factory.scheduler is None
        assert mock_event_bus.durables == {
            "clip.>": "campaign-service-clip-counters",
            "stats.updated": "campaign-service-stats",
        }
        await factory.close()

    @pytest.mark.asyncio
    async def test_subscribed_handler_updates_counters(
        self, wired_factory, mock_event_bus, mock_repository, make_active_campaign
    ):
        factory, _ = wired_factory
        await factory.initialize()
        campaign = make_active_campaign()

        await mock_event_bus.simulate_event(
            "clip.submitted", {"campaign_id": campaign.campaign_id}, event_id="evt-1"
        )

        assert mock_repository.campaigns[campaign.campaign_id].pending_clips == 1
        await factory.close()

    @pytest.mark.asyncio
    async def test_runs_without_event_bus(self, monkeypatch, mock_repository):
        monkeypatch.setattr(factory_module, "PostgresClientWrapper", MagicMock())
        monkeypatch.setattr(factory_module, "CampaignRepository", lambda db: mock_repository)

        def failing_bus(**kwargs):
            raise ConnectionError("nats unreachable")

        monkeypatch.setattr(factory_module, "NATSEventBus", failing_bus)
        factory = CampaignServiceFactory(
            config=SimpleNamespace(settings=CampaignConfig(auto_close_enabled=False))
        )

        await factory.initialize()

        assert factory.nats_client is None
        assert factory.service.publisher.event_bus is None
        await factory.close()

    def test_accessors_require_initialize(self):
        factory = CampaignServiceFactory(
            config=SimpleNamespace(settings=CampaignConfig())
        )
        with pytest.raises(RuntimeError):
            _ = factory.service


class TestAutoCloseScheduler:

    @pytest.mark.asyncio
    async def test_run_once_closes_expired(self, campaign_service, mock_repository, make_active_campaign):
        campaign = make_active_campaign(end_date=datetime.now(timezone.utc) - timedelta(minutes=1))
        scheduler = AutoCloseScheduler(campaign_service, interval_seconds=60)

        assert await scheduler.run_once() == 1
        assert mock_repository.campaigns[campaign.campaign_id].status == CampaignStatus.ENDED

    @pytest.mark.asyncio
    async def test_run_once_survives_sweep_failure(self):
        service = MagicMock()
        service.auto_close_expired = AsyncMock(side_effect=ConnectionError("db down"))
        scheduler = AutoCloseScheduler(service)

        assert await scheduler.run_once() == 0

    @pytest.mark.asyncio
    async def test_start_registers_single_interval_job(self, campaign_service):
        scheduler = AutoCloseScheduler(campaign_service, interval_seconds=120)

        scheduler.start()
        scheduler.start()
        try:
            assert scheduler.running is True
            job = scheduler._scheduler.get_job(AUTO_CLOSE_JOB_ID)
            assert job is not None
            assert job.max_instances == 1
            assert job.trigger.interval == timedelta(seconds=120)
        finally:
            scheduler.shutdown()

        assert scheduler.running is False
