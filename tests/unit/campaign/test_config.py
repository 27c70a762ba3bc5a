"""
Unit Tests for Campaign Configuration

Environment loading and fallback to defaults on unparseable values.
"""

import pytest
from decimal import Decimal

from core.config import CampaignConfig, CampaignEventConfig, InfraConfig


CAMPAIGN_ENV_KEYS = [
    "CAMPAIGN_PLATFORM_FEE_RATE",
    "CAMPAIGN_AUTO_CLOSE_ENABLED",
    "CAMPAIGN_AUTO_CLOSE_INTERVAL_SECONDS",
    "CAMPAIGN_EVENT_MAX_DELIVER",
    "CAMPAIGN_EVENT_RETRY_BASE_SECONDS",
    "CAMPAIGN_EVENT_ACK_WAIT_SECONDS",
    "CAMPAIGN_EVENT_DURABLE_PREFIX",
    "POSTGRES_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in CAMPAIGN_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestCampaignConfig:

    def test_defaults(self):
        config = CampaignConfig.from_env()

        assert config.platform_fee_rate == Decimal("0.10")
        assert config.auto_close_enabled is True
        assert config.auto_close_interval_seconds == 300
        assert config.events.max_deliver == 5
        assert config.events.durable_prefix == "campaign-service"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CAMPAIGN_PLATFORM_FEE_RATE", "0.05")
        monkeypatch.setenv("CAMPAIGN_AUTO_CLOSE_ENABLED", "false")
        monkeypatch.setenv("CAMPAIGN_AUTO_CLOSE_INTERVAL_SECONDS", "60")

        config = CampaignConfig.from_env()

        assert config.platform_fee_rate == Decimal("0.05")
        assert config.auto_close_enabled is False
        assert config.auto_close_interval_seconds == 60

    @pytest.mark.parametrize(
        "key, value",
        [
            ("CAMPAIGN_PLATFORM_FEE_RATE", "ten percent"),
            ("CAMPAIGN_AUTO_CLOSE_INTERVAL_SECONDS", "5m"),
        ],
    )
    def test_bad_values_fall_back(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)

        config = CampaignConfig.from_env()

        assert config.platform_fee_rate == Decimal("0.10")
        assert config.auto_close_interval_seconds == 300


class TestCampaignEventConfig:

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CAMPAIGN_EVENT_MAX_DELIVER", "8")
        monkeypatch.setenv("CAMPAIGN_EVENT_RETRY_BASE_SECONDS", "1")
        monkeypatch.setenv("CAMPAIGN_EVENT_DURABLE_PREFIX", "campaign-canary")

        config = CampaignEventConfig.from_env()

        assert config.max_deliver == 8
        assert config.retry_base_seconds == 1
        assert config.ack_wait_seconds == 30
        assert config.durable_prefix == "campaign-canary"

    def test_bad_int_falls_back(self, monkeypatch):
        monkeypatch.setenv("CAMPAIGN_EVENT_MAX_DELIVER", "many")
        assert CampaignEventConfig.from_env().max_deliver == 5


class TestInfraConfig:

    def test_bad_port_falls_back(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_PORT", "not-a-port")
        assert InfraConfig.from_env().postgres_port == 5432
