#!/usr/bin/env python3
"""Campaign service main configuration

Combines the infrastructure and logging sub-configs with the settings that
drive campaign funding, the auto-close sweep and event consumption.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .infra_config import InfraConfig
from .logging_config import LoggingConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


def _decimal(val: str, default: Decimal) -> Decimal:
    try:
        return Decimal(val) if val else default
    except InvalidOperation:
        return default


@dataclass
class CampaignEventConfig:
    """JetStream consumer settings for inbound clip and stats events"""
    max_deliver: int = 5
    retry_base_seconds: int = 2
    ack_wait_seconds: int = 30
    durable_prefix: str = "campaign-service"

    @classmethod
    def from_env(cls) -> 'CampaignEventConfig':
        return cls(
            max_deliver=_int(os.getenv("CAMPAIGN_EVENT_MAX_DELIVER", "5"), 5),
            retry_base_seconds=_int(os.getenv("CAMPAIGN_EVENT_RETRY_BASE_SECONDS", "2"), 2),
            ack_wait_seconds=_int(os.getenv("CAMPAIGN_EVENT_ACK_WAIT_SECONDS", "30"), 30),
            durable_prefix=os.getenv("CAMPAIGN_EVENT_DURABLE_PREFIX", "campaign-service"),
        )


@dataclass
class CampaignConfig:
    """Complete campaign service configuration"""
    service_name: str = "campaign_service"
    environment: str = "development"
    debug: bool = False

    platform_fee_rate: Decimal = Decimal("0.10")
    auto_close_enabled: bool = True
    auto_close_interval_seconds: int = 300

    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    events: CampaignEventConfig = field(default_factory=CampaignEventConfig)

    @classmethod
    def from_env(cls) -> 'CampaignConfig':
        """Load complete campaign config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            service_name=os.getenv("SERVICE_NAME", "campaign_service"),
            environment=env,
            debug=_bool(os.getenv("DEBUG", "false")),
            platform_fee_rate=_decimal(os.getenv("CAMPAIGN_PLATFORM_FEE_RATE", "0.10"), Decimal("0.10")),
            auto_close_enabled=_bool(os.getenv("CAMPAIGN_AUTO_CLOSE_ENABLED", "true")),
            auto_close_interval_seconds=_int(
                os.getenv("CAMPAIGN_AUTO_CLOSE_INTERVAL_SECONDS", "300"), 300
            ),
            infrastructure=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
            events=CampaignEventConfig.from_env(),
        )
