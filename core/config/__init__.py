#!/usr/bin/env python3
"""Modular configuration system for the campaign service

Configuration hierarchy:
- infra_config: Infrastructure endpoints (PostgreSQL, NATS)
- logging_config: Logging configuration
- campaign_config: Campaign settings (fees, auto-close sweep, event consumers)
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .campaign_config import CampaignConfig, CampaignEventConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = CampaignConfig.from_env()


def get_settings() -> CampaignConfig:
    """Get global settings instance"""
    return settings


def reload_settings() -> CampaignConfig:
    """Reload settings from environment"""
    global settings
    settings = CampaignConfig.from_env()
    return settings


__all__ = [
    'CampaignConfig',
    'CampaignEventConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'LoggingConfig',
    'InfraConfig',
]
