#!/usr/bin/env python3
"""
Core Module for the Campaign Service

Shared infrastructure components used by the campaign microservice.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - config_manager.py: Service discovery and setting lookup
    - logger.py: Service logger setup
    - nats_client.py: NATS JetStream event bus for event-driven architecture
    - postgres_client.py: asyncpg connection pool wrapper

USAGE:
    from core.config_manager import ConfigManager

    # Initialize configuration for a service
    config = ConfigManager("campaign_service")
"""

from .config_manager import ConfigManager

__all__ = [
    "ConfigManager",
]

__version__ = "2.0.0"
