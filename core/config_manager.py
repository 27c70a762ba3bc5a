#!/usr/bin/env python3
"""
Configuration manager

Resolves infrastructure endpoints and service settings for a named service.
Lookup priority: explicit environment variables, then the loaded
``CampaignConfig`` settings, then the caller's default.
"""

import logging
import os
from typing import Any, Optional, Tuple

from core.config import get_settings

logger = logging.getLogger(__name__)


class ConfigManager:
    """Per-service configuration access"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.settings = get_settings()

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve the host and port of an infrastructure service.

        Args:
            service_name: Logical name of the service being discovered
            default_host: Host used when nothing else is configured
            default_port: Port used when nothing else is configured
            env_host_key: Environment variable holding the host
            env_port_key: Environment variable holding the port

        Returns:
            (host, port) tuple
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port_value = os.getenv(env_port_key) if env_port_key else None

        host = host or default_host
        try:
            port = int(port_value) if port_value else default_port
        except ValueError:
            logger.warning(f"Invalid port '{port_value}' for {service_name}, using {default_port}")
            port = default_port

        logger.debug(f"[{self.service_name}] discovered {service_name} at {host}:{port}")
        return host, port

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a setting by environment key, falling back to the settings object"""
        value = os.getenv(key)
        if value is not None:
            return value
        return getattr(self.settings, key.lower(), default)
