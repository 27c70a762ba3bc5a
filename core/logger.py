#!/usr/bin/env python3
"""
Service logger setup

Configures the root logger once per process from ``LoggingConfig`` and returns
a named logger for the service.
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure logging for a service process.

    Args:
        service_name: Name of the service, used as the logger name
        level: Optional level override (e.g. "DEBUG")
        config: Optional LoggingConfig, loaded from environment when omitted

    Returns:
        The service logger
    """
    global _configured

    config = config or LoggingConfig.from_env()
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    if not _configured:
        root = logging.getLogger()
        root.setLevel(log_level)
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        # Quiet noisy third-party loggers
        logging.getLogger("nats").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        _configured = True

    service_logger = logging.getLogger(service_name)
    service_logger.setLevel(log_level)
    return service_logger
