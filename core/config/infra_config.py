#!/usr/bin/env python3
"""Infrastructure services configuration

Endpoints for the infrastructure the campaign service talks to natively.
"""
import os
from dataclasses import dataclass
from typing import Optional


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class InfraConfig:
    """Infrastructure service endpoints"""

    # ===========================================
    # PostgreSQL (native asyncpg - port 5432)
    # ===========================================
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_pool_min: int = 1
    postgres_pool_max: int = 10

    # ===========================================
    # NATS JetStream (native - port 4222)
    # ===========================================
    nats_host: str = "localhost"
    nats_port: int = 4222
    nats_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'InfraConfig':
        """Load infrastructure config from environment variables"""
        return cls(
            postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
            postgres_port=_int(os.getenv("POSTGRES_PORT", "5432"), 5432),
            postgres_db=os.getenv("POSTGRES_DB", "postgres"),
            postgres_user=os.getenv("POSTGRES_USER", "postgres"),
            postgres_password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            postgres_pool_min=_int(os.getenv("POSTGRES_POOL_MIN", "1"), 1),
            postgres_pool_max=_int(os.getenv("POSTGRES_POOL_MAX", "10"), 10),
            nats_host=os.getenv("NATS_HOST", "localhost"),
            nats_port=_int(os.getenv("NATS_PORT", "4222"), 4222),
            nats_url=os.getenv("NATS_URL"),
        )

    def get_nats_url(self) -> str:
        """Full NATS server URL, preferring an explicit NATS_URL"""
        if self.nats_url:
            return self.nats_url
        return f"nats://{self.nats_host}:{self.nats_port}"
