"""
Integration test configuration and fixtures.

These tests talk to a real Redis server and are skipped unless one is
configured through environment variables:

- TEST_REDIS_HOST: Redis host (required to enable the tests)
- TEST_REDIS_PORT: Redis port (default: 6379)
- TEST_REDIS_PASSWORD: Credential, if the server requires one
- TEST_REDIS_DATABASE: Database index to use (default: 15)
"""
import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

import pytest

from redis_session.config.settings import Settings
from redis_session.session.redis_store import RedisSessionStore


@dataclass
class RedisTestConfig:
    """Connection details for the Redis used by integration tests."""
    host: str = field(default_factory=lambda: os.getenv("TEST_REDIS_HOST", ""))
    port: int = field(default_factory=lambda: int(os.getenv("TEST_REDIS_PORT", "6379")))
    password: Optional[str] = field(default_factory=lambda: os.getenv("TEST_REDIS_PASSWORD"))
    database: int = field(default_factory=lambda: int(os.getenv("TEST_REDIS_DATABASE", "15")))

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


redis_config = RedisTestConfig()


@pytest.fixture
def live_settings() -> Settings:
    """Settings pointing at the test Redis, with a per-test key prefix."""
    return Settings(
        redis_host=redis_config.host,
        redis_port=redis_config.port,
        redis_password=redis_config.password,
        redis_database=redis_config.database,
        session_key_prefix=f"test-{uuid.uuid4().hex[:8]}:",
        session_ttl_seconds=1800,
        session_gc_probability=0.0,
    )


@pytest.fixture
async def live_store(live_settings):
    """Opened store against the test Redis, closed after the test."""
    store = RedisSessionStore(live_settings)
    await store.open()
    yield store
    await store.close()
