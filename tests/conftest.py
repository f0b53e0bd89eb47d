"""
Shared pytest fixtures and configuration for all tests.
"""
import asyncio
import os
from typing import Any, Dict, List, Optional, Tuple

import pytest
from hypothesis import settings as hypothesis_settings, Verbosity, Phase

from redis_session.config.settings import Settings, clear_settings_cache
from redis_session.session.redis_store import RedisSessionStore
from redis_session.telemetry.service import reset_telemetry

# Hypothesis profiles, selected with HYPOTHESIS_PROFILE
hypothesis_settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

hypothesis_settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

hypothesis_settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class FakeKeyValueClient:
    """
    In-memory stand-in for RedisKeyValueClient.

    Mirrors the Redis semantics the session store relies on: SET clears a
    key's TTL, EXPIRE only applies to existing keys, DELETE is idempotent.

    Attributes:
        data: Stored values by key
        ttls: Remaining TTL in seconds by key (no clock; values are as set)
        calls: Every command issued, as (name, *args) tuples
        connect_calls: Arguments of each connect() call
        failures: Exceptions to raise, keyed by command name
        scripted_gets: Values returned by get() before falling back to data
    """

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self.connect_calls: List[Tuple[Any, ...]] = []
        self.failures: Dict[str, Exception] = {}
        self.scripted_gets: List[Optional[bytes]] = []
        self.connected = False
        self.closed = False

    def _command(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def command_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def connect(self, host, port, password=None, db=0):
        self.connect_calls.append((host, port, password, db))
        # Let other coroutines run, as a network round trip would
        await asyncio.sleep(0)
        self._command("connect", host, port)
        self.connected = True

    async def get(self, key):
        self._command("get", key)
        if self.scripted_gets:
            return self.scripted_gets.pop(0)
        return self.data.get(key)

    async def set(self, key, value):
        self._command("set", key, value)
        self.data[key] = value
        self.ttls.pop(key, None)
        return True

    async def delete(self, key):
        self._command("delete", key)
        existed = key in self.data
        self.data.pop(key, None)
        self.ttls.pop(key, None)
        return int(existed)

    async def expire(self, key, seconds):
        self._command("expire", key, seconds)
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    async def ping(self):
        self._command("ping")
        return True

    async def close(self):
        self._command("close")
        self.closed = True
        self.connected = False


@pytest.fixture(autouse=True)
def reset_global_state():
    """Keep cached settings and telemetry from leaking between tests."""
    clear_settings_cache()
    reset_telemetry()
    yield
    clear_settings_cache()
    reset_telemetry()


@pytest.fixture
def session_settings() -> Settings:
    """Settings matching a typical deployment, with gc never triggered."""
    return Settings(
        session_key_prefix="SESS:",
        session_ttl_seconds=1800,
        session_gc_probability=0.0,
    )


@pytest.fixture
def fake_client() -> FakeKeyValueClient:
    return FakeKeyValueClient()


@pytest.fixture
def client_factory(fake_client):
    """Factory handing out the shared fake, counting how often it is used."""
    def factory():
        factory.calls += 1
        return fake_client

    factory.calls = 0
    return factory


@pytest.fixture
def store(session_settings, client_factory) -> RedisSessionStore:
    """Unopened store wired to the fake client."""
    return RedisSessionStore(session_settings, client_factory=client_factory)


@pytest.fixture
async def open_store(store) -> RedisSessionStore:
    """Store that has already been opened."""
    await store.open()
    return store
