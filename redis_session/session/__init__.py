"""
Session persistence on a TTL-capable key-value store.

Session payloads live in Redis under namespaced keys and expire through
Redis TTLs, so every application process sharing the store sees the same
sessions.
"""

from redis_session.session.client import ClientFactory, KeyValueClient, RedisKeyValueClient
from redis_session.session.cookies import expire_session_cookie
from redis_session.session.keys import DEFAULT_KEY_PREFIX, derive_key
from redis_session.session.redis_store import READ_REPAIR_ATTEMPTS, RedisSessionStore
from redis_session.session.store import SessionHandler

__all__ = [
    "ClientFactory",
    "DEFAULT_KEY_PREFIX",
    "KeyValueClient",
    "READ_REPAIR_ATTEMPTS",
    "RedisKeyValueClient",
    "RedisSessionStore",
    "SessionHandler",
    "derive_key",
    "expire_session_cookie",
]
