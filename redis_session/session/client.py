"""
Key-value client capability consumed by the session store.

The store only needs connect/get/set/delete/expire (plus ping and close
for health checks and shutdown). RedisKeyValueClient implements that
surface over redis.asyncio; tests substitute in-memory fakes through the
store's client_factory argument.
"""

import logging
from typing import Any, Callable, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

logger = logging.getLogger(__name__)


class KeyValueClient(Protocol):
    """Minimal async key-value capability with per-key TTLs."""

    async def connect(
        self,
        host: str,
        port: int,
        password: Optional[str] = None,
        db: int = 0,
    ) -> None: ...

    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes) -> Any: ...

    async def delete(self, key: str) -> Any: ...

    async def expire(self, key: str, seconds: int) -> Any: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


ClientFactory = Callable[[], KeyValueClient]


class RedisKeyValueClient:
    """
    KeyValueClient backed by a redis.asyncio connection pool.

    redis-py authenticates and selects the database on every pooled
    connection it opens, so the credential and database index are handed
    to the pool at connect time rather than sent as one-off AUTH/SELECT
    commands. connect() then issues a PING so that an unreachable server,
    a rejected credential or an out-of-range database index fail here
    instead of on the first session read.

    Attributes:
        socket_timeout: Optional per-command socket timeout in seconds
        client: The underlying redis.asyncio.Redis, None until connected
    """

    def __init__(self, socket_timeout: Optional[float] = None, **connection_kwargs: Any):
        self.socket_timeout = socket_timeout
        self.connection_kwargs = connection_kwargs
        self.client: Optional[redis.Redis] = None

    async def connect(
        self,
        host: str,
        port: int,
        password: Optional[str] = None,
        db: int = 0,
    ) -> None:
        """
        Open the pool and verify it with a PING.

        Raises:
            redis.exceptions.AuthenticationError: The credential was rejected.
            redis.exceptions.ResponseError: The database index was rejected.
            redis.exceptions.ConnectionError: The server is unreachable.
        """
        client = redis.Redis(
            host=host,
            port=port,
            password=password,
            db=db,
            socket_timeout=self.socket_timeout,
            decode_responses=False,
            **self.connection_kwargs,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        self.client = client
        logger.debug("Redis pool ready", extra={
            "extra_data": {"host": host, "port": port, "db": db}
        })

    def _connected(self) -> redis.Redis:
        if self.client is None:
            raise RedisConnectionError("Redis client not connected. Call connect() first.")
        return self.client

    async def get(self, key: str) -> Optional[bytes]:
        return await self._connected().get(key)

    async def set(self, key: str, value: bytes) -> Any:
        return await self._connected().set(key, value)

    async def delete(self, key: str) -> Any:
        return await self._connected().delete(key)

    async def expire(self, key: str, seconds: int) -> Any:
        return await self._connected().expire(key, seconds)

    async def ping(self) -> bool:
        return bool(await self._connected().ping())

    async def close(self) -> None:
        """Release the pool; a no-op when never connected."""
        if self.client is not None:
            client, self.client = self.client, None
            await client.aclose()
