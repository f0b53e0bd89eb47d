"""
Redis-based session handler.

Session payloads are stored verbatim under "<prefix><session id>" and kept
alive by Redis TTLs: every write and every successful read resets the key's
expiration, and Redis deletes records nobody touches. Nothing in this
process ever sweeps keys.

A read that finds no record writes an empty placeholder and reads again,
at most READ_REPAIR_ATTEMPTS times. Workers racing on a brand-new session
id may each write the placeholder; that race is tolerated.
"""

import asyncio
import logging
from typing import Optional, Union

from redis.exceptions import AuthenticationError, RedisError, ResponseError

from redis_session.config.settings import Settings
from redis_session.errors.exceptions import SessionStoreError, connection_error, store_error
from redis_session.session.client import ClientFactory, KeyValueClient, RedisKeyValueClient
from redis_session.session.cookies import expire_session_cookie
from redis_session.session.keys import derive_key
from redis_session.session.store import SessionHandler
from redis_session.telemetry.service import create_span, fingerprint, record_metric

logger = logging.getLogger(__name__)

READ_REPAIR_ATTEMPTS = 2


class RedisSessionStore(SessionHandler):
    """
    Session handler backed by a Redis-compatible key-value client.

    One store owns one connection handle. open() creates it on first use
    and is a no-op afterwards; close() releases it. No other method
    replaces the handle.

    Attributes:
        settings: Resolved settings (connection, key prefix, TTL)
        key_prefix: Namespace prepended to session ids
        ttl_seconds: Expiration applied on every write and successful read
        client: The connection handle, None until open() succeeds
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize the store. No connection is made until open().

        Args:
            settings: Resolved settings for this store.
            client_factory: Zero-argument callable returning an unconnected
                KeyValueClient. Defaults to RedisKeyValueClient.
        """
        self.settings = settings
        self.key_prefix = settings.session_key_prefix
        self.ttl_seconds = settings.session_ttl_seconds
        self.client_factory = client_factory or RedisKeyValueClient
        self.client: Optional[KeyValueClient] = None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.client is not None

    def key_for(self, session_id: str) -> str:
        """Redis key holding the given session's record."""
        return derive_key(session_id, self.key_prefix)

    async def open(self) -> bool:
        """
        Connect to Redis unless a connection handle already exists.

        Returns:
            True once the handle is usable.

        Raises:
            SessionConnectionError: If connecting, authenticating or
                selecting the database fails. details["stage"] names the step.
        """
        if self.client is not None:
            return True

        async with self._open_lock:
            # Another coroutine may have connected while we waited
            if self.client is not None:
                return True

            host = self.settings.redis_host
            port = self.settings.redis_port
            db = self.settings.redis_database
            details = {"host": host, "port": port, "db": db}

            client = self.client_factory()
            try:
                await client.connect(
                    host,
                    port,
                    password=self.settings.redis_password,
                    db=db,
                )
            except AuthenticationError as e:
                logger.error("Redis rejected the session store credential", extra={
                    "extra_data": {**details, "error": str(e)}
                })
                raise connection_error(
                    "authenticate", "Session store authentication failed", details
                ) from e
            except ResponseError as e:
                logger.error("Redis rejected the session database index", extra={
                    "extra_data": {**details, "error": str(e)}
                })
                raise connection_error(
                    "select_database", "Session store database selection failed", details
                ) from e
            except (RedisError, OSError) as e:
                logger.error("Could not connect to the session store", extra={
                    "extra_data": {**details, "error": str(e)}
                })
                raise connection_error(
                    "connect", "Session store is unreachable", details
                ) from e

            self.client = client
            logger.info("Session store connected", extra={"extra_data": details})
            return True

    async def close(self) -> bool:
        """Release the connection handle if there is one. Always returns True."""
        client, self.client = self.client, None
        if client is None:
            return True

        try:
            await client.close()
        except (RedisError, OSError) as e:
            logger.warning("Error while closing the session store connection", extra={
                "extra_data": {"error": str(e)}
            })
        else:
            logger.info("Session store connection closed")
        return True

    def _require_client(self) -> KeyValueClient:
        if self.client is None:
            raise connection_error(
                "not_open", "Session store is not open; call open() first"
            )
        return self.client

    async def _get(self, key: str) -> Optional[bytes]:
        client = self._require_client()
        try:
            return await client.get(key)
        except RedisError as e:
            raise store_error("get", details={"error": str(e)}) from e

    async def _expire(self, key: str) -> None:
        client = self._require_client()
        try:
            await client.expire(key, self.ttl_seconds)
        except RedisError as e:
            raise store_error("expire", details={"error": str(e)}) from e

    async def read(self, session_id: str) -> bytes:
        """
        Fetch a session payload, synthesizing an empty record on a miss.

        When the key holds nothing, an empty payload is written and the key
        is fetched again, up to READ_REPAIR_ATTEMPTS times, stopping early
        once data shows up. A non-empty result has its TTL refreshed.

        Returns:
            The stored payload, or b"" when there is none.

        Raises:
            SessionConnectionError: If the store was never opened.
            SessionStoreError: If a store command fails.
        """
        key = self.key_for(session_id)
        with create_span("session.read", {"session": fingerprint(session_id)}) as span:
            value = await self._get(key)

            attempts = 0
            while not value and attempts < READ_REPAIR_ATTEMPTS:
                attempts += 1
                await self.write(session_id, b"")
                value = await self._get(key)

            span.set_attribute("repair_attempts", attempts)
            if attempts:
                logger.debug("Session read found no data; placeholder written", extra={
                    "extra_data": {
                        "session": fingerprint(session_id),
                        "repair_attempts": attempts,
                        "recovered": bool(value),
                    }
                })
                record_metric("session.read_repair", attempts)

            if value:
                await self._expire(key)

        return value or b""

    async def write(self, session_id: str, payload: Union[bytes, str]) -> bool:
        """
        Overwrite a session payload and reset its TTL.

        Issues SET followed by EXPIRE. EXPIRE is sent even when SET fails,
        so a key left over from an earlier write still gets a fresh TTL.
        Failures are not retried.

        Raises:
            SessionConnectionError: If the store was never opened.
            SessionStoreError: If either command fails. A SET failure takes
                precedence over an EXPIRE failure.
        """
        client = self._require_client()
        if isinstance(payload, str):
            payload = payload.encode("utf-8")

        key = self.key_for(session_id)
        with create_span("session.write", {"session": fingerprint(session_id)}):
            set_error: Optional[RedisError] = None
            try:
                await client.set(key, payload)
            except RedisError as e:
                logger.error("Session write failed", extra={
                    "extra_data": {"session": fingerprint(session_id), "error": str(e)}
                })
                set_error = e

            try:
                await self._expire(key)
            except SessionStoreError:
                if set_error is None:
                    raise

            if set_error is not None:
                raise store_error("set", details={"error": str(set_error)}) from set_error

        return True

    async def destroy(self, session_id: str) -> bool:
        """
        Delete a session record and have the host clear the client cookie.

        Clearing the cookie keeps a stale id from coming back and being
        revived by read-repair on the next request.

        Raises:
            SessionConnectionError: If the store was never opened.
            SessionStoreError: If the delete fails.
        """
        client = self._require_client()
        key = self.key_for(session_id)
        with create_span("session.destroy", {"session": fingerprint(session_id)}):
            try:
                await client.delete(key)
            except RedisError as e:
                raise store_error("delete", details={"error": str(e)}) from e

        expire_session_cookie()
        logger.info("Session destroyed", extra={
            "extra_data": {"session": fingerprint(session_id)}
        })
        return True

    async def gc(self, max_lifetime_seconds: int) -> None:
        """Nothing to collect: Redis expires records through their TTLs."""
        logger.debug("gc requested; expiration is left to Redis TTLs", extra={
            "extra_data": {"max_lifetime_seconds": max_lifetime_seconds}
        })

    async def health_check(self) -> bool:
        """PING the store. Returns False when closed or unreachable."""
        if self.client is None:
            return False

        try:
            return await self.client.ping() is True
        except (RedisError, OSError):
            return False
