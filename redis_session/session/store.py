"""
Session handler abstraction.

This module defines the contract the host's session lifecycle drives:
open and close bracket a connection, read/write/destroy act on one
session's serialized payload, and gc is the periodic expiration hook.
"""

from abc import ABC, abstractmethod
from typing import Union


class SessionHandler(ABC):
    """
    Abstract base class for session persistence backends.

    All methods are async so implementations can talk to network stores
    without blocking the event loop. Payloads are opaque bytes; an empty
    payload means "no session data".
    """

    @abstractmethod
    async def open(self) -> bool:
        """
        Make the backend ready for session operations.

        Must be idempotent: calling it on an open handler succeeds without
        reconnecting.

        Returns:
            True once the backend is usable.

        Raises:
            SessionConnectionError: If the backend cannot be reached.
        """

    @abstractmethod
    async def close(self) -> bool:
        """
        Release backend resources.

        Always succeeds, including when the handler was never opened or was
        already closed.
        """

    @abstractmethod
    async def read(self, session_id: str) -> bytes:
        """
        Return the stored payload for a session, or b"" if there is none.

        A missing session is not an error.
        """

    @abstractmethod
    async def write(self, session_id: str, payload: Union[bytes, str]) -> bool:
        """
        Replace the stored payload for a session.

        Raises:
            SessionStoreError: If the backend rejects or loses the write.
        """

    @abstractmethod
    async def destroy(self, session_id: str) -> bool:
        """
        Remove a session so it cannot be resumed.

        Raises:
            SessionStoreError: If the backend fails to delete the record.
        """

    @abstractmethod
    async def gc(self, max_lifetime_seconds: int) -> None:
        """Expire sessions older than max_lifetime_seconds."""

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity of the backend.

        Never raises; connectivity problems result in False.
        """
