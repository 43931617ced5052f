"""
Session Management

Holds the single authenticated gateway shared by every component.

All outbound calls go through SessionManager.acquire(), which holds one
application-wide lock: at most one remote call is in flight at a time.
Absence of a session is reported as NotAuthenticated.
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, List, Optional, Protocol

from .errors import NotAuthenticated
from .gateway import Connector, Identity, RemoteGateway, StoredSession

logger = logging.getLogger(__name__)

ConnectedCallback = Callable[[Identity], Any]


class CredentialStore(Protocol):
    """Persists the stored session between launches (OS keyring in the shell)."""

    def save(self, stored: StoredSession) -> None:
        ...

    def load(self) -> Optional[StoredSession]:
        ...

    def clear(self) -> None:
        ...


class MemoryCredentialStore:
    """Process-lifetime credential store."""

    def __init__(self, stored: Optional[StoredSession] = None):
        self._stored = stored

    def save(self, stored: StoredSession) -> None:
        self._stored = stored

    def load(self) -> Optional[StoredSession]:
        return self._stored

    def clear(self) -> None:
        self._stored = None


class SessionManager:
    """
    Shared, lock-guarded handle to the current remote session.

    Usage:
        session = SessionManager(HttpConnector(), MemoryCredentialStore())
        await session.login("alice.example.com", "app-password", service_url)

        identity = session.current_identity()
        async with session.acquire() as gateway:
            await gateway.fetch(ResourceType.TIMELINE, {"limit": 50})
    """

    def __init__(
        self,
        connector: Connector,
        credential_store: Optional[CredentialStore] = None,
        default_service_url: str = "https://bsky.social",
    ):
        self._connector = connector
        self._credentials = credential_store or MemoryCredentialStore()
        self._default_service_url = default_service_url
        self._lock = asyncio.Lock()
        self._gateway: Optional[RemoteGateway] = None
        self._identity: Optional[Identity] = None
        self._listeners: List[ConnectedCallback] = []

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def current_identity(self) -> Identity:
        """The authenticated identity, or NotAuthenticated."""
        if self._identity is None:
            raise NotAuthenticated()
        return self._identity

    @asynccontextmanager
    async def acquire(self):
        """Hold exclusive access to the gateway for the duration of the block."""
        async with self._lock:
            if self._gateway is None:
                raise NotAuthenticated()
            yield self._gateway

    def on_connected(self, callback: ConnectedCallback) -> None:
        """Register a callback fired after every (re)established session."""
        self._listeners.append(callback)

    async def login(self, identifier: str, password: str, service_url: Optional[str] = None) -> Identity:
        """
        Create a new remote session.

        Raises:
            CredentialFailure: identifier/password rejected
            NetworkTransient: service unreachable
        """
        url = service_url or self._default_service_url
        async with self._lock:
            stored = await self._connector.login(url, identifier, password)
            await self._install(stored)
            self._credentials.save(stored)

        logger.info("Logged in as %s", stored.handle)
        await self._notify_connected()
        return stored.identity

    async def resume(self) -> Identity:
        """Re-establish the session saved in the credential store."""
        stored = self._credentials.load()
        if stored is None:
            raise NotAuthenticated()

        async with self._lock:
            await self._install(stored)

        logger.info("Resumed session for %s", stored.handle)
        await self._notify_connected()
        return stored.identity

    async def logout(self) -> None:
        async with self._lock:
            await self._close_gateway()
            self._identity = None
        self._credentials.clear()
        logger.info("Logged out")

    async def close(self) -> None:
        """Release the gateway without forgetting stored credentials."""
        async with self._lock:
            await self._close_gateway()
            self._identity = None

    async def _install(self, stored: StoredSession) -> None:
        await self._close_gateway()
        self._gateway = self._connector.connect(stored)
        self._identity = stored.identity

    async def _close_gateway(self) -> None:
        if self._gateway is not None:
            try:
                await self._gateway.aclose()
            except Exception:
                logger.exception("Failed to close gateway")
            self._gateway = None

    async def _notify_connected(self) -> None:
        identity = self._identity
        if identity is None:
            return
        for callback in list(self._listeners):
            try:
                result = callback(identity)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Session connected callback failed")
