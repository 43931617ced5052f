"""
Shared Test Fixtures

Temporary SQLite stores, a scripted fake gateway, a mutable clock and a
notification recorder.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from bluehorizon.config import Settings
from bluehorizon.core.database import DatabaseAdapter, DatabaseConfig
from bluehorizon.core.events import ALL_EVENT_TYPES, Notification, Notifier
from bluehorizon.core.gateway import Identity, ResourceType, StoredSession
from bluehorizon.core.session import MemoryCredentialStore, SessionManager

ALICE = StoredSession(
    did="did:plc:alice123",
    handle="alice.test",
    access_jwt="access-token",
    refresh_jwt="refresh-token",
    service_url="https://pds.test",
)


class MutableClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


class FakeGateway:
    """
    Scripted RemoteGateway.

    send_outcomes / fetch_outcomes are consumed in order; an Exception
    instance is raised, anything else is returned. When a script runs
    out, sends succeed and fetches return the resource default.
    """

    def __init__(self):
        self.send_outcomes: List[Any] = []
        self.fetch_outcomes: Dict[ResourceType, List[Any]] = {}
        self.fetch_defaults: Dict[ResourceType, Any] = {
            ResourceType.TIMELINE: {"feed": [], "cursor": None},
            ResourceType.NOTIFICATIONS: {"notifications": [], "cursor": None},
            ResourceType.PROFILE: {"handle": "alice.test"},
            ResourceType.UNREAD_COUNT: {"count": 0},
            ResourceType.AUTHOR_FEED: {"feed": [], "cursor": None},
        }
        self.sent: List[Dict[str, Any]] = []
        self.fetches: List[tuple] = []
        self.seen_updates = 0
        self.closed = False

    def fail_sends(self, error: Exception, times: int = 1) -> None:
        self.send_outcomes.extend([error] * times)

    def script_fetch(self, resource_type: ResourceType, *outcomes: Any) -> None:
        self.fetch_outcomes.setdefault(resource_type, []).extend(outcomes)

    async def send_mutation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(payload)
        if self.send_outcomes:
            outcome = self.send_outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        return {"uri": f"at://did:plc:alice123/app.bsky.feed.post/{len(self.sent)}", "cid": "cid"}

    async def fetch(self, resource_type: ResourceType, params: Dict[str, Any]) -> Any:
        self.fetches.append((ResourceType(resource_type), dict(params)))
        script = self.fetch_outcomes.get(resource_type)
        if script:
            outcome = script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return self.fetch_defaults[ResourceType(resource_type)]

    async def update_seen(self) -> None:
        self.seen_updates += 1

    async def aclose(self) -> None:
        self.closed = True


class FakeConnector:
    """Connector that always hands out the same FakeGateway."""

    def __init__(self, gateway: FakeGateway, stored: StoredSession = ALICE):
        self.gateway = gateway
        self.stored = stored
        self.login_error: Optional[Exception] = None
        self.logins: List[tuple] = []

    async def login(self, service_url: str, identifier: str, password: str) -> StoredSession:
        self.logins.append((service_url, identifier))
        if self.login_error is not None:
            raise self.login_error
        return self.stored.model_copy(update={"service_url": service_url})

    def connect(self, stored: StoredSession) -> FakeGateway:
        self.gateway.closed = False
        return self.gateway


class EventRecorder:
    """Subscribes to every notification name and keeps what it sees."""

    def __init__(self, notifier: Notifier):
        self.received: List[Notification] = []
        for name in ALL_EVENT_TYPES:
            notifier.subscribe(name, self.received.append)

    def named(self, name) -> List[Any]:
        value = getattr(name, "value", name)
        return [n.payload for n in self.received if n.name == value]


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
async def db(tmp_path):
    """Migrated SQLite database in a temporary directory."""
    adapter = DatabaseAdapter(DatabaseConfig(tmp_path / "test.db"))
    await adapter.connect()
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def events(notifier) -> EventRecorder:
    return EventRecorder(notifier)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def connector(gateway) -> FakeConnector:
    return FakeConnector(gateway)


@pytest.fixture
def session(connector) -> SessionManager:
    """Session manager with no active session."""
    return SessionManager(connector, MemoryCredentialStore(), default_service_url="https://pds.test")


@pytest.fixture
async def logged_in(session) -> Identity:
    return await session.login("alice.test", "app-password")


@pytest.fixture
def identity() -> Identity:
    return ALICE.identity


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("BLUEHORIZON_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("BLUEHORIZON_DB_PATH", raising=False)
    monkeypatch.setenv("BLUEHORIZON_SERVICE_URL", "https://pds.test")
    monkeypatch.setenv("OUTBOX_SWEEP_INTERVAL", "20")
    monkeypatch.setenv("UNREAD_POLL_INTERVAL", "180")
    return Settings()


@pytest.fixture
async def app(settings, connector, clock):
    """Started Application with a fake connector and no background loops."""
    from bluehorizon.app import Application

    application = Application(settings, connector=connector, clock=clock)
    await application.startup(start_scheduler=False)
    yield application
    await application.shutdown()


@pytest.fixture
async def logged_in_app(app):
    """Application with an active session."""
    await app.session.login("alice.test", "app-password")
    return app


@pytest.fixture
def app_events(app) -> EventRecorder:
    return EventRecorder(app.notifier)
