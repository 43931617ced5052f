"""
Application wiring

Builds the shared, long-lived resources (store, session handle, notifier)
once and injects them into every component.

Usage:
    async with application_lifespan() as app:
        await commands.login(app, "alice.example.com", "app-password")
        timeline = await commands.get_timeline(app)
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from .config import Settings, get_settings
from .core.cache import CacheStore, NotificationsCache, ProfileCache, TimelineCache
from .core.database import DatabaseAdapter, DatabaseConfig, utcnow
from .core.drafts import DraftStore, decode_post_payload
from .core.events import Notifier
from .core.gateway import Connector, HttpConnector
from .core.observability import configure_logging, init_metrics, init_tracing
from .core.outbox import OutboxProcessor, OutboxWriter
from .core.session import CredentialStore, SessionManager
from .workers.scheduler import Scheduler

logger = logging.getLogger(__name__)


class Application:
    """Owns every sync core component for one process."""

    def __init__(
        self,
        settings: Settings,
        connector: Optional[Connector] = None,
        credential_store: Optional[CredentialStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.db = DatabaseAdapter(DatabaseConfig(settings.db_path))
        self.notifier = Notifier()
        self.session = SessionManager(
            connector or HttpConnector(timeout=settings.http_timeout),
            credential_store,
            default_service_url=settings.service_url,
        )

        self.outbox = OutboxWriter(self.db, self.notifier, clock=clock)
        self.processor = OutboxProcessor(
            self.outbox,
            self.session,
            self.notifier,
            batch_size=settings.outbox_batch_size,
            max_attempts=settings.outbox_max_attempts,
            decoder=decode_post_payload,
        )
        self.drafts = DraftStore(self.db, clock=clock)

        self.timeline_cache = TimelineCache(CacheStore(self.db, "cache_timeline", clock), self.notifier)
        self.notifications_cache = NotificationsCache(
            CacheStore(self.db, "cache_notifications", clock), self.notifier
        )
        self.profile_cache = ProfileCache(CacheStore(self.db, "cache_profile", clock), self.notifier)

        self.scheduler = Scheduler(
            self.processor,
            self.session,
            self.notifier,
            sweep_interval=settings.outbox_sweep_interval,
            unread_poll_interval=settings.unread_poll_interval,
        )

    async def startup(self, start_scheduler: bool = True) -> None:
        self.settings.ensure_directories()
        await self.db.connect()

        if start_scheduler and self.settings.outbox_enabled:
            await self.scheduler.start()
        elif start_scheduler:
            logger.info("Background scheduler disabled: OUTBOX_ENABLED=false")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        for cache in (self.timeline_cache, self.notifications_cache, self.profile_cache):
            await cache.wait_for_refreshes()
        await self.notifier.drain()
        await self.session.close()
        await self.db.disconnect()


def configure_observability(settings: Settings) -> None:
    configure_logging(level=settings.log_level, structured=settings.log_structured)
    init_tracing(otlp_endpoint=settings.otlp_endpoint, console_export=settings.otel_console_export)
    init_metrics(otlp_endpoint=settings.otlp_endpoint, console_export=settings.otel_console_export)


@asynccontextmanager
async def application_lifespan(
    settings: Optional[Settings] = None,
    connector: Optional[Connector] = None,
    credential_store: Optional[CredentialStore] = None,
    start_scheduler: bool = True,
):
    """
    Start the application and shut it down on exit.

    Scheduler start honours OUTBOX_ENABLED.
    """
    settings = settings or get_settings()
    for issue in settings.validate():
        logger.warning(f"Config: {issue}")

    app = Application(settings, connector=connector, credential_store=credential_store)
    await app.startup(start_scheduler=start_scheduler)
    try:
        yield app
    finally:
        await app.shutdown()
