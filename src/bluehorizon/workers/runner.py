"""
Headless sync runner

Runs the background scheduler without the GUI shell: resumes the stored
session if there is one, then sweeps and polls until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from ..app import application_lifespan
from ..config import Settings
from ..core.errors import BlueHorizonError
from ..core.session import CredentialStore

logger = logging.getLogger(__name__)


class SyncRunner:
    """
    Manages the sync daemon lifecycle with graceful shutdown.
    """

    def __init__(self, settings: Settings, credential_store: Optional[CredentialStore] = None):
        self.settings = settings
        self._credential_store = credential_store
        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_shutdown_signal, sig)

    def _handle_shutdown_signal(self, sig: signal.Signals):
        if self._shutdown_requested:
            logger.warning(f"Received {sig.name} again, forcing exit")
            sys.exit(1)

        logger.info(f"Received {sig.name}, initiating graceful shutdown")
        self.request_shutdown()

    def request_shutdown(self) -> None:
        self._shutdown_requested = True
        self._shutdown_event.set()

    async def run(self) -> None:
        """Run until shutdown is requested."""
        logger.info("Starting Blue Horizon sync runner")
        logger.info(f"  Database: {self.settings.db_path}")
        logger.info(f"  Sweep interval: {self.settings.outbox_sweep_interval}s")
        logger.info(f"  Unread poll interval: {self.settings.unread_poll_interval}s")

        self._setup_signal_handlers()

        async with application_lifespan(self.settings, credential_store=self._credential_store) as app:
            try:
                identity = await app.session.resume()
                logger.info(f"Resumed session for {identity.handle}")
            except BlueHorizonError as e:
                logger.warning(f"No session resumed, background sync idle until login: {e}")

            await self._shutdown_event.wait()
            logger.info("Stopping sync runner")

        logger.info("Sync runner stopped")
