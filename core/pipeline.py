"""
Pipeline - Wires the session manager, normalizer, deduplicator and notifier.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from core.cursor_store import CursorStore
from core.deduplicator import Deduplicator
from core.normalizer import UpdateNormalizer
from core.session_manager import SessionManager
from core.settings import MonitorSettings
from models.raw_event import RawChangeEvent
from models.update import Update
from notifiers.base_notifier import BaseNotifier
from notifiers.discord_notifier import DiscordNotifier
from transports.base_transport import BaseTransport, LogOnDetails
from transports.steamcmd_transport import SteamCmdTransport


class MonitorPipeline:
    """Forwards each new update of the tracked app to the notifier exactly once."""

    def __init__(
        self,
        session: SessionManager,
        normalizer: UpdateNormalizer,
        deduplicator: Deduplicator,
        notifier: BaseNotifier,
        clock: Callable[[], datetime] = None,
        on_ready: Callable[[], None] = None
    ):
        """
        Args:
            session: Session manager for the upstream feed
            normalizer: Raw event normalizer
            deduplicator: Changenumber deduplicator
            notifier: Delivery sink
            clock: Returns the current aware datetime (for observed_at)
            on_ready: Called each time the session becomes ready
        """
        self.session = session
        self.normalizer = normalizer
        self.deduplicator = deduplicator
        self.notifier = notifier
        self.logger = logging.getLogger('MonitorPipeline')

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._on_ready = on_ready
        self._ready = threading.Event()
        self._stop = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

        session.on_ready(self._handle_ready)
        session.on_change(self._handle_change)

    @classmethod
    def from_settings(
        cls,
        settings: MonitorSettings,
        transport: BaseTransport = None,
        notifier: BaseNotifier = None
    ) -> 'MonitorPipeline':
        """
        Build a pipeline with the default collaborators.

        Args:
            settings: Validated settings
            transport: Upstream transport (SteamCmdTransport if omitted)
            notifier: Delivery sink (DiscordNotifier if omitted)

        Returns:
            MonitorPipeline
        """
        if transport is None:
            transport = SteamCmdTransport(
                settings.resource_id,
                api_base_url=settings.api_base_url,
                poll_interval=settings.poll_interval,
                timeout=settings.http_timeout,
                user_agent=settings.user_agent
            )
        if notifier is None:
            notifier = DiscordNotifier(
                settings.webhook_url,
                timeout=settings.http_timeout,
                user_agent=settings.user_agent
            )

        session = SessionManager(
            transport,
            settings.resource_id,
            log_on_details=LogOnDetails(settings.steam_username, settings.steam_password),
            base_delay=settings.base_reconnect_delay,
            max_delay=settings.max_reconnect_delay,
            connect_timeout=settings.connect_timeout
        )

        return cls(
            session=session,
            normalizer=UpdateNormalizer(default_label=settings.resource_label),
            deduplicator=Deduplicator(CursorStore(settings.state_file), settings.resource_id),
            notifier=notifier
        )

    @property
    def is_ready(self) -> bool:
        """Whether a session has become ready at least once."""
        return self._ready.is_set()

    def _handle_ready(self) -> None:
        self.logger.info("Bot is ready - listening for updates...")
        if self.deduplicator.last_sequence is not None:
            self.logger.info(f"Last known changenumber: {self.deduplicator.last_sequence}")
        self._ready.set()
        if self._on_ready is not None:
            self._on_ready()

    def _handle_change(self, event: RawChangeEvent) -> None:
        self.logger.info(f"Received update event (changenumber: {event.sequence})")

        update = self.normalizer.normalize(event, observed_at=self._clock())
        admitted = self.deduplicator.admit(update)
        if admitted is None:
            self.logger.debug("Update was a duplicate - skipping notification")
            return

        self.logger.info(f"Processed update: {admitted}")
        self.logger.debug(f"Update details: {admitted.to_dict()}")
        self.deliver(admitted)

    def deliver(self, update: Update) -> bool:
        """
        Hand an update to the notifier. Failures are logged, never raised.

        Returns:
            Whether delivery succeeded
        """
        try:
            sent = self.notifier.send_update(update)
        except Exception as e:
            self.logger.error(f"Notifier raised while sending changelist #{update.sequence_label}: {e}")
            return False

        if not sent:
            self.logger.warning(
                f"Failed to deliver changelist #{update.sequence_label} - it will not be retried"
            )
        return bool(sent)

    def run(self, stop_event: threading.Event = None, poll_timeout: float = 0.5) -> None:
        """
        Connect and dispatch events until stopped, then shut down.

        Args:
            stop_event: Set by the caller to stop; the pipeline's own event if omitted
            poll_timeout: Seconds to wait for an event before re-checking the stop flag
        """
        stop = stop_event or self._stop
        self.session.connect()
        try:
            while not stop.is_set() and not self._stop.is_set():
                self.session.dispatch_next(timeout=poll_timeout)
        finally:
            self.shutdown()

    def request_stop(self) -> None:
        """Ask ``run`` to return. Safe to call from a signal handler."""
        self._stop.set()

    def wait_until_ready(self, timeout: float, poll_timeout: float = 0.1) -> bool:
        """
        Connect and dispatch events until the session is ready or time runs out.

        Returns:
            True if ready before the deadline
        """
        deadline = time.monotonic() + timeout
        self.session.connect()
        while not self._ready.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.session.dispatch_next(timeout=min(poll_timeout, remaining))
        return True

    def send_latest(self, timeout: float) -> bool:
        """
        Send the current state of the app once, bypassing deduplication.

        The cursor is not read or advanced.

        Args:
            timeout: Seconds to wait for the session to become ready

        Returns:
            True if a notification was delivered
        """
        if not self.wait_until_ready(timeout):
            self.logger.error(f"Steam connection timed out ({timeout:.0f}s)")
            return False

        data = self.session.cached_data
        if not data:
            self.logger.error("Could not retrieve app data from the primed cache")
            return False

        event = RawChangeEvent.from_push(self.session.resource_id, data)
        update = self.normalizer.normalize(event, observed_at=self._clock())
        self.logger.info(f"Sending latest state: {update}")
        return self.deliver(update)

    def shutdown(self) -> None:
        """Disconnect the session, then close the notifier. Runs once."""
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        self.logger.info("Shutting down gracefully...")
        try:
            self.session.disconnect()
        except Exception as e:
            self.logger.error(f"Error disconnecting session: {e}")

        try:
            self.notifier.close()
        except Exception as e:
            self.logger.error(f"Error closing notifier: {e}")

        self.logger.info("Goodbye!")
