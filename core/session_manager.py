"""
Session Manager - Owns the upstream connection lifecycle.

Transport callbacks and timers never touch state directly; they enqueue
events, and ``dispatch_next`` applies them one at a time on the thread
that drives the pipeline.
"""

import logging
import queue
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from models.raw_event import RawChangeEvent
from transports.base_transport import (
    BaseTransport,
    LogOnDetails,
    TransportError,
    LOGGED_ON,
    ERROR,
    DISCONNECTED,
    APP_UPDATE,
    CHANGELIST,
)


# Internal timer events
RECONNECT_DUE = 'reconnect_due'
CONNECT_DEADLINE = 'connect_deadline'


class SessionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


def compute_backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Exponential backoff with a ceiling.

    Args:
        attempt: Number of reconnects already scheduled since the last success
        base_delay: Delay for the first attempt
        max_delay: Upper bound

    Returns:
        min(base_delay * 2 ** attempt, max_delay)
    """
    # Exponent is capped so a days-long outage cannot overflow the float
    return min(base_delay * (2 ** min(attempt, 32)), max_delay)


class SessionManager:
    """Keeps a live upstream session for a single tracked app."""

    def __init__(
        self,
        transport: BaseTransport,
        resource_id: Union[int, str],
        log_on_details: LogOnDetails = None,
        base_delay: float = 5.0,
        max_delay: float = 300.0,
        connect_timeout: Optional[float] = 30.0,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            transport: Upstream transport
            resource_id: Tracked app id; events for other apps are ignored
            log_on_details: Credentials (anonymous by default)
            base_delay: First reconnect delay in seconds
            max_delay: Reconnect delay ceiling in seconds
            connect_timeout: Seconds a connect attempt may take, including priming,
                None for no deadline
            timer_factory: Callable with the ``threading.Timer`` signature
            clock: Monotonic clock used to bound priming by the connect deadline
        """
        self.transport = transport
        self.resource_id = resource_id
        self.log_on_details = log_on_details or LogOnDetails()
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.connect_timeout = connect_timeout
        self.logger = logging.getLogger('SessionManager')

        self._timer_factory = timer_factory
        self._clock = clock
        self._events: 'queue.Queue[tuple]' = queue.Queue()

        self.state = SessionState.DISCONNECTED
        self.attempt_count = 0
        self._closed = False
        self._attempt_id = 0
        self._attempt_started = 0.0
        self._reconnect_timer = None
        self._deadline_timer = None
        self._cache: Optional[Dict[str, Any]] = None

        self._ready_handlers: List[Callable[[], None]] = []
        self._change_handlers: List[Callable[[RawChangeEvent], None]] = []

        self._handlers = {
            LOGGED_ON: self._handle_logged_on,
            ERROR: self._handle_error,
            DISCONNECTED: self._handle_disconnected,
            APP_UPDATE: self._handle_app_update,
            CHANGELIST: self._handle_changelist,
            RECONNECT_DUE: self._handle_reconnect_due,
            CONNECT_DEADLINE: self._handle_connect_deadline,
        }

        transport.set_listener(self.post)

    # -- Subscriptions ---------------------------------------------------

    def on_ready(self, handler: Callable[[], None]) -> None:
        """Call ``handler`` each time a session is established and primed."""
        self._ready_handlers.append(handler)

    def on_change(self, handler: Callable[[RawChangeEvent], None]) -> None:
        """Call ``handler`` with every change event for the tracked app."""
        self._change_handlers.append(handler)

    # -- Event queue -----------------------------------------------------

    def post(self, event: str, *args: Any) -> None:
        """Enqueue an event. Safe to call from any thread."""
        self._events.put((event, args))

    def dispatch_next(self, timeout: Optional[float] = None) -> bool:
        """
        Apply the next queued event.

        Args:
            timeout: Seconds to wait for an event, None to block

        Returns:
            True if an event was dispatched, False if the wait timed out
        """
        try:
            event, args = self._events.get(timeout=timeout)
        except queue.Empty:
            return False
        self._dispatch(event, args)
        return True

    def dispatch_pending(self) -> int:
        """Apply every event already queued. Returns how many were applied."""
        count = 0
        while True:
            try:
                event, args = self._events.get_nowait()
            except queue.Empty:
                return count
            self._dispatch(event, args)
            count += 1

    def _dispatch(self, event: str, args: tuple) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            self.logger.debug(f"Ignoring unknown transport event: {event}")
            return
        if self._closed:
            self.logger.debug(f"Session closed - dropping {event} event")
            return
        handler(*args)

    # -- Lifecycle -------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def cached_data(self) -> Optional[Dict[str, Any]]:
        """Product info fetched when the session was primed, if any."""
        return self._cache

    def connect(self) -> None:
        """Start a connection attempt unless one is in flight or already succeeded."""
        if self._closed:
            self.logger.debug("Session closed - not connecting")
            return
        if self.state is not SessionState.DISCONNECTED:
            self.logger.debug(f"Connect skipped - session is {self.state.value}")
            return

        self.state = SessionState.CONNECTING
        self._attempt_id += 1
        self._attempt_started = self._clock()
        self._arm_deadline(self._attempt_id)

        mode = 'anonymously' if self.log_on_details.anonymous else f"as {self.log_on_details.username}"
        self.logger.info(f"Connecting to Steam {mode}...")

        try:
            self.transport.log_on(self.log_on_details)
        except TransportError as e:
            self._connection_lost(f"Log-on failed: {e}")

    def disconnect(self) -> None:
        """Log off and stop reconnecting. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._cancel_timers()

        self.logger.info("Disconnecting from Steam...")
        try:
            self.transport.log_off()
        except TransportError as e:
            self.logger.warning(f"Error while logging off: {e}")
        finally:
            self.state = SessionState.DISCONNECTED

    def schedule_reconnect(self) -> Optional[float]:
        """
        Schedule a reconnect with exponential backoff.

        Returns:
            The delay in seconds, or None if nothing was scheduled
        """
        if self._closed:
            return None
        if self._reconnect_timer is not None:
            self.logger.debug("Reconnect already scheduled")
            return None

        delay = compute_backoff_delay(self.attempt_count, self.base_delay, self.max_delay)
        self.attempt_count += 1
        self.logger.warning(f"Reconnecting in {delay:.0f}s (attempt {self.attempt_count})...")

        self._reconnect_timer = self._start_timer(delay, RECONNECT_DUE)
        return delay

    # -- Event handlers --------------------------------------------------

    def _handle_logged_on(self) -> None:
        if self.state is not SessionState.CONNECTING:
            self.logger.debug(f"Ignoring log-on while {self.state.value}")
            return

        remaining = self._remaining_connect_time()
        if remaining is not None and remaining <= 0:
            self._abandon_attempt()
            return

        self._cancel_timers()
        self.state = SessionState.CONNECTED
        self.attempt_count = 0
        self.logger.info("Logged into Steam successfully")

        self.logger.info(f"Priming cache with app {self.resource_id} info...")
        try:
            self._cache = self.transport.get_product_info(self.resource_id, timeout=remaining)
            self.logger.info(f"Cache primed - monitoring app {self.resource_id} for updates")
        except Exception as e:
            self.logger.warning(f"Failed to prime cache: {e}")

        for handler in self._ready_handlers:
            handler()

    def _handle_error(self, error: Exception = None) -> None:
        self.logger.error(f"Steam client error: {error}")
        self._connection_lost('error')

    def _handle_disconnected(self, reason_code: Any = None, message: str = None) -> None:
        self.logger.warning(
            f"Disconnected from Steam (EResult {reason_code}): {message or 'unknown reason'}"
        )
        self._connection_lost('disconnected')

    def _handle_app_update(self, app_id: Union[int, str], data: Any = None) -> None:
        if str(app_id) != str(self.resource_id):
            return

        self.logger.info(f"App update detected (AppID {app_id})")
        self._emit_change(RawChangeEvent.from_push(self.resource_id, data))

    def _handle_changelist(self, changenumber: Optional[int], app_ids: Any = None) -> None:
        if str(self.resource_id) not in {str(a) for a in (app_ids or [])}:
            return

        self.logger.info(f"Changelist #{changenumber} includes app {self.resource_id}")
        try:
            data = self.transport.get_product_info(self.resource_id)
        except Exception as e:
            self.logger.error(f"Failed to fetch product info: {e}")
            return

        event = RawChangeEvent.from_push(self.resource_id, data, changenumber)
        self.logger.debug(f"Got product info (changenumber: {event.sequence})")
        self._emit_change(event)

    def _handle_reconnect_due(self) -> None:
        self._reconnect_timer = None
        if self._closed or self.state is not SessionState.DISCONNECTED:
            return
        self.logger.info("Attempting reconnection...")
        self.connect()

    def _handle_connect_deadline(self, attempt_id: int) -> None:
        if attempt_id != self._attempt_id or self.state is not SessionState.CONNECTING:
            return
        self._deadline_timer = None
        self._abandon_attempt()

    # -- Helpers ---------------------------------------------------------

    def _remaining_connect_time(self) -> Optional[float]:
        if not self.connect_timeout:
            return None
        return self.connect_timeout - (self._clock() - self._attempt_started)

    def _abandon_attempt(self) -> None:
        self.logger.error(f"Connection attempt timed out after {self.connect_timeout:.0f}s")
        try:
            self.transport.log_off()
        except TransportError as e:
            self.logger.debug(f"Error abandoning timed-out attempt: {e}")
        self._connection_lost('timeout')

    def _connection_lost(self, reason: str) -> None:
        if self._closed:
            return
        self._cancel_deadline()
        self.state = SessionState.DISCONNECTED
        self.logger.debug(f"Session lost ({reason})")
        self.schedule_reconnect()

    def _emit_change(self, event: RawChangeEvent) -> None:
        for handler in self._change_handlers:
            handler(event)

    def _start_timer(self, delay: float, event: str, *args: Any):
        timer = self._timer_factory(delay, self.post, args=(event,) + args)
        timer.daemon = True
        timer.start()
        return timer

    def _arm_deadline(self, attempt_id: int) -> None:
        self._cancel_deadline()
        if self.connect_timeout:
            self._deadline_timer = self._start_timer(self.connect_timeout, CONNECT_DEADLINE, attempt_id)

    def _cancel_deadline(self) -> None:
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_deadline()
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
