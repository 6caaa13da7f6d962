"""
Abstract base transport for upstream change feeds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union
import logging


# Events a transport reports to its listener, with their arguments:
#   logged_on       ()
#   error           (exception)
#   disconnected    (reason_code, message)
#   app_update      (app_id, data)
#   changelist      (changenumber, app_ids)
LOGGED_ON = 'logged_on'
ERROR = 'error'
DISCONNECTED = 'disconnected'
APP_UPDATE = 'app_update'
CHANGELIST = 'changelist'


class TransportError(Exception):
    """Raised when an upstream request fails."""


@dataclass(frozen=True)
class LogOnDetails:
    """Credentials for opening a session. No username means anonymous."""

    username: str = ''
    password: str = ''

    @property
    def anonymous(self) -> bool:
        return not self.username

    def __repr__(self) -> str:
        return f"LogOnDetails(username={self.username!r}, anonymous={self.anonymous})"


class BaseTransport(ABC):
    """
    Abstract base class for upstream transports.

    A transport reports events by calling its listener with the event
    name followed by the event arguments. Listeners may be called from
    any thread.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._listener: Optional[Callable[..., None]] = None

    def set_listener(self, listener: Callable[..., None]) -> None:
        """Register the callable that receives transport events."""
        self._listener = listener

    def emit(self, event: str, *args: Any) -> None:
        """Report an event to the listener, if any."""
        if self._listener is not None:
            self._listener(event, *args)

    @abstractmethod
    def log_on(self, details: LogOnDetails) -> None:
        """
        Start opening a session.

        Completion is reported asynchronously through ``logged_on`` or
        ``error``.

        Args:
            details: Credentials, anonymous if no username
        """
        pass

    @abstractmethod
    def log_off(self) -> None:
        """Close the session. Reports no events."""
        pass

    @abstractmethod
    def get_product_info(
        self,
        app_id: Union[int, str],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Fetch the current product info for an app.

        Args:
            app_id: App to fetch
            timeout: Seconds the fetch may take, None for the transport default

        Returns:
            PICS-style blob with ``changenumber``, ``missingToken`` and ``appinfo``

        Raises:
            TransportError: If the request fails
        """
        pass

    def handle_error(self, exception: Exception) -> None:
        """
        Log an upstream failure and report it to the listener.

        Args:
            exception: The exception that occurred
        """
        self.logger.error(f"Upstream error: {type(exception).__name__}: {exception}")
        self.emit(ERROR, exception)
