"""
SteamCMD API transport.
Polls the public SteamCMD info API for PICS product info and reports
app updates when the changenumber advances.
"""

import threading
from typing import Any, Dict, Optional, Union

import requests

from .base_transport import (
    BaseTransport,
    LogOnDetails,
    TransportError,
    LOGGED_ON,
    APP_UPDATE,
)


class SteamCmdTransport(BaseTransport):
    """Transport backed by HTTP polling of api.steamcmd.net."""

    def __init__(
        self,
        app_id: Union[int, str],
        api_base_url: str = 'https://api.steamcmd.net/v1',
        poll_interval: float = 60.0,
        timeout: float = 30.0,
        user_agent: str = 'Steam-Update-Monitor/1.0'
    ):
        """
        Args:
            app_id: App whose product info is polled
            api_base_url: Base URL of the SteamCMD API
            poll_interval: Seconds between polls
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header value
        """
        super().__init__()
        self.app_id = app_id
        self.api_base_url = api_base_url.rstrip('/')
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.user_agent = user_agent

        self._lock = threading.Lock()
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def log_on(self, details: LogOnDetails = None) -> None:
        """Start a polling session. The first fetch runs on the polling thread."""
        if details is not None and not details.anonymous:
            self.logger.warning(
                f"SteamCMD API is anonymous - ignoring credentials for {details.username}"
            )

        with self._lock:
            if self._stop is not None:
                self._stop.set()
            stop = threading.Event()
            self._stop = stop
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(stop,),
                name='steamcmd-poll',
                daemon=True
            )
            self._thread.start()

    def log_off(self) -> None:
        with self._lock:
            if self._stop is not None:
                self._stop.set()
            self._stop = None
            self._thread = None

    def _poll_loop(self, stop: threading.Event) -> None:
        """
        Fetch once to open the session, then poll until stopped.

        Any failure reports ``error`` and ends this session; reconnecting
        is up to the listener.
        """
        last_seen = None

        while not stop.is_set():
            try:
                data = self.get_product_info(self.app_id)
            except TransportError as e:
                if not stop.is_set():
                    self.handle_error(e)
                return
            except Exception as e:
                if not stop.is_set():
                    self.handle_error(TransportError(f"Unexpected error polling app {self.app_id}: {e}"))
                return

            if stop.is_set():
                return

            if last_seen is None:
                self.emit(LOGGED_ON)

            changenumber = data.get('changenumber')
            if last_seen is None or (changenumber is not None and changenumber > last_seen):
                self.emit(APP_UPDATE, self.app_id, data)
            if changenumber is not None:
                last_seen = changenumber
            elif last_seen is None:
                last_seen = -1

            stop.wait(self.poll_interval)

    def get_product_info(
        self,
        app_id: Union[int, str],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Fetch product info for an app from the SteamCMD API.

        Args:
            app_id: App to fetch
            timeout: Request timeout in seconds, capped at the configured timeout

        Returns:
            PICS-style blob

        Raises:
            TransportError: On network errors, HTTP errors or unexpected payloads
        """
        url = f"{self.api_base_url}/info/{app_id}"
        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'application/json'
        }

        try:
            self.logger.debug(f"Fetching product info from {url}")
            response = requests.get(url, headers=headers, timeout=self._request_timeout(timeout))
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(payload, dict) or payload.get('status') != 'success':
            status = payload.get('status') if isinstance(payload, dict) else None
            raise TransportError(f"Unexpected API status for app {app_id}: {status!r}")

        apps = payload.get('data')
        if not isinstance(apps, dict):
            raise TransportError(f"Malformed product info for app {app_id}: data is {type(apps).__name__}")

        app = apps.get(str(app_id))
        if not isinstance(app, dict):
            raise TransportError(f"No product info returned for app {app_id}")

        return self.to_product_info(app)

    def _request_timeout(self, timeout: Optional[float]) -> float:
        if timeout is None:
            return self.timeout
        return max(min(timeout, self.timeout), 0.1)

    @staticmethod
    def to_product_info(app: Dict[str, Any]) -> Dict[str, Any]:
        """
        Map a SteamCMD API app record to the PICS product info shape.

        Underscore-prefixed keys are API metadata; the rest is app info.
        """
        changenumber = app.get('_change_number')
        if isinstance(changenumber, str) and changenumber.isdecimal():
            changenumber = int(changenumber)
        elif not isinstance(changenumber, int) or isinstance(changenumber, bool):
            changenumber = None

        return {
            'changenumber': changenumber,
            'missingToken': bool(app.get('_missing_token', False)),
            'appinfo': {k: v for k, v in app.items() if not str(k).startswith('_')},
        }
