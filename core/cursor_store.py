"""
Cursor Store - Persists the last forwarded changenumber.
"""

import os
import json
import logging
import tempfile
from datetime import datetime, timezone
from typing import Optional, Union
from threading import Lock

from models.cursor import Cursor


class CursorStore:
    """Durable single-value store for the highest changenumber ever forwarded."""

    def __init__(self, state_file: str = None):
        """
        Initialize cursor store.

        Args:
            state_file: Path to the cursor JSON file
        """
        if state_file is None:
            base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            state_file = os.path.join(base_dir, 'state.json')

        self.state_file = state_file
        self.logger = logging.getLogger('CursorStore')
        self._lock = Lock()
        self._cursor: Optional[Cursor] = None

    def load(self) -> Optional[Cursor]:
        """
        Read the persisted cursor.

        A missing file means no prior state. A corrupt or unreadable file
        is reported as a warning and treated the same way.

        Returns:
            Cursor, or None if no usable state exists
        """
        with self._lock:
            self._cursor = self._read()
            return self._cursor

    def _read(self) -> Optional[Cursor]:
        if not os.path.exists(self.state_file):
            self.logger.info("No previous state found - will process all incoming updates")
            return None

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                cursor = Cursor.from_dict(json.load(f))
        except (json.JSONDecodeError, ValueError, OSError) as e:
            self.logger.warning(f"Could not load state file {self.state_file}: {e}")
            return None

        if cursor is None:
            self.logger.warning(f"State file {self.state_file} holds no changenumber - ignoring it")
        else:
            self.logger.info(f"Loaded state: last changenumber = {cursor.last_sequence}")
        return cursor

    def save(self, sequence: int, resource_id: Union[int, str]) -> bool:
        """
        Persist a new cursor value.

        The record is written to a temporary file in the same directory,
        flushed to disk and renamed over the old file, so a partial write
        never replaces valid state.

        Args:
            sequence: Changenumber to store
            resource_id: Tracked app id

        Returns:
            True if the cursor was written, False otherwise
        """
        with self._lock:
            if self._cursor is not None and sequence < self._cursor.last_sequence:
                self.logger.warning(
                    f"Refusing to move cursor backwards ({self._cursor.last_sequence} -> {sequence})"
                )
                return False

            cursor = Cursor(
                last_sequence=sequence,
                resource_id=resource_id,
                last_updated=datetime.now(timezone.utc)
            )

            try:
                self._write(cursor)
            except OSError as e:
                self.logger.error(f"Error saving state file: {e}")
                return False

            self._cursor = cursor
            self.logger.debug(f"State saved: changenumber = {sequence}")
            return True

    def _write(self, cursor: Cursor) -> None:
        directory = os.path.dirname(os.path.abspath(self.state_file))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix='.state-', suffix='.tmp', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(cursor.to_dict(), f, indent=2)
                f.write('\n')
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.state_file)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @property
    def cursor(self) -> Optional[Cursor]:
        """Last cursor loaded or saved by this store."""
        with self._lock:
            return self._cursor
