"""
Deduplicator - Admits only updates with a strictly increasing changenumber.
"""

import logging
from typing import Optional, Union

from core.cursor_store import CursorStore
from models.update import Update


class Deduplicator:
    """
    Decides whether a normalized update is new.

    The cursor is advanced and persisted before an update is returned,
    so a crash between persistence and delivery can lose at most one
    notification but never repeat one.
    """

    def __init__(self, cursor_store: CursorStore, resource_id: Union[int, str]):
        self.cursor_store = cursor_store
        self.resource_id = resource_id
        self.logger = logging.getLogger('Deduplicator')

        cursor = cursor_store.load()
        self._last_sequence: Optional[int] = cursor.last_sequence if cursor else None

    @property
    def last_sequence(self) -> Optional[int]:
        """Highest changenumber admitted so far, None before the first admission."""
        return self._last_sequence

    def admit(self, update: Update) -> Optional[Update]:
        """
        Admit or reject an update.

        Args:
            update: Normalized update

        Returns:
            The update if admitted, None if it is a duplicate or stale
        """
        if not update.has_sequence:
            self.logger.debug("Update has no changenumber - admitting without advancing cursor")
            return update

        if self._last_sequence is not None and update.sequence <= self._last_sequence:
            self.logger.debug(
                f"Skipping duplicate changenumber {update.sequence} (last: {self._last_sequence})"
            )
            return None

        self._last_sequence = update.sequence
        if not self.cursor_store.save(update.sequence, self.resource_id):
            # The in-memory cursor still advanced, so only a restart can repeat this update
            self.logger.warning(f"Cursor {update.sequence} not persisted - a restart may repeat it")

        return update
