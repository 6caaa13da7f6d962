"""
Abstract base notifier for delivering admitted updates.
"""

from abc import ABC, abstractmethod
import logging

from models.update import Update


class BaseNotifier(ABC):
    """Abstract base class for notification sinks."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def send_update(self, update: Update) -> bool:
        """
        Deliver an update.

        Implementations must not raise on delivery failures.

        Args:
            update: Admitted update

        Returns:
            True if the update was delivered, False otherwise
        """
        pass

    def close(self) -> None:
        """Release any resources held by the sink. Safe to call more than once."""
        pass
