"""
Notifiers package - Delivery sinks for admitted updates.
"""

from notifiers.base_notifier import BaseNotifier
from notifiers.discord_notifier import DiscordNotifier

__all__ = ['BaseNotifier', 'DiscordNotifier']
