"""
Discord notifier - Sends update embeds to a Discord webhook.
Embeds follow the SteamDB app update style.
"""

from typing import Optional, Dict, Any, Union

import requests

from .base_notifier import BaseNotifier
from models.update import Update


STEAMDB_ICON = 'https://steamdb.info/static/logos/512px.png'
APP_ICON = 'https://cdn.ardysamods.my.id/image/ardysa.png'
EMBED_COLOR = 0xF5F5F5
BOT_USERNAME = 'AMT Bot'
FIELD_VALUE_LIMIT = 1024


def truncate_field_value(value: str, limit: int = FIELD_VALUE_LIMIT) -> str:
    """Cut an embed field value to Discord's length limit, ending with an ellipsis."""
    if len(value) <= limit:
        return value
    return value[:limit - 1] + '…'


def steamdb_app_url(app_id: Union[int, str]) -> str:
    return f"https://steamdb.info/app/{app_id}/"


def steamdb_changelist_url(changenumber: int) -> str:
    return f"https://steamdb.info/changelist/{changenumber}/"


def steamdb_patchnotes_url(build_id: str) -> str:
    return f"https://steamdb.info/patchnotes/{build_id}/"


class DiscordNotifier(BaseNotifier):
    """Delivers updates as rich embeds through a Discord webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 30.0,
        user_agent: str = 'Steam-Update-Monitor/1.0',
        session: requests.Session = None
    ):
        """
        Args:
            webhook_url: Discord webhook URL; empty disables delivery
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            session: HTTP session to reuse (one is created if omitted)
        """
        super().__init__()
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

        if not webhook_url:
            self.logger.warning("No Discord webhook URL configured - notifications disabled")
            return

        self._session = session or requests.Session()
        self._session.headers.update({'User-Agent': user_agent})
        self.logger.info("Discord webhook client initialized")

    @property
    def enabled(self) -> bool:
        return self._session is not None

    def send_update(self, update: Update) -> bool:
        if not self.enabled:
            self.logger.warning("Webhook not configured - skipping notification")
            return False

        payload = {
            'username': BOT_USERNAME,
            'avatar_url': APP_ICON,
            'embeds': [self.build_embed(update)],
        }

        try:
            response = self._session.post(
                self.webhook_url,
                json=payload,
                params={'wait': 'true'},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Failed to send Discord notification: {e}")
            return False

        self.logger.info(f"Discord notification sent for changelist #{update.sequence_label}")
        return True

    def build_embed(self, update: Update) -> Dict[str, Any]:
        """
        Build a minimalist embed for an app update.

        Args:
            update: Update to render

        Returns:
            Discord embed object
        """
        app_url = steamdb_app_url(update.resource_id)

        if update.has_sequence:
            changelist_value = f"[#{update.sequence}]({steamdb_changelist_url(update.sequence)})"
        else:
            changelist_value = update.sequence_label

        fields = [{'name': 'Changelist', 'value': changelist_value, 'inline': True}]

        if update.build_marker:
            fields.append({
                'name': 'Build ID',
                'value': f"`{update.build_marker}`",
                'inline': True,
            })
            fields.append({
                'name': 'Patch Notes',
                'value': f"[View on SteamDB]({steamdb_patchnotes_url(update.build_marker)})",
                'inline': False,
            })

        fields.append({
            'name': 'Changed',
            'value': truncate_field_value(update.format_change_summary()),
            'inline': False,
        })

        return {
            'author': {'name': 'SteamDB', 'icon_url': STEAMDB_ICON, 'url': app_url},
            'title': f"{update.label} — App Update",
            'url': app_url,
            'thumbnail': {'url': APP_ICON},
            'color': EMBED_COLOR,
            'fields': fields,
            'footer': {'text': f"App {update.resource_id} • Steam PICS"},
            'timestamp': update.observed_at.isoformat(),
        }

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
            self.logger.info("Discord webhook client closed")
