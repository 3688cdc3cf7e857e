"""
Discord Notification Sink.

============================================================
PURPOSE
============================================================
Deliver notifications to a Discord webhook as embeds.

PRINCIPLES:
- Delivery only, NO business logic
- Never raises past its boundary
- Non-2xx responses are logged, not retried

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from core.clock import to_iso8601
from core.exceptions import NotificationDeliveryError
from .models import Notification


logger = logging.getLogger(__name__)


BOT_USERNAME = "MinecraftAFK Bot"
FOOTER_TEXT = "MinecraftAFK Monitor"
USER_AGENT = "MinecraftAFK-Bot/1.0"


# ============================================================
# SINK INTERFACE
# ============================================================

class NotificationSink(ABC):
    """Delivers notifications to an external endpoint."""

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification.

        Returns True on success. Must not raise.
        """
        pass

    async def close(self) -> None:
        """Release resources."""
        pass


# ============================================================
# DISCORD MESSAGE FORMATTER
# ============================================================

class DiscordFormatter:
    """
    Formats notifications as Discord webhook payloads.

    One embed per message.
    """

    MAX_TITLE_LENGTH = 256
    MAX_DESCRIPTION_LENGTH = 4096

    @classmethod
    def build_payload(
        cls,
        notification: Notification,
        username: str = BOT_USERNAME,
    ) -> Dict[str, Any]:
        """Build the webhook JSON body."""
        return {
            "username": username,
            "embeds": [{
                "title": cls._truncate(notification.title, cls.MAX_TITLE_LENGTH),
                "description": cls._truncate(notification.description, cls.MAX_DESCRIPTION_LENGTH),
                "color": int(notification.color),
                "timestamp": to_iso8601(notification.created_at),
                "footer": {
                    "text": FOOTER_TEXT,
                },
            }],
        }

    @staticmethod
    def _truncate(text: str, limit: int) -> str:
        if len(text) <= limit:
            return text
        return text[:limit - 3] + "..."


# ============================================================
# DISCORD NOTIFIER
# ============================================================

class DiscordNotifier(NotificationSink):
    """
    Sends notifications to a Discord webhook.

    This is a notification-only client.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        username: str = BOT_USERNAME,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize Discord notifier.

        Args:
            webhook_url: Webhook endpoint; notifier is disabled when empty
            username: Display name of the webhook author
            timeout_seconds: Total request timeout
        """
        self._webhook_url = webhook_url or ""
        self._username = username
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._formatter = DiscordFormatter()

        self._session: Optional[aiohttp.ClientSession] = None
        self._enabled = bool(self._webhook_url)

        self._sent_count = 0
        self._failed_count = 0

        if not self._enabled:
            logger.warning("DiscordNotifier NOT configured - check DISCORD_WEBHOOK_URL")

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def failed_count(self) -> int:
        return self._failed_count

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close the notifier."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(self, notification: Notification) -> bool:
        """
        Send a notification.

        Returns True if the webhook accepted it.
        """
        if not self._enabled:
            return False

        try:
            await self._post(self._formatter.build_payload(notification, self._username))
        except NotificationDeliveryError as e:
            self._failed_count += 1
            logger.error(f"Discord webhook failed: {e.to_log_format()}")
            return False
        except Exception as e:
            self._failed_count += 1
            logger.error(f"Discord notification error: {e}")
            return False

        self._sent_count += 1
        logger.debug(f"Discord notification sent: {notification.title}")
        return True

    async def _post(self, payload: Dict[str, Any]) -> None:
        """POST the payload, raising NotificationDeliveryError on non-2xx."""
        session = await self._get_session()

        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

        async with session.post(self._webhook_url, json=payload, headers=headers) as response:
            if 200 <= response.status < 300:
                return
            body = await response.text()
            raise NotificationDeliveryError(
                f"{response.status} {response.reason}: {body[:200]}",
                status=response.status,
            )


__all__ = [
    "NotificationSink",
    "DiscordFormatter",
    "DiscordNotifier",
    "BOT_USERNAME",
    "FOOTER_TEXT",
]
