"""
Connection - WebSocket Transport.

Opens the MinecraftAFK WebSocket with aiohttp. Automatic ping
replies are disabled; the connection manager answers pings in
its receive loop.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import aiohttp


logger = logging.getLogger(__name__)


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:139.0) "
    "Gecko/20100101 Firefox/139.0"
)
ORIGIN = "https://minecraftafk.com"


def build_cookie(auth_token: str) -> str:
    """Session cookie expected by the service."""
    return f"token={auth_token}; checked=false"


def build_headers(auth_token: str) -> Dict[str, str]:
    """Browser-like handshake headers."""
    return {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.5",
        "Origin": ORIGIN,
        "Sec-GPC": "1",
        "Pragma": "no-cache",
        "Cache-Control": "no-cache",
        "Cookie": build_cookie(auth_token),
    }


class WebSocketTransport(ABC):
    """Factory for WebSocket connections."""

    @abstractmethod
    async def connect(self, url: str):
        """
        Open a connection.

        Returns an object with the aiohttp ClientWebSocketResponse
        interface (receive, pong, close, close_code, closed).
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass


class AiohttpTransport(WebSocketTransport):
    """aiohttp-backed transport sharing one ClientSession."""

    def __init__(self, auth_token: str, heartbeat_seconds: Optional[float] = None):
        self._headers = build_headers(auth_token)
        self._heartbeat = heartbeat_seconds or None
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def connect(self, url: str) -> aiohttp.ClientWebSocketResponse:
        session = await self._get_session()
        logger.debug(f"Opening WebSocket: {url}")
        return await session.ws_connect(
            url,
            headers=self._headers,
            autoping=False,
            heartbeat=self._heartbeat,
        )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = [
    "WebSocketTransport",
    "AiohttpTransport",
    "build_cookie",
    "build_headers",
]
