"""
Connection Package.

WebSocket lifecycle: handshake, receive loop, reconnect with
backoff, watchdog and graceful close.
"""

from .models import (
    ConnectionState,
    VALID_TRANSITIONS,
    is_valid_transition,
    ConnectionConfig,
    ConnectionSession,
)
from .transport import (
    WebSocketTransport,
    AiohttpTransport,
    build_cookie,
    build_headers,
)
from .manager import ConnectionManager


__all__ = [
    "ConnectionState",
    "VALID_TRANSITIONS",
    "is_valid_transition",
    "ConnectionConfig",
    "ConnectionSession",
    "WebSocketTransport",
    "AiohttpTransport",
    "build_cookie",
    "build_headers",
    "ConnectionManager",
]
