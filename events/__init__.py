"""
Events Package.

Typed decoding of inbound frames and routing to handlers.
"""

from .types import (
    Action,
    ConnectionAck,
    AccountConnectRequest,
    ServerHeartbeat,
    AccountDisconnectRequest,
    ProfileAccount,
    UserProfile,
    AccountDisconnected,
    ChatMessage,
    AccountStateChange,
    AccountConnectionConfirmation,
    UnknownEvent,
    Event,
    decode_frame,
)
from .dispatcher import EventDispatcher


__all__ = [
    "Action",
    "ConnectionAck",
    "AccountConnectRequest",
    "ServerHeartbeat",
    "AccountDisconnectRequest",
    "ProfileAccount",
    "UserProfile",
    "AccountDisconnected",
    "ChatMessage",
    "AccountStateChange",
    "AccountConnectionConfirmation",
    "UnknownEvent",
    "Event",
    "decode_frame",
    "EventDispatcher",
]
