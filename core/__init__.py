"""
Core Module Package.

This package contains the infrastructure components
that all other modules depend on.

Components:
- clock: Injectable time abstraction
- config: Environment configuration
- exceptions: Custom exception hierarchy
- scheduling: Cancellable delayed tasks
"""

from .clock import ClockProtocol, SystemClock, MockClock, to_iso8601, from_epoch_ms
from .config import BotConfig
from .scheduling import ScheduledTask, cancel_and_wait
from .exceptions import (
    MonitorException,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    TransportError,
    HandshakeTimeoutError,
    FrameDecodeError,
    NotificationDeliveryError,
    ChatLogStorageError,
    StateTransitionError,
)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_iso8601",
    "from_epoch_ms",
    "BotConfig",
    "ScheduledTask",
    "cancel_and_wait",
    "MonitorException",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "TransportError",
    "HandshakeTimeoutError",
    "FrameDecodeError",
    "NotificationDeliveryError",
    "ChatLogStorageError",
    "StateTransitionError",
]
