"""
Connection - Models.

============================================================
STATE MACHINE
============================================================
IDLE -> CONNECTING -> OPEN -> CLOSED/ERRORED
     -> (RECONNECT_PENDING -> CONNECTING) | TERMINATED

- IDLE: Created, never opened
- CONNECTING: Handshake in flight
- OPEN: Frames flowing
- CLOSED: Peer or transport closed the connection
- ERRORED: Handshake or transport failure
- RECONNECT_PENDING: Backoff timer armed
- TERMINATED: Closed by the owner or attempts exhausted

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


# ============================================================
# CONNECTION STATE
# ============================================================

class ConnectionState(Enum):
    """Connection manager states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"
    RECONNECT_PENDING = "reconnect_pending"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self == ConnectionState.TERMINATED

    @property
    def is_active(self) -> bool:
        """Connected or about to be."""
        return self in (ConnectionState.CONNECTING, ConnectionState.OPEN)


VALID_TRANSITIONS: Dict[ConnectionState, Set[ConnectionState]] = {
    ConnectionState.IDLE: {
        ConnectionState.CONNECTING,
        ConnectionState.RECONNECT_PENDING,
        ConnectionState.TERMINATED,
    },
    ConnectionState.CONNECTING: {
        ConnectionState.OPEN,
        ConnectionState.ERRORED,
        ConnectionState.TERMINATED,
    },
    ConnectionState.OPEN: {
        ConnectionState.CLOSED,
        ConnectionState.ERRORED,
        ConnectionState.TERMINATED,
    },
    ConnectionState.CLOSED: {
        ConnectionState.CONNECTING,
        ConnectionState.RECONNECT_PENDING,
        ConnectionState.TERMINATED,
    },
    ConnectionState.ERRORED: {
        ConnectionState.CONNECTING,
        ConnectionState.RECONNECT_PENDING,
        ConnectionState.TERMINATED,
    },
    ConnectionState.RECONNECT_PENDING: {
        ConnectionState.CONNECTING,
        ConnectionState.RECONNECT_PENDING,
        ConnectionState.TERMINATED,
    },
    ConnectionState.TERMINATED: set(),  # Terminal - no transitions
}


def is_valid_transition(from_state: ConnectionState, to_state: ConnectionState) -> bool:
    return to_state in VALID_TRANSITIONS.get(from_state, set())


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class ConnectionConfig:
    """Connection manager configuration. Durations in milliseconds."""

    # Connection
    url: str
    max_reconnect_attempts: int = 10
    reconnect_interval_ms: int = 1000
    max_reconnect_interval_ms: int = 30000
    handshake_timeout_ms: int = 10000

    # Backoff
    backoff_growth: float = 1.5
    backoff_jitter_ms: float = 1000.0

    # Health
    watchdog_interval_ms: int = 30000
    message_timeout_ms: int = 90000
    stable_connection_threshold_ms: int = 300000
    disconnect_cooldown_ms: int = 120000


# ============================================================
# SESSION
# ============================================================

@dataclass
class ConnectionSession:
    """
    Mutable connection bookkeeping.

    Written only by the ConnectionManager. Timestamps are clock
    seconds.
    """

    current_backoff_ms: float
    is_connected: bool = False
    connection_start_time: Optional[float] = None
    last_disconnect_time: Optional[float] = None
    reconnect_attempts: int = 0
    last_close_code: Optional[int] = None
    last_close_reason: Optional[str] = None
    failure_reported: bool = False

    def reset_after_open(self, base_backoff_ms: float, now: float) -> None:
        """Successful open: clear attempts and backoff."""
        self.is_connected = True
        self.connection_start_time = now
        self.reconnect_attempts = 0
        self.current_backoff_ms = base_backoff_ms
        self.failure_reported = False

    def uptime(self, now: float) -> Optional[float]:
        """Seconds since the current connection opened."""
        if self.connection_start_time is None:
            return None
        return now - self.connection_start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "connection_start_time": self.connection_start_time,
            "last_disconnect_time": self.last_disconnect_time,
            "reconnect_attempts": self.reconnect_attempts,
            "current_backoff_ms": self.current_backoff_ms,
            "last_close_code": self.last_close_code,
            "last_close_reason": self.last_close_reason,
            "failure_reported": self.failure_reported,
        }


__all__ = [
    "ConnectionState",
    "VALID_TRANSITIONS",
    "is_valid_transition",
    "ConnectionConfig",
    "ConnectionSession",
]
