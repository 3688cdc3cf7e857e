"""
Notifications - Account State Classification.

Pure mapping from the upstream numeric account state code to a
detailed label and a coarse Online/Offline label.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DetailedState(Enum):
    """Detailed account connection state."""

    OFFLINE = "Offline"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    DISCONNECTING = "Disconnecting"
    UNKNOWN = "Unknown"


class SimplifiedState(Enum):
    """Coarse account state used for notification decisions."""

    ONLINE = "Online"
    OFFLINE = "Offline"


_DETAILED_BY_CODE = {
    0: DetailedState.OFFLINE,
    1: DetailedState.CONNECTING,
    2: DetailedState.CONNECTED,
    3: DetailedState.DISCONNECTING,
}

_ONLINE_STATES = frozenset({
    DetailedState.CONNECTING,
    DetailedState.CONNECTED,
    DetailedState.DISCONNECTING,
})


def detailed_state(code: Any) -> DetailedState:
    """Map a raw state code to its detailed state."""
    if isinstance(code, bool) or not isinstance(code, int):
        return DetailedState.UNKNOWN
    return _DETAILED_BY_CODE.get(code, DetailedState.UNKNOWN)


def simplified_state(code: Any) -> SimplifiedState:
    """Map a raw state code to Online/Offline. Unrecognized codes are Offline."""
    if detailed_state(code) in _ONLINE_STATES:
        return SimplifiedState.ONLINE
    return SimplifiedState.OFFLINE


def describe_state(code: Any) -> str:
    """Human-readable detailed label, including the raw code when unknown."""
    state = detailed_state(code)
    if state is DetailedState.UNKNOWN:
        return f"Unknown State ({code})"
    return state.value


@dataclass
class AccountState:
    """Last observed state of one account."""

    account_id: str
    detailed: DetailedState
    simplified: SimplifiedState
    code: Any = None

    @classmethod
    def from_code(cls, account_id: str, code: Any) -> "AccountState":
        return cls(
            account_id=account_id,
            detailed=detailed_state(code),
            simplified=simplified_state(code),
            code=code,
        )


__all__ = [
    "DetailedState",
    "SimplifiedState",
    "AccountState",
    "detailed_state",
    "simplified_state",
    "describe_state",
]
