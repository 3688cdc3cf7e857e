"""
Events - Frame Types.

============================================================
PURPOSE
============================================================
Decode inbound JSON frames {action, params} into typed events.

One frozen dataclass per action. Frames with an action this
module does not know decode to UnknownEvent. Frames that are
not JSON, or whose params do not fit their action, raise
FrameDecodeError.

============================================================
ACTIONS
============================================================
0   ConnectionAck
3   AccountConnectRequest         {account}
4   ServerHeartbeat               numeric params (epoch ms)
4   AccountDisconnectRequest      string params (account)
7   UserProfile                   {discord_display, plan, accounts}
11  AccountDisconnected           {account, connect}
12  ChatMessage                   {account, timestamp, data}
13  AccountStateChange            {account, state}
14  AccountConnectionConfirmation "Connected <id> to server"

============================================================
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple, Union

from core.clock import from_epoch_ms
from core.exceptions import FrameDecodeError


CONFIRMATION_PATTERN = re.compile(r"Connected (\w+) to server")


class Action(IntEnum):
    """Frame action codes."""

    CONNECTION_ACK = 0
    ACCOUNT_CONNECT_REQUEST = 3
    HEARTBEAT_OR_DISCONNECT_REQUEST = 4
    USER_PROFILE = 7
    ACCOUNT_DISCONNECTED = 11
    CHAT_MESSAGE = 12
    ACCOUNT_STATE_CHANGE = 13
    ACCOUNT_CONNECTION_CONFIRMATION = 14


# ============================================================
# EVENTS
# ============================================================

@dataclass(frozen=True)
class ConnectionAck:
    """Server acknowledged the connection."""


@dataclass(frozen=True)
class AccountConnectRequest:
    account: str


@dataclass(frozen=True)
class ServerHeartbeat:
    """Server clock in epoch milliseconds."""

    timestamp_ms: float

    @property
    def time(self) -> datetime:
        return from_epoch_ms(self.timestamp_ms)


@dataclass(frozen=True)
class AccountDisconnectRequest:
    account: str


@dataclass(frozen=True)
class ProfileAccount:
    username: str
    state: Any


@dataclass(frozen=True)
class UserProfile:
    discord_display: Optional[str]
    plan: Optional[str]
    accounts: Tuple[ProfileAccount, ...] = ()

    def roster(self) -> Dict[str, Any]:
        """Ordered username -> state code mapping."""
        return {account.username: account.state for account in self.accounts}


@dataclass(frozen=True)
class AccountDisconnected:
    account: str
    connect: Any = None


@dataclass(frozen=True)
class ChatMessage:
    account: str
    timestamp: datetime
    data: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class AccountStateChange:
    account: str
    state: Any


@dataclass(frozen=True)
class AccountConnectionConfirmation:
    text: str

    @property
    def account(self) -> Optional[str]:
        """Account named by the confirmation, if it matches the expected form."""
        match = CONFIRMATION_PATTERN.search(self.text)
        return match.group(1) if match else None


@dataclass(frozen=True)
class UnknownEvent:
    action: Any
    payload: Any = field(default=None, compare=False)


Event = Union[
    ConnectionAck,
    AccountConnectRequest,
    ServerHeartbeat,
    AccountDisconnectRequest,
    UserProfile,
    AccountDisconnected,
    ChatMessage,
    AccountStateChange,
    AccountConnectionConfirmation,
    UnknownEvent,
]


# ============================================================
# DECODING
# ============================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_mapping(params: Any, action: Action, raw: str) -> Dict[str, Any]:
    if not isinstance(params, dict):
        raise FrameDecodeError(
            f"Action {int(action)} expects an object, got {type(params).__name__}",
            raw=raw,
        )
    return params


def _require_account(params: Dict[str, Any], action: Action, raw: str) -> str:
    account = params.get("account")
    if not isinstance(account, str) or not account:
        raise FrameDecodeError(f"Action {int(action)} is missing 'account'", raw=raw)
    return account


def _parse_timestamp(value: Any, raw: str) -> datetime:
    if _is_number(value):
        try:
            return from_epoch_ms(value)
        except (OverflowError, OSError, ValueError) as e:
            raise FrameDecodeError(f"Timestamp out of range: {value}", raw=raw) from e
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise FrameDecodeError(f"Invalid timestamp: {value!r}", raw=raw) from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise FrameDecodeError(f"Invalid timestamp: {value!r}", raw=raw)


def _decode_profile(params: Any, raw: str) -> UserProfile:
    params = _require_mapping(params, Action.USER_PROFILE, raw)
    accounts = params.get("accounts")
    if not isinstance(accounts, list):
        raise FrameDecodeError("Profile is missing 'accounts'", raw=raw)

    roster = []
    for entry in accounts:
        if not isinstance(entry, dict) or not isinstance(entry.get("username"), str):
            raise FrameDecodeError("Profile account without username", raw=raw)
        roster.append(ProfileAccount(username=entry["username"], state=entry.get("state")))

    return UserProfile(
        discord_display=params.get("discord_display"),
        plan=params.get("plan"),
        accounts=tuple(roster),
    )


def decode_frame(raw: Union[str, bytes]) -> Event:
    """
    Decode one frame.

    Raises:
        FrameDecodeError: Frame is not valid JSON or its params are malformed
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FrameDecodeError(f"Frame is not valid JSON: {e}", raw=raw) from e

    if not isinstance(message, dict):
        raise FrameDecodeError("Frame is not a JSON object", raw=raw)

    action = message.get("action")
    params = message.get("params")

    if not _is_number(action) or action not in set(Action):
        return UnknownEvent(action=action, payload=message)

    action = Action(action)

    if action == Action.CONNECTION_ACK:
        return ConnectionAck()

    if action == Action.ACCOUNT_CONNECT_REQUEST:
        params = _require_mapping(params, action, raw)
        return AccountConnectRequest(account=_require_account(params, action, raw))

    if action == Action.HEARTBEAT_OR_DISCONNECT_REQUEST:
        if _is_number(params):
            return ServerHeartbeat(timestamp_ms=params)
        if isinstance(params, str):
            return AccountDisconnectRequest(account=params)
        raise FrameDecodeError("Action 4 expects a number or an account name", raw=raw)

    if action == Action.USER_PROFILE:
        return _decode_profile(params, raw)

    if action == Action.ACCOUNT_DISCONNECTED:
        params = _require_mapping(params, action, raw)
        return AccountDisconnected(
            account=_require_account(params, action, raw),
            connect=params.get("connect"),
        )

    if action == Action.CHAT_MESSAGE:
        params = _require_mapping(params, action, raw)
        return ChatMessage(
            account=_require_account(params, action, raw),
            timestamp=_parse_timestamp(params.get("timestamp"), raw),
            data=params.get("data"),
        )

    if action == Action.ACCOUNT_STATE_CHANGE:
        params = _require_mapping(params, action, raw)
        if "state" not in params:
            raise FrameDecodeError("State change is missing 'state'", raw=raw)
        return AccountStateChange(
            account=_require_account(params, action, raw),
            state=params["state"],
        )

    # ACCOUNT_CONNECTION_CONFIRMATION
    if not isinstance(params, str):
        raise FrameDecodeError("Confirmation expects a string", raw=raw)
    return AccountConnectionConfirmation(text=params)


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
]
