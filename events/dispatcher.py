"""
Events - Dispatcher.

============================================================
PURPOSE
============================================================
Decode each inbound frame and route it to its handler.

PRINCIPLES:
- Malformed frames are logged and dropped
- Handler errors are logged, never propagated to the
  receive loop
- Unknown actions are reported only in verbose mode

============================================================
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Type

from chat_logging.extraction import extract_chat_text
from chat_logging.store import ChatLogStore, build_record
from core.exceptions import FrameDecodeError
from notifications.models import NotificationColor
from notifications.policy import NotificationPolicy
from notifications.state import describe_state
from .types import (
    AccountConnectionConfirmation,
    AccountConnectRequest,
    AccountDisconnected,
    AccountDisconnectRequest,
    AccountStateChange,
    ChatMessage,
    ConnectionAck,
    Event,
    ServerHeartbeat,
    UnknownEvent,
    UserProfile,
    decode_frame,
)


logger = logging.getLogger(__name__)


class EventDispatcher:
    """Routes decoded frames to the policy and the chat log."""

    def __init__(
        self,
        policy: NotificationPolicy,
        chat_store: Optional[ChatLogStore] = None,
        verbose: bool = False,
    ):
        """
        Initialize dispatcher.

        Args:
            policy: Receives state, profile and heartbeat events
            chat_store: Receives chat lines; chat is dropped when None
            verbose: Log unknown actions and raw malformed frames
        """
        self._policy = policy
        self._chat_store = chat_store
        self._verbose = verbose

        self._handlers: Dict[Type, Callable[..., Awaitable[None]]] = {
            ConnectionAck: self._on_ack,
            AccountConnectRequest: self._on_connect_request,
            ServerHeartbeat: self._on_heartbeat,
            AccountDisconnectRequest: self._on_disconnect_request,
            UserProfile: self._on_profile,
            AccountDisconnected: self._on_account_disconnected,
            ChatMessage: self._on_chat,
            AccountStateChange: self._on_state_change,
            AccountConnectionConfirmation: self._on_confirmation,
            UnknownEvent: self._on_unknown,
        }

        self._dispatched_count = 0
        self._dropped_count = 0

    @property
    def dispatched_count(self) -> int:
        return self._dispatched_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    async def dispatch(self, raw: str) -> Optional[Event]:
        """
        Handle one raw frame.

        Returns the decoded event, or None if the frame was dropped.
        """
        try:
            event = decode_frame(raw)
        except FrameDecodeError as e:
            self._dropped_count += 1
            logger.error(f"Failed to parse message: {e.message}")
            if self._verbose:
                logger.debug(f"Raw data: {raw!r}")
            return None

        self._dispatched_count += 1
        handler = self._handlers[type(event)]
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)

        return event

    # --------------------------------------------------------
    # HANDLERS
    # --------------------------------------------------------

    async def _on_ack(self, event: ConnectionAck) -> None:
        logger.info("Connection acknowledged")

    async def _on_connect_request(self, event: AccountConnectRequest) -> None:
        logger.info(f"Initiating connection for account: {event.account}")
        await self._policy.announce(
            "🔄 Account Connection Initiated",
            f"**{event.account}** connection request initiated",
            NotificationColor.WARNING,
        )

    async def _on_heartbeat(self, event: ServerHeartbeat) -> None:
        server_time = event.time
        logger.debug(f"Server ping/timestamp: {server_time.isoformat()}")
        await self._policy.on_server_heartbeat(server_time)

    async def _on_disconnect_request(self, event: AccountDisconnectRequest) -> None:
        logger.info(f"Initiating disconnection for account: {event.account}")
        await self._policy.announce(
            "🔄 Account Disconnection Initiated",
            f"**{event.account}** disconnection request initiated",
            NotificationColor.WARNING,
        )

    async def _on_profile(self, event: UserProfile) -> None:
        logger.info(
            f"User profile received: user={event.discord_display} "
            f"plan={event.plan} accounts={len(event.accounts)}"
        )
        for index, account in enumerate(event.accounts, start=1):
            logger.debug(f"  {index}. {account.username} - State: {describe_state(account.state)}")
        await self._policy.on_profile_snapshot(event.roster())

    async def _on_account_disconnected(self, event: AccountDisconnected) -> None:
        logger.info(f"Account disconnected: {event.account}, connect status: {event.connect}")
        await self._policy.announce(
            "🔌 Account Disconnected",
            f"**{event.account}** has been disconnected from the server",
            NotificationColor.NEGATIVE,
        )

    async def _on_chat(self, event: ChatMessage) -> None:
        text = extract_chat_text(event.data)
        logger.debug(f"[{event.account}] {text}")
        if self._chat_store is None:
            return
        self._chat_store.append(
            event.account,
            build_record(event.account, event.timestamp, text, event.data),
        )

    async def _on_state_change(self, event: AccountStateChange) -> None:
        logger.info(
            f"Account: {event.account}, New State: "
            f"{describe_state(event.state)} ({event.state})"
        )
        await self._policy.on_account_state(event.account, event.state)

    async def _on_confirmation(self, event: AccountConnectionConfirmation) -> None:
        logger.info(f"Confirmation: {event.text}")
        account = event.account
        if account is None:
            return
        await self._policy.announce(
            "✅ Account Connected",
            f"**{account}** has successfully connected to the server",
            NotificationColor.POSITIVE,
        )

    async def _on_unknown(self, event: UnknownEvent) -> None:
        if self._verbose:
            logger.info(f"Unknown message type: {event.payload}")


__all__ = [
    "EventDispatcher",
]
