"""
Connection - Manager.

============================================================
PURPOSE
============================================================
Keeps one WebSocket connection to the service alive.

FEATURES:
- Handshake bounded by a timeout
- Reconnection with exponential backoff and jitter
- Watchdog that revives a silently dead connection
- Ping frames answered in the receive loop
- Graceful close that never triggers a reconnect

============================================================
FAILURE SEMANTICS
============================================================
- Transport errors are never fatal; every error path ends
  in schedule_reconnect()
- Exhausting max_reconnect_attempts is reported once, not raised

============================================================
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp

from core.clock import ClockProtocol, SystemClock
from core.exceptions import (
    HandshakeTimeoutError,
    StateTransitionError,
    TransportError,
)
from core.scheduling import ScheduledTask, cancel_and_wait
from notifications.models import NotificationColor
from notifications.policy import NotificationPolicy
from .models import (
    ConnectionConfig,
    ConnectionSession,
    ConnectionState,
    is_valid_transition,
)
from .transport import WebSocketTransport


logger = logging.getLogger(__name__)


FrameHandler = Callable[[str], Awaitable[None]]

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
STALE_REASON = "stale connection"


# ============================================================
# CONNECTION MANAGER
# ============================================================

class ConnectionManager:
    """
    WebSocket lifecycle owner.

    Usage:
        manager = ConnectionManager(config, transport, dispatcher.dispatch, policy)
        await manager.start()
        ...
        await manager.close()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        transport: WebSocketTransport,
        on_frame: FrameHandler,
        policy: NotificationPolicy,
        clock: Optional[ClockProtocol] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize connection manager.

        Args:
            config: Connection configuration
            transport: Opens WebSocket connections
            on_frame: Coroutine receiving each text frame
            policy: Connection-status notifications go through here
            clock: Clock for uptime and cooldowns
            rng: Random source for backoff jitter
        """
        self._config = config
        self._transport = transport
        self._on_frame = on_frame
        self._policy = policy
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()

        self._state = ConnectionState.IDLE
        self._session = ConnectionSession(current_backoff_ms=config.reconnect_interval_ms)
        self._ws = None

        self._connect_task: Optional[asyncio.Task] = None
        self._watchdog_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[ScheduledTask] = None

        self._closing = False
        self._closed = False
        self._last_frame_time: Optional[float] = None

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> ConnectionSession:
        return self._session

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    @property
    def is_closing(self) -> bool:
        return self._closing

    @property
    def reconnect_pending(self) -> bool:
        """A backoff timer is armed and has not fired."""
        return self._reconnect_handle is not None and self._reconnect_handle.pending

    @property
    def last_frame_time(self) -> Optional[float]:
        return self._last_frame_time

    # --------------------------------------------------------
    # STATE
    # --------------------------------------------------------

    def _transition(self, to_state: ConnectionState) -> None:
        """Move to a new state, validated against the transition table."""
        if not is_valid_transition(self._state, to_state):
            raise StateTransitionError(
                f"Invalid connection transition: {self._state.value} -> {to_state.value}",
                from_state=self._state.value,
                to_state=to_state.value,
            )
        logger.debug(f"Connection state: {self._state.value} -> {to_state.value}")
        self._state = to_state

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """Open the connection and arm the watchdog."""
        await self.open()
        self.start_watchdog()

    async def open(self) -> None:
        """
        Begin a connection attempt.

        Returns once the attempt is in flight; the handshake and
        receive loop run in their own task.
        """
        if self._closing:
            logger.debug("Not opening: manager is closing")
            return
        if self._state.is_terminal or self._state.is_active:
            return

        self._cancel_reconnect()
        self._transition(ConnectionState.CONNECTING)
        logger.info(f"Connecting to {self._config.url}")
        self._connect_task = asyncio.create_task(
            self._run_connection(),
            name="websocket-connection",
        )

    def halt(self) -> None:
        """
        Disarm every timer and refuse new ones.

        The socket stays up until close().
        """
        if not self._closing:
            logger.info("Connection manager halting: no further reconnects")
        self._closing = True
        self._cancel_reconnect()
        if self._watchdog_task is not None and not self._watchdog_task.done():
            self._watchdog_task.cancel()

    async def close(self) -> None:
        """Tear down without scheduling a reconnect."""
        if self._closed:
            return
        self._closed = True
        self.halt()

        if not self._state.is_terminal:
            self._transition(ConnectionState.TERMINATED)

        await cancel_and_wait(self._watchdog_task)
        self._watchdog_task = None

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")

        if self._connect_task is not asyncio.current_task():
            await cancel_and_wait(self._connect_task)
        self._connect_task = None

        self._session.is_connected = False
        await self._transport.close()
        logger.info("Connection manager closed")

    # --------------------------------------------------------
    # CONNECTION TASK
    # --------------------------------------------------------

    async def _run_connection(self) -> None:
        """Handshake, then receive until the connection ends."""
        timeout_ms = self._config.handshake_timeout_ms
        try:
            ws = await asyncio.wait_for(
                self._transport.connect(self._config.url),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            await self._handle_failure(HandshakeTimeoutError(timeout_ms, url=self._config.url))
            return
        except Exception as e:
            await self._handle_failure(TransportError(
                f"Connection failed: {e}",
                url=self._config.url,
                cause=e,
            ))
            return

        if self._closing:
            await ws.close()
            return

        self._ws = ws
        await self._on_open()

        code, reason, errored = await self._receive_loop(ws)

        if self._ws is ws:
            self._ws = None
        if not ws.closed:
            await ws.close()

        await self._on_close(code, reason, errored)

    async def _handle_failure(self, error: TransportError) -> None:
        """Handshake failed: log and back off."""
        logger.error(f"WebSocket connection failed: {error.to_log_format()}")
        if self._closing:
            return
        self._session.is_connected = False
        self._transition(ConnectionState.ERRORED)
        await self.schedule_reconnect()

    async def _on_open(self) -> None:
        now = self._clock.timestamp()
        previous_disconnect = self._session.last_disconnect_time

        self._cancel_reconnect()
        self._session.reset_after_open(self._config.reconnect_interval_ms, now)
        self._last_frame_time = now
        self._transition(ConnectionState.OPEN)
        logger.info("Connected to MinecraftAFK WebSocket")

        since_disconnect = self._clock.elapsed_since(previous_disconnect)
        if since_disconnect is not None and since_disconnect < self._config.disconnect_cooldown_ms / 1000:
            logger.info(
                f"Reconnected {since_disconnect:.1f}s after disconnect, "
                f"skipping connected notification"
            )
            return

        await self._policy.notify_connection_status(
            "🟢 WebSocket Connected",
            "Successfully connected to MinecraftAFK WebSocket",
            NotificationColor.POSITIVE,
        )

    async def _receive_loop(self, ws) -> Tuple[int, Optional[str], bool]:
        """
        Read frames until the connection ends.

        Returns (close code, close reason, errored).
        """
        code: Optional[int] = None
        reason: Optional[str] = None
        errored = False

        try:
            while True:
                msg = await ws.receive()

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._last_frame_time = self._clock.timestamp()
                    await self._on_frame(msg.data)

                elif msg.type == aiohttp.WSMsgType.BINARY:
                    self._last_frame_time = self._clock.timestamp()
                    await self._on_frame(msg.data.decode("utf-8", errors="replace"))

                elif msg.type == aiohttp.WSMsgType.PING:
                    logger.debug("Received WebSocket ping frame")
                    self._last_frame_time = self._clock.timestamp()
                    await ws.pong(msg.data)

                elif msg.type == aiohttp.WSMsgType.PONG:
                    self._last_frame_time = self._clock.timestamp()

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    code = msg.data
                    reason = msg.extra or None
                    break

                elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
                    errored = True
                    break

        except asyncio.CancelledError:
            raise

        except Exception as e:
            logger.error(f"Error in receive loop: {e}")
            errored = True

        if code is None:
            code = ws.close_code or ABNORMAL_CLOSURE
        return code, reason, errored

    async def _on_close(self, code: int, reason: Optional[str], errored: bool) -> None:
        now = self._clock.timestamp()
        uptime = self._session.uptime(now)

        self._session.is_connected = False
        self._session.last_disconnect_time = now
        self._session.connection_start_time = None
        self._session.last_close_code = code
        self._session.last_close_reason = reason

        logger.warning(f"WebSocket closed: {code} - {reason or 'Unknown'}")

        if self._closing:
            return

        self._transition(ConnectionState.ERRORED if errored else ConnectionState.CLOSED)

        await self.schedule_reconnect()
        await self._notify_disconnect(code, reason, uptime)

    async def _notify_disconnect(
        self,
        code: int,
        reason: Optional[str],
        uptime: Optional[float],
    ) -> None:
        """Disconnect notification, gated on code and connection age."""
        threshold = self._config.stable_connection_threshold_ms / 1000
        stable = uptime is not None and uptime >= threshold

        if code in (NORMAL_CLOSURE, ABNORMAL_CLOSURE) and not stable:
            logger.info(f"Short-lived connection closed ({code}), not notifying")
            return

        if code == ABNORMAL_CLOSURE:
            minutes = round((uptime or 0) / 60)
            title = "⚠️ WebSocket Connection Lost"
            description = f"Connection lost after {minutes} minutes (Error 1006)"
        else:
            title = "🔴 WebSocket Disconnected"
            description = f"Connection closed with code: {code}"
            if reason:
                description += f"\nReason: {reason}"

        await self._policy.notify_connection_status(
            title,
            description,
            NotificationColor.NEGATIVE,
        )

    # --------------------------------------------------------
    # RECONNECTION
    # --------------------------------------------------------

    async def schedule_reconnect(self) -> None:
        """Arm the backoff timer, or report exhaustion."""
        if self._closing or self._state.is_terminal:
            return
        if self._state.is_active:
            logger.debug(f"Not scheduling reconnect while {self._state.value}")
            return

        if self._session.reconnect_attempts >= self._config.max_reconnect_attempts:
            await self._report_exhausted()
            return

        self._cancel_reconnect()

        self._session.reconnect_attempts += 1
        delay_ms = self._session.current_backoff_ms
        self._transition(ConnectionState.RECONNECT_PENDING)
        self._reconnect_handle = ScheduledTask(
            delay_ms / 1000,
            self.open,
            name=f"reconnect-{self._session.reconnect_attempts}",
        )

        self._session.current_backoff_ms = min(
            delay_ms * self._config.backoff_growth
            + self._rng.uniform(0, self._config.backoff_jitter_ms),
            self._config.max_reconnect_interval_ms,
        )

        logger.info(
            f"Reconnecting in {delay_ms:.0f}ms "
            f"(attempt {self._session.reconnect_attempts}/{self._config.max_reconnect_attempts})"
        )

    async def _report_exhausted(self) -> None:
        self._cancel_reconnect()
        if self._session.failure_reported:
            return
        self._session.failure_reported = True
        self._transition(ConnectionState.TERMINATED)
        logger.error("Max reconnection attempts reached")
        await self._policy.notify_connection_failed(
            "Maximum reconnection attempts reached. Bot has stopped trying to reconnect."
        )

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # --------------------------------------------------------
    # WATCHDOG
    # --------------------------------------------------------

    def start_watchdog(self) -> None:
        """Arm the periodic health check."""
        if self._closing or self._watchdog_task is not None:
            return
        self._watchdog_task = asyncio.create_task(
            self._watchdog_loop(),
            name="connection-watchdog",
        )

    async def _watchdog_loop(self) -> None:
        interval = self._config.watchdog_interval_ms / 1000
        while not self._closing:
            await asyncio.sleep(interval)
            try:
                await self.check_health()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Watchdog error: {e}")

    async def check_health(self) -> bool:
        """
        Force a reconnect if the connection is down and nothing
        will bring it back, or if it has gone silent.

        Returns True if a reconnect was forced.
        """
        if self._closing or self._state.is_terminal:
            return False
        if self._session.is_connected:
            if not self.is_stale():
                return False
            await self._drop_stale_connection()
            return True
        if self._state == ConnectionState.CONNECTING or self.reconnect_pending:
            return False

        logger.warning("Connection health check failed - forcing reconnect")
        await self.schedule_reconnect()
        return True

    def is_stale(self) -> bool:
        """No frame, ping or pong within the message timeout."""
        silent = self._clock.elapsed_since(self._last_frame_time)
        return silent is not None and silent > self._config.message_timeout_ms / 1000

    async def _drop_stale_connection(self) -> None:
        """Abandon a half-open socket and go through the normal close path."""
        silent = self._clock.elapsed_since(self._last_frame_time)
        logger.warning(f"No frames for {silent:.0f}s - dropping stale connection")

        task, self._connect_task = self._connect_task, None
        if task is not asyncio.current_task():
            await cancel_and_wait(task)

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"Error closing stale WebSocket: {e}")

        if self._state == ConnectionState.OPEN:
            await self._on_close(ABNORMAL_CLOSURE, STALE_REASON, errored=True)

    # --------------------------------------------------------
    # STATUS
    # --------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Connection status snapshot."""
        now = self._clock.timestamp()
        uptime = self._session.uptime(now)
        return {
            "state": self._state.value,
            "connected": self._session.is_connected,
            "reconnect_attempts": self._session.reconnect_attempts,
            "current_backoff_ms": self._session.current_backoff_ms,
            "reconnect_pending": self.reconnect_pending,
            "uptime_seconds": uptime,
            "last_close_code": self._session.last_close_code,
            "stale": self._session.is_connected and self.is_stale(),
            "session": self._session.to_dict(),
        }


__all__ = [
    "ConnectionManager",
    "FrameHandler",
]
