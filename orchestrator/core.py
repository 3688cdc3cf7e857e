"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Wires the monitor together and owns its lifecycle.

- Builds one instance of every component and passes references
- Controls startup and the shutdown sequence
- Handles signals (SIGINT, SIGTERM)
- Reports a status snapshot

============================================================
SHUTDOWN SEQUENCE
============================================================
1. Cancel pending notification timers
2. Send "Bot Shutdown" (best effort)
3. Close the connection, transport and HTTP sessions

No timer is armed once shutdown has begun.

============================================================
"""

import asyncio
import json
import logging
import random
import signal
import sys
from typing import Any, Dict, Optional

from chat_logging.store import ChatLogStore
from connection.manager import ConnectionManager
from connection.models import ConnectionConfig
from connection.transport import AiohttpTransport, WebSocketTransport
from core.clock import ClockProtocol, SystemClock
from core.config import BotConfig
from events.dispatcher import EventDispatcher
from notifications.discord import DiscordNotifier, NotificationSink
from notifications.models import NotificationCategory, NotificationColor
from notifications.policy import NotificationPolicy, PolicyConfig


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
) -> logging.Logger:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp internals only at DEBUG
    if log_level > logging.DEBUG:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return logging.getLogger("orchestrator")


# ============================================================
# CONFIG MAPPING
# ============================================================

def build_connection_config(config: BotConfig) -> ConnectionConfig:
    return ConnectionConfig(
        url=config.websocket_url,
        max_reconnect_attempts=config.max_reconnect_attempts,
        reconnect_interval_ms=config.reconnect_interval_ms,
        max_reconnect_interval_ms=config.max_reconnect_interval_ms,
        handshake_timeout_ms=config.handshake_timeout_ms,
        watchdog_interval_ms=config.watchdog_interval_ms,
        message_timeout_ms=config.message_timeout_ms,
        stable_connection_threshold_ms=config.stable_connection_threshold_ms,
        disconnect_cooldown_ms=config.disconnect_cooldown_ms,
    )


def build_policy_config(config: BotConfig) -> PolicyConfig:
    return PolicyConfig(
        state_change_delay_seconds=config.state_change_delay_ms / 1000,
        min_notification_interval_seconds=config.min_notification_interval_ms / 1000,
        connection_status_cooldown_seconds=config.disconnect_cooldown_ms / 1000,
        profile_notification_cooldown_seconds=config.profile_notification_cooldown_ms / 1000,
        health_ping_interval_seconds=config.discord_ping_interval_ms / 1000,
        status_summary_interval_seconds=config.status_summary_interval_ms / 1000,
    )


# ============================================================
# MONITOR BOT
# ============================================================

class MonitorBot:
    """
    The account monitor process.

    Owns exactly one of each component; nothing is global.
    """

    SHUTDOWN_TITLE = "🛑 Bot Shutdown"
    SHUTDOWN_MESSAGE = "MinecraftAFK monitoring bot is shutting down"

    def __init__(
        self,
        config: BotConfig,
        sink: Optional[NotificationSink] = None,
        transport: Optional[WebSocketTransport] = None,
        clock: Optional[ClockProtocol] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the monitor.

        Args:
            config: Bot configuration
            sink: Notification sink (defaults to the Discord webhook)
            transport: WebSocket transport (defaults to aiohttp)
            clock: Clock shared by every component
            rng: Random source for reconnect jitter
        """
        self._config = config
        self._clock = clock or SystemClock()

        self._sink = sink or DiscordNotifier(config.webhook_url)
        self._policy = NotificationPolicy(
            self._sink,
            build_policy_config(config),
            self._clock,
        )
        self._chat_store = ChatLogStore(config.logs_directory) if config.logs_directory else None
        self._dispatcher = EventDispatcher(
            self._policy,
            self._chat_store,
            verbose=config.debug_mode,
        )
        self._transport = transport or AiohttpTransport(
            config.auth_token,
            heartbeat_seconds=config.heartbeat_interval_ms / 1000,
        )
        self._connection = ConnectionManager(
            build_connection_config(config),
            self._transport,
            self._dispatcher.dispatch,
            self._policy,
            clock=self._clock,
            rng=rng,
        )

        self._running = False
        self._shutdown_requested = False
        self._stopped: Optional[asyncio.Event] = None
        self._signal_handlers_installed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> BotConfig:
        return self._config

    @property
    def policy(self) -> NotificationPolicy:
        return self._policy

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def chat_store(self) -> Optional[ChatLogStore]:
        return self._chat_store

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self, install_signal_handlers: bool = True) -> None:
        """
        Start the monitor.

        Raises:
            ChatLogStorageError: Chat log directory unusable
        """
        if self._running:
            logger.warning("Monitor already running")
            return

        logger.info("=== MONITOR STARTUP ===")
        self._stopped = asyncio.Event()

        if self._chat_store is not None:
            self._chat_store.prepare()
        else:
            logger.info("Chat logging disabled: no LOGS_DIRECTORY")

        if install_signal_handlers:
            self._install_signal_handlers()

        await self._connection.start()
        self._running = True
        logger.info("=== MONITOR STARTUP COMPLETE ===")

    async def run_forever(self) -> None:
        """Run until stop() completes."""
        if not self._running:
            await self.start()
        await self._stopped.wait()

    async def stop(self, reason: Optional[str] = None) -> None:
        """Run the shutdown sequence once."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        logger.info("=== MONITOR SHUTDOWN ===")

        self._policy.shutdown()
        self._connection.halt()

        message = self.SHUTDOWN_MESSAGE
        if reason:
            message += f" ({reason})"
        try:
            await self._policy.announce(
                self.SHUTDOWN_TITLE,
                message,
                NotificationColor.WARNING,
                category=NotificationCategory.LIFECYCLE,
            )
        except Exception as e:
            logger.error(f"Failed to send shutdown notification: {e}")

        await self._connection.close()
        await self._sink.close()

        self._restore_signal_handlers()
        self._running = False

        if self._stopped is not None:
            self._stopped.set()
        logger.info("=== MONITOR SHUTDOWN COMPLETE ===")

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        if sys.platform == "win32":
            self._loop = loop
            signal.signal(signal.SIGINT, self._signal_handler)
        else:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(
                    sig,
                    lambda s=sig: asyncio.create_task(self._async_signal_handler(s)),
                )
        self._signal_handlers_installed = True

    def _restore_signal_handlers(self) -> None:
        if not self._signal_handlers_installed:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
        self._signal_handlers_installed = False

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Synchronous signal handler (Windows)."""
        logger.info(f"Received signal {signum}")
        self._loop.call_soon_threadsafe(
            lambda: asyncio.ensure_future(self.stop())
        )

    async def _async_signal_handler(self, sig: signal.Signals) -> None:
        """Async signal handler (Unix)."""
        logger.info(f"Received {sig.name}, shutting down")
        await self.stop(reason=sig.name if sig == signal.SIGTERM else None)

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot."""
        connection = self._connection.status()
        policy = self._policy.status()
        return {
            "running": self._running,
            "connected": connection["connected"],
            "last_ping": policy["last_server_ping"],
            "account_states": policy["roster"],
            "reconnect_attempts": connection["reconnect_attempts"],
            "connection_uptime_seconds": connection["uptime_seconds"] or 0,
            "connection": connection,
            "notifications": policy,
            "chat_logging_enabled": bool(self._chat_store and self._chat_store.enabled),
        }


__all__ = [
    "setup_logging",
    "JsonFormatter",
    "build_connection_config",
    "build_policy_config",
    "MonitorBot",
]
