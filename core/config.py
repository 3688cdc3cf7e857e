"""
Core Module - Configuration.

============================================================
RESPONSIBILITY
============================================================
Loads the monitor configuration from the environment.

- Reads process environment (and an optional .env file)
- Applies defaults to every optional setting
- Validates required settings before any connection attempt

============================================================
ENVIRONMENT
============================================================
DISCORD_WEBHOOK_URL            (required)
MINECRAFTAFK_TOKEN             (required)
WEBSOCKET_URL                  wss://minecraftafk.com/ws
MAX_RECONNECT_ATTEMPTS         10
RECONNECT_INTERVAL             1000 ms
MAX_RECONNECT_INTERVAL         30000 ms
STABLE_CONNECTION_THRESHOLD    300000 ms
DISCONNECT_COOLDOWN            120000 ms
LOGS_DIRECTORY                 /app/chat_logs
DEBUG_MODE                     false
DISCORD_PING_INTERVAL          7200000 ms
STATUS_SUMMARY_INTERVAL        7200000 ms
HANDSHAKE_TIMEOUT              10000 ms
WATCHDOG_INTERVAL              30000 ms
HEARTBEAT_INTERVAL             20000 ms
MESSAGE_TIMEOUT                90000 ms
STATE_CHANGE_DELAY             10000 ms
MIN_NOTIFICATION_INTERVAL      60000 ms
PROFILE_NOTIFICATION_COOLDOWN  120000 ms
LOG_LEVEL                      INFO
LOG_FORMAT                     text

============================================================
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError, InvalidConfigError, MissingConfigError


DISCORD_WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"

REQUIRED_VARIABLES = ("DISCORD_WEBHOOK_URL", "MINECRAFTAFK_TOKEN")


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    """Read an integer setting, falling back to default when unset or empty."""
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected an integer")


# ============================================================
# BOT CONFIGURATION
# ============================================================

@dataclass
class BotConfig:
    """Configuration for the account monitor."""

    # Required
    webhook_url: str = ""
    """Discord webhook endpoint URL."""

    auth_token: str = ""
    """MinecraftAFK session token, sent as a cookie."""

    # Transport
    websocket_url: str = "wss://minecraftafk.com/ws"
    """Upstream WebSocket URL."""

    max_reconnect_attempts: int = 10
    """Consecutive failed attempts before giving up."""

    reconnect_interval_ms: int = 1000
    """Base reconnect backoff."""

    max_reconnect_interval_ms: int = 30000
    """Reconnect backoff cap."""

    handshake_timeout_ms: int = 10000
    """Maximum time to reach an open connection."""

    watchdog_interval_ms: int = 30000
    """Interval of the connection watchdog."""

    heartbeat_interval_ms: int = 20000
    """Client ping interval; 0 disables client pings."""

    message_timeout_ms: int = 90000
    """Silence after which an open connection is treated as dead."""

    # Connection notifications
    stable_connection_threshold_ms: int = 300000
    """Uptime after which an abnormal drop is worth reporting."""

    disconnect_cooldown_ms: int = 120000
    """Cooldown between connection-status notifications."""

    # Account notifications
    state_change_delay_ms: int = 10000
    """Settle time before a state change is reported."""

    min_notification_interval_ms: int = 60000
    """Per-account rate limit."""

    profile_notification_cooldown_ms: int = 120000
    """Cooldown for batched roster change notifications."""

    discord_ping_interval_ms: int = 7200000
    """Minimum interval between health-ping notifications."""

    status_summary_interval_ms: int = 7200000
    """Minimum interval between roster digests."""

    # Storage
    logs_directory: Optional[str] = "/app/chat_logs"
    """Chat log directory."""

    # Logging
    debug_mode: bool = False
    """Verbose logging."""

    log_level: str = "INFO"
    """Logging level."""

    log_format: str = "text"
    """Logging format (json or text)."""

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[str] = None,
    ) -> "BotConfig":
        """
        Load configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ after
                loading the .env file)
            env_file: Explicit .env path (defaults to dotenv discovery)

        Raises:
            InvalidConfigError: If a numeric setting is not an integer
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        debug_mode = environ.get("DEBUG_MODE", "false").lower() == "true"

        return cls(
            webhook_url=environ.get("DISCORD_WEBHOOK_URL", "").strip(),
            auth_token=environ.get("MINECRAFTAFK_TOKEN", "").strip(),
            websocket_url=environ.get("WEBSOCKET_URL") or cls.websocket_url,
            max_reconnect_attempts=_int_setting(environ, "MAX_RECONNECT_ATTEMPTS", 10),
            reconnect_interval_ms=_int_setting(environ, "RECONNECT_INTERVAL", 1000),
            max_reconnect_interval_ms=_int_setting(environ, "MAX_RECONNECT_INTERVAL", 30000),
            handshake_timeout_ms=_int_setting(environ, "HANDSHAKE_TIMEOUT", 10000),
            watchdog_interval_ms=_int_setting(environ, "WATCHDOG_INTERVAL", 30000),
            heartbeat_interval_ms=_int_setting(environ, "HEARTBEAT_INTERVAL", 20000),
            message_timeout_ms=_int_setting(environ, "MESSAGE_TIMEOUT", 90000),
            stable_connection_threshold_ms=_int_setting(environ, "STABLE_CONNECTION_THRESHOLD", 300000),
            disconnect_cooldown_ms=_int_setting(environ, "DISCONNECT_COOLDOWN", 120000),
            state_change_delay_ms=_int_setting(environ, "STATE_CHANGE_DELAY", 10000),
            min_notification_interval_ms=_int_setting(environ, "MIN_NOTIFICATION_INTERVAL", 60000),
            profile_notification_cooldown_ms=_int_setting(environ, "PROFILE_NOTIFICATION_COOLDOWN", 120000),
            discord_ping_interval_ms=_int_setting(environ, "DISCORD_PING_INTERVAL", 7200000),
            status_summary_interval_ms=_int_setting(environ, "STATUS_SUMMARY_INTERVAL", 7200000),
            logs_directory=environ.get("LOGS_DIRECTORY") or cls.logs_directory,
            debug_mode=debug_mode,
            log_level="DEBUG" if debug_mode else environ.get("LOG_LEVEL", "INFO").upper(),
            log_format=environ.get("LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> List[ConfigurationError]:
        """Validate configuration, return list of errors."""
        errors: List[ConfigurationError] = []

        if not self.webhook_url:
            errors.append(MissingConfigError("DISCORD_WEBHOOK_URL"))
        elif not self.webhook_url.startswith(DISCORD_WEBHOOK_PREFIX):
            errors.append(InvalidConfigError(
                "DISCORD_WEBHOOK_URL",
                self.webhook_url,
                f"must start with {DISCORD_WEBHOOK_PREFIX}",
            ))

        if not self.auth_token:
            errors.append(MissingConfigError("MINECRAFTAFK_TOKEN"))

        if self.max_reconnect_attempts < 0:
            errors.append(InvalidConfigError(
                "MAX_RECONNECT_ATTEMPTS", self.max_reconnect_attempts, "must not be negative",
            ))

        if self.reconnect_interval_ms < 1:
            errors.append(InvalidConfigError(
                "RECONNECT_INTERVAL", self.reconnect_interval_ms, "must be at least 1ms",
            ))

        if self.max_reconnect_interval_ms < self.reconnect_interval_ms:
            errors.append(InvalidConfigError(
                "MAX_RECONNECT_INTERVAL",
                self.max_reconnect_interval_ms,
                "must not be lower than RECONNECT_INTERVAL",
            ))

        if self.heartbeat_interval_ms < 0:
            errors.append(InvalidConfigError(
                "HEARTBEAT_INTERVAL", self.heartbeat_interval_ms, "must not be negative",
            ))

        if self.message_timeout_ms <= self.heartbeat_interval_ms:
            errors.append(InvalidConfigError(
                "MESSAGE_TIMEOUT",
                self.message_timeout_ms,
                "must be greater than HEARTBEAT_INTERVAL",
            ))

        if self.log_format not in ("json", "text"):
            errors.append(InvalidConfigError("LOG_FORMAT", self.log_format, "expected json or text"))

        return errors


__all__ = [
    "BotConfig",
    "DISCORD_WEBHOOK_PREFIX",
    "REQUIRED_VARIABLES",
]
