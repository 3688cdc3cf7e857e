"""
Tests for the Core Module.

============================================================
PURPOSE
============================================================
- Clock arithmetic and timestamp conversion
- Environment configuration loading and validation
- Exception hierarchy metadata
- Scheduled task firing and cancellation

============================================================
"""

import asyncio
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from core.clock import MockClock, SystemClock, from_epoch_ms, to_iso8601
from core.config import BotConfig, DISCORD_WEBHOOK_PREFIX
from core.exceptions import (
    ConfigurationError,
    HandshakeTimeoutError,
    InvalidConfigError,
    MissingConfigError,
    Severity,
    TransportError,
)
from core.scheduling import ScheduledTask, cancel_and_wait


VALID_ENV = {
    "DISCORD_WEBHOOK_URL": DISCORD_WEBHOOK_PREFIX + "123/abc",
    "MINECRAFTAFK_TOKEN": "secret-token",
}


# ============================================================
# CLOCK TESTS
# ============================================================

class TestClock:
    """Tests for clock implementations."""

    def test_mock_clock_advance(self):
        """Test that advance moves time forward."""
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)

        clock.advance(90)
        clock.advance(minutes=1)

        assert clock.timestamp() == start.timestamp() + 150

    def test_elapsed_since_none(self):
        """Test that a never-set timestamp has no elapsed time."""
        clock = MockClock()
        assert clock.elapsed_since(None) is None

    def test_elapsed_since(self):
        """Test elapsed time against the mock clock."""
        clock = MockClock()
        earlier = clock.timestamp()
        clock.advance(30)
        assert clock.elapsed_since(earlier) == pytest.approx(30)

    def test_system_clock_is_utc(self):
        """Test that the system clock reports UTC."""
        assert SystemClock().now().tzinfo == timezone.utc

    def test_from_epoch_ms(self):
        """Test millisecond epoch conversion."""
        dt = from_epoch_ms(1700000000000)
        assert dt == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_to_iso8601_naive_is_utc(self):
        """Test that naive datetimes are treated as UTC."""
        assert to_iso8601(datetime(2025, 1, 1)) == "2025-01-01T00:00:00+00:00"


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestBotConfig:
    """Tests for BotConfig."""

    def test_defaults(self):
        """Test defaults when only required variables are set."""
        config = BotConfig.from_env(environ=VALID_ENV)

        assert config.websocket_url == "wss://minecraftafk.com/ws"
        assert config.max_reconnect_attempts == 10
        assert config.reconnect_interval_ms == 1000
        assert config.max_reconnect_interval_ms == 30000
        assert config.stable_connection_threshold_ms == 300000
        assert config.disconnect_cooldown_ms == 120000
        assert config.logs_directory == "/app/chat_logs"
        assert config.log_level == "INFO"
        assert config.debug_mode is False
        assert config.validate() == []

    def test_overrides(self):
        """Test numeric overrides from the environment."""
        env = dict(VALID_ENV, MAX_RECONNECT_ATTEMPTS="3", RECONNECT_INTERVAL="250")
        config = BotConfig.from_env(environ=env)

        assert config.max_reconnect_attempts == 3
        assert config.reconnect_interval_ms == 250

    def test_debug_mode_forces_debug_level(self):
        """Test that DEBUG_MODE=true raises the log level."""
        env = dict(VALID_ENV, DEBUG_MODE="true", LOG_LEVEL="WARNING")
        config = BotConfig.from_env(environ=env)

        assert config.debug_mode is True
        assert config.log_level == "DEBUG"

    def test_non_integer_setting_raises(self):
        """Test that a malformed number is a configuration error."""
        env = dict(VALID_ENV, MAX_RECONNECT_ATTEMPTS="ten")

        with pytest.raises(InvalidConfigError) as exc_info:
            BotConfig.from_env(environ=env)

        assert exc_info.value.key == "MAX_RECONNECT_ATTEMPTS"

    def test_missing_required(self):
        """Test that both required variables are reported."""
        errors = BotConfig.from_env(environ={}).validate()

        missing = {e.key for e in errors if isinstance(e, MissingConfigError)}
        assert missing == {"DISCORD_WEBHOOK_URL", "MINECRAFTAFK_TOKEN"}

    def test_webhook_prefix_enforced(self):
        """Test that non-Discord webhook URLs are rejected."""
        env = dict(VALID_ENV, DISCORD_WEBHOOK_URL="https://example.com/hook")
        errors = BotConfig.from_env(environ=env).validate()

        assert len(errors) == 1
        assert errors[0].key == "DISCORD_WEBHOOK_URL"

    def test_max_interval_below_base(self):
        """Test that the backoff cap cannot be below the base interval."""
        env = dict(VALID_ENV, RECONNECT_INTERVAL="5000", MAX_RECONNECT_INTERVAL="1000")
        errors = BotConfig.from_env(environ=env).validate()

        assert [e.key for e in errors] == ["MAX_RECONNECT_INTERVAL"]

    def test_liveness_settings(self):
        """Test heartbeat and silence timeout are read from the environment."""
        config = BotConfig.from_env(environ=VALID_ENV)
        assert config.heartbeat_interval_ms == 20000
        assert config.message_timeout_ms == 90000

        env = dict(VALID_ENV, HEARTBEAT_INTERVAL="5000", MESSAGE_TIMEOUT="4000")
        errors = BotConfig.from_env(environ=env).validate()

        assert [e.key for e in errors] == ["MESSAGE_TIMEOUT"]

    def test_loads_env_file(self, tmp_path):
        """Test that a .env file is loaded when reading os.environ."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            f"DISCORD_WEBHOOK_URL={VALID_ENV['DISCORD_WEBHOOK_URL']}\n"
            f"MINECRAFTAFK_TOKEN=from-file\n"
            f"LOGS_DIRECTORY={tmp_path / 'logs'}\n"
        )

        with patch.dict(os.environ, {}, clear=True):
            config = BotConfig.from_env(env_file=str(env_file))

        assert config.auth_token == "from-file"
        assert config.logs_directory == str(tmp_path / "logs")
        assert config.validate() == []


# ============================================================
# EXCEPTION TESTS
# ============================================================

class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_configuration_error_is_not_recoverable(self):
        """Test configuration errors are fatal."""
        error = MissingConfigError("MINECRAFTAFK_TOKEN")

        assert isinstance(error, ConfigurationError)
        assert error.severity == Severity.CRITICAL
        assert not error.is_recoverable

    def test_transport_error_is_recoverable(self):
        """Test transport errors are transient."""
        error = HandshakeTimeoutError(10000, url="wss://example")

        assert isinstance(error, TransportError)
        assert error.is_recoverable
        assert error.context["timeout_ms"] == 10000
        assert error.context["url"] == "wss://example"

    def test_to_dict_includes_cause(self):
        """Test serialization carries the cause."""
        cause = OSError("refused")
        error = TransportError("Connection failed", cause=cause)

        data = error.to_dict()

        assert data["type"] == "TransportError"
        assert data["cause"] == "refused"
        assert data["context"]["cause_type"] == "OSError"

    def test_to_log_format(self):
        """Test the single-line log form."""
        line = InvalidConfigError("LOG_FORMAT", "xml", "expected json or text").to_log_format()

        assert line.startswith("[CRITICAL] InvalidConfigError:")
        assert "reason=expected json or text" in line


# ============================================================
# SCHEDULED TASK TESTS
# ============================================================

class TestScheduledTask:
    """Tests for ScheduledTask."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self):
        """Test the callback runs once after the delay."""
        callback = AsyncMock()
        task = ScheduledTask(0.01, callback, name="test")

        await task.wait()

        callback.assert_awaited_once()
        assert task.fired
        assert not task.pending

    @pytest.mark.asyncio
    async def test_cancel_before_fire(self):
        """Test a cancelled task never runs its callback."""
        callback = AsyncMock()
        task = ScheduledTask(0.05, callback)

        assert task.cancel() is True
        await task.wait()

        callback.assert_not_awaited()
        assert task.cancelled
        assert task.done

    @pytest.mark.asyncio
    async def test_cancel_after_fire_is_ignored(self):
        """Test that a fired task cannot be cancelled from its own callback."""
        holder = {}
        finished = asyncio.Event()

        async def callback():
            holder["cancelled"] = holder["task"].cancel()
            await asyncio.sleep(0)
            finished.set()

        holder["task"] = ScheduledTask(0, callback)
        await asyncio.wait_for(finished.wait(), timeout=1)

        assert holder["cancelled"] is False
        assert holder["task"].fired

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self):
        """Test callback exceptions do not escape the task."""
        task = ScheduledTask(0, AsyncMock(side_effect=RuntimeError("boom")))

        await task.wait()

        assert task.done

    @pytest.mark.asyncio
    async def test_cancel_and_wait(self):
        """Test cancelling a plain asyncio task."""
        task = asyncio.create_task(asyncio.sleep(10))

        await cancel_and_wait(task)
        await cancel_and_wait(None)

        assert task.cancelled()
