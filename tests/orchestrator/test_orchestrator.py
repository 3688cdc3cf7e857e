"""
Tests for the Orchestrator Package.

============================================================
PURPOSE
============================================================
- Logging setup and config mapping
- MonitorBot wiring, startup and shutdown sequence
- CLI exit codes on bad configuration

TEST PRINCIPLES:
- No network: fake transport and recording sink
- Signal handlers are never installed

============================================================
"""

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from core.clock import MockClock
from core.config import BotConfig, DISCORD_WEBHOOK_PREFIX
from core.exceptions import ChatLogStorageError
from notifications.models import NotificationCategory, NotificationColor
from orchestrator.cli import build_config, create_parser, main
from orchestrator.core import (
    JsonFormatter,
    MonitorBot,
    build_connection_config,
    build_policy_config,
    setup_logging,
)
from tests.fakes import FakeTransport, RecordingSink, wait_for_condition


WEBHOOK = DISCORD_WEBHOOK_PREFIX + "1/token"


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config(tmp_path):
    """Bot configuration with fast timings."""
    return BotConfig(
        webhook_url=WEBHOOK,
        auth_token="token",
        reconnect_interval_ms=10,
        max_reconnect_interval_ms=50,
        handshake_timeout_ms=200,
        watchdog_interval_ms=60000,
        state_change_delay_ms=50,
        logs_directory=str(tmp_path / "chat_logs"),
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def bot(config, sink, transport):
    return MonitorBot(
        config,
        sink=sink,
        transport=transport,
        clock=MockClock(datetime(2025, 1, 1, tzinfo=timezone.utc)),
    )


@pytest.fixture
def restore_logging():
    """Restore root logger state after setup_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    aiohttp_level = logging.getLogger("aiohttp").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("aiohttp").setLevel(aiohttp_level)


# ============================================================
# SETUP TESTS
# ============================================================

class TestSetup:
    """Tests for logging setup and config mapping."""

    def test_json_logging(self, restore_logging):
        """Test JSON output is one object per record."""
        setup_logging(level="WARNING", log_format="json")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("aiohttp").level == logging.WARNING

        record = logging.LogRecord("monitor", logging.ERROR, __file__, 1, "boom %s", ("x",), None)
        payload = json.loads(root.handlers[0].formatter.format(record))

        assert payload["level"] == "ERROR"
        assert payload["logger"] == "monitor"
        assert payload["message"] == "boom x"

    def test_text_logging(self, restore_logging):
        setup_logging(level="DEBUG", log_format="text")

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, JsonFormatter)

    def test_policy_config_is_in_seconds(self):
        """Test millisecond settings are converted for the policy."""
        policy_config = build_policy_config(BotConfig())

        assert policy_config.state_change_delay_seconds == 10
        assert policy_config.min_notification_interval_seconds == 60
        assert policy_config.connection_status_cooldown_seconds == 120
        assert policy_config.profile_notification_cooldown_seconds == 120
        assert policy_config.health_ping_interval_seconds == 7200
        assert policy_config.status_summary_interval_seconds == 7200

    def test_connection_config_mapping(self, config):
        connection_config = build_connection_config(config)

        assert connection_config.url == config.websocket_url
        assert connection_config.reconnect_interval_ms == 10
        assert connection_config.handshake_timeout_ms == 200
        assert connection_config.message_timeout_ms == 90000


# ============================================================
# MONITOR BOT TESTS
# ============================================================

class TestMonitorBot:
    """Tests for MonitorBot."""

    def test_status_before_start(self, bot):
        """Test the status snapshot shape."""
        status = bot.get_status()

        assert status["running"] is False
        assert status["connected"] is False
        assert status["last_ping"] is None
        assert status["account_states"] == {}
        assert status["reconnect_attempts"] == 0
        assert status["connection_uptime_seconds"] == 0
        assert status["chat_logging_enabled"] is True

    @pytest.mark.asyncio
    async def test_start_connects_and_prepares_logs(self, bot, config, sink, transport):
        """Test startup prepares the chat directory and opens the connection."""
        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.is_connected)

        assert bot.is_running
        assert os.path.isdir(config.logs_directory)
        assert sink.titles == ["🟢 WebSocket Connected"]
        assert bot.get_status()["connected"] is True

        await bot.stop()

    @pytest.mark.asyncio
    async def test_frames_flow_to_chat_log(self, bot, config, transport):
        """Test a chat frame ends up in the account's log file."""
        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.is_connected)

        transport.last_socket.feed_text(json.dumps({
            "action": 12,
            "params": {"account": "Steve", "timestamp": 0, "data": {"text": "hello"}},
        }))

        path = os.path.join(config.logs_directory, "steve_chat.json")
        await wait_for_condition(lambda: os.path.exists(path))

        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
        assert entries[0]["message"] == "hello"

        await bot.stop()

    @pytest.mark.asyncio
    async def test_frames_flow_to_policy(self, bot, transport):
        """Test a profile frame updates the roster in the status."""
        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.is_connected)

        transport.last_socket.feed_text(json.dumps({
            "action": 7,
            "params": {"accounts": [{"username": "Steve", "state": 2}]},
        }))

        await wait_for_condition(lambda: bot.get_status()["account_states"] == {"Steve": "Online"})

        await bot.stop()

    @pytest.mark.asyncio
    async def test_stop_sequence(self, bot, sink, transport):
        """Test shutdown announces, then closes every resource."""
        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.is_connected)

        await bot.stop(reason="SIGTERM")

        shutdown = sink.sent[-1]
        assert shutdown.title == "🛑 Bot Shutdown"
        assert shutdown.description == "MinecraftAFK monitoring bot is shutting down (SIGTERM)"
        assert shutdown.color == NotificationColor.WARNING
        assert shutdown.category == NotificationCategory.LIFECYCLE

        assert sink.closed
        assert transport.closed
        assert transport.last_socket.closed
        assert not bot.is_running
        assert not bot.connection.is_connected

    @pytest.mark.asyncio
    async def test_stop_disarms_reconnect_before_announcing(self, config, transport):
        """Test a slow shutdown announcement cannot race a pending reconnect."""
        class SlowShutdownSink(RecordingSink):
            async def send(self, notification):
                if notification.title == MonitorBot.SHUTDOWN_TITLE:
                    await asyncio.sleep(0.3)
                return await super().send(notification)

        config.reconnect_interval_ms = 50
        config.max_reconnect_interval_ms = 50
        transport.failures = 1
        sink = SlowShutdownSink()
        bot = MonitorBot(
            config,
            sink=sink,
            transport=transport,
            clock=MockClock(datetime(2025, 1, 1, tzinfo=timezone.utc)),
        )

        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.reconnect_pending)
        calls_before = transport.connect_calls

        await bot.stop()
        await asyncio.sleep(0.1)

        assert transport.connect_calls == calls_before
        assert "🟢 WebSocket Connected" not in sink.titles
        assert sink.titles[-1] == "🛑 Bot Shutdown"

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, bot, sink):
        await bot.start(install_signal_handlers=False)

        await bot.stop()
        await bot.stop()

        assert sink.titles.count("🛑 Bot Shutdown") == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_state_changes(self, bot, sink, transport):
        """Test no state notification fires after shutdown."""
        await bot.start(install_signal_handlers=False)
        await wait_for_condition(lambda: bot.connection.is_connected)

        for state in (0, 2):
            transport.last_socket.feed_text(json.dumps({
                "action": 13,
                "params": {"account": "Steve", "state": state},
            }))
        await wait_for_condition(lambda: bot.policy.pending_count == 1)

        await bot.stop()
        await asyncio.sleep(0.15)

        assert "🔄 Account State Change" not in sink.titles

    @pytest.mark.asyncio
    async def test_run_forever_returns_after_stop(self, bot):
        await bot.start(install_signal_handlers=False)
        runner = asyncio.create_task(bot.run_forever())

        await asyncio.sleep(0.02)
        assert not runner.done()

        await bot.stop()
        await asyncio.wait_for(runner, timeout=1)

    @pytest.mark.asyncio
    async def test_unusable_log_directory_is_fatal(self, config, sink, transport, tmp_path):
        """Test a chat directory below a regular file stops startup."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config.logs_directory = str(blocker / "chat_logs")
        bot = MonitorBot(config, sink=sink, transport=transport)

        with pytest.raises(ChatLogStorageError):
            await bot.start(install_signal_handlers=False)

        assert transport.connect_calls == 0

    def test_chat_logging_can_be_disabled(self, config, sink, transport):
        config.logs_directory = None
        bot = MonitorBot(config, sink=sink, transport=transport)

        assert bot.chat_store is None
        assert bot.get_status()["chat_logging_enabled"] is False


# ============================================================
# CLI TESTS
# ============================================================

class TestCli:
    """Tests for the command-line entry point."""

    def test_missing_configuration_exits_1(self, tmp_path, capsys):
        """Test startup is refused without required variables."""
        with patch.dict(os.environ, {}, clear=True):
            code = main(["--env-file", str(tmp_path / "missing.env")])

        assert code == 1
        stderr = capsys.readouterr().err
        assert "DISCORD_WEBHOOK_URL" in stderr
        assert "MINECRAFTAFK_TOKEN" in stderr
        assert "Set DISCORD_WEBHOOK_URL, MINECRAFTAFK_TOKEN" in stderr

    def test_malformed_number_exits_1(self, tmp_path, capsys):
        env = {
            "DISCORD_WEBHOOK_URL": WEBHOOK,
            "MINECRAFTAFK_TOKEN": "token",
            "MAX_RECONNECT_ATTEMPTS": "ten",
        }
        with patch.dict(os.environ, env, clear=True):
            code = main(["--env-file", str(tmp_path / "missing.env")])

        assert code == 1
        assert "MAX_RECONNECT_ATTEMPTS" in capsys.readouterr().err

    def test_verbose_flag(self, tmp_path):
        """Test --verbose turns on debug mode."""
        args = create_parser().parse_args([
            "--env-file", str(tmp_path / "missing.env"),
            "--verbose",
            "--log-format", "json",
        ])
        with patch.dict(os.environ, {"MINECRAFTAFK_TOKEN": "token"}, clear=True):
            config = build_config(args)

        assert config.debug_mode is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        assert config.auth_token == "token"
