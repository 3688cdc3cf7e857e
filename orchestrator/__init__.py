"""
Orchestrator Package - Process Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Wires the connection manager, event dispatcher, notification
policy and chat log into one process, and exposes the CLI.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO monitoring logic
2. It owns exactly one instance of every component
3. It ONLY coordinates startup and shutdown

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     MonitorBot                      |
    |-----------------------------------------------------|
    |  ConnectionManager | WebSocket lifecycle            |
    |  EventDispatcher   | Frame decoding and routing     |
    |  NotificationPolicy| Debounce and cooldowns         |
    |  ChatLogStore      | Per-account chat logs          |
    |  CLI               | Command-line interface         |
    +-----------------------------------------------------+

============================================================
"""

from .core import (
    MonitorBot,
    JsonFormatter,
    setup_logging,
    build_connection_config,
    build_policy_config,
)
from .cli import create_parser, build_config, main


__all__ = [
    "MonitorBot",
    "JsonFormatter",
    "setup_logging",
    "build_connection_config",
    "build_policy_config",
    "create_parser",
    "build_config",
    "main",
]
