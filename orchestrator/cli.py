"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the account monitor.

- Provides argparse-based CLI
- Loads configuration from the environment and a .env file
- Refuses to start on invalid configuration (exit code 1)
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli
python -m orchestrator.cli --env-file /etc/afk-monitor.env
python -m orchestrator.cli --log-level DEBUG --log-format json

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.config import BotConfig, REQUIRED_VARIABLES
from core.exceptions import ConfigurationError, MonitorException
from .core import MonitorBot, setup_logging


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="afk-monitor",
        description="MinecraftAFK account monitor with Discord notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Required environment:
  DISCORD_WEBHOOK_URL   Discord webhook (https://discord.com/api/webhooks/...)
  MINECRAFTAFK_TOKEN    MinecraftAFK session token

Examples:
  %(prog)s                                # Read .env from the working directory
  %(prog)s --env-file prod.env            # Explicit .env file
  %(prog)s --verbose --log-format json    # Debug output as JSON lines
        """
    )

    parser.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Path to a .env file (default: discover .env)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (default: LOG_FORMAT or text)",
    )

    logging_group.add_argument(
        "--verbose",
        action="store_true",
        help="Same as DEBUG_MODE=true",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CONFIGURATION
# ============================================================

def build_config(args: argparse.Namespace) -> BotConfig:
    """
    Load configuration and apply CLI overrides.

    Raises:
        ConfigurationError: If a numeric setting is malformed
    """
    config = BotConfig.from_env(env_file=args.env_file)

    if args.verbose:
        config.debug_mode = True
        config.log_level = "DEBUG"
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    return config


def report_config_errors(errors: List[ConfigurationError]) -> None:
    """Print configuration diagnostics to stderr."""
    for error in errors:
        print(f"Error: {error.message}", file=sys.stderr)
    print(
        f"Set {', '.join(REQUIRED_VARIABLES)} in the environment or a .env file.",
        file=sys.stderr,
    )


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: BotConfig) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    bot = MonitorBot(config)

    try:
        await bot.run_forever()
        return 0
    except MonitorException as e:
        logger.error(f"Fatal error: {e.to_log_format()}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await bot.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        report_config_errors([e])
        return 1

    errors = config.validate()
    if errors:
        report_config_errors(errors)
        return 1

    setup_logging(level=config.log_level, log_format=config.log_format)
    print_banner(config)

    try:
        return asyncio.run(async_main(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


def print_banner(config: BotConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  MINECRAFTAFK ACCOUNT MONITOR")
    print("=" * 60)
    print(f"  WebSocket:   {config.websocket_url}")
    print(f"  Chat logs:   {config.logs_directory or 'disabled'}")
    print(f"  Log Level:   {config.log_level}")
    print(f"  Debug Mode:  {config.debug_mode}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
