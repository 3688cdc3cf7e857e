#!/usr/bin/env python3
"""
MinecraftAFK Account Monitor - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the monitor.

- Compatible with PM2 and container process management
- Can be started, stopped, and restarted safely
- Handles SIGINT/SIGTERM gracefully (exit code 0)
- Exits with code 1 on missing or invalid configuration

============================================================
USAGE
============================================================
Direct execution:
    python app.py

With PM2:
    pm2 start app.py --interpreter python --name afk-monitor

Environment-based configuration (.env is loaded automatically):
    DISCORD_WEBHOOK_URL=... MINECRAFTAFK_TOKEN=... python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
