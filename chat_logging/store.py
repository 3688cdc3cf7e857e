"""
Chat Logging - Store.

============================================================
PURPOSE
============================================================
Per-account append-only chat log.

Each account has one file, <dir>/<account lowercased>_chat.json,
holding a pretty-printed JSON array of records:

    {timestamp, account, message, raw_data}

The whole array is rewritten on each append, through a temporary
sibling file that replaces the log in one step.

============================================================
FAILURE MODES
============================================================
- Permission denied (startup or append): logging disabled,
  every later append is a no-op
- Any other startup OS error: ChatLogStorageError
- Any other append error: logged, record dropped

============================================================
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from core.clock import to_iso8601
from core.exceptions import ChatLogStorageError


logger = logging.getLogger(__name__)


WRITE_TEST_FILENAME = ".write-test"
TEMP_SUFFIX = ".tmp"
DIRECTORY_MODE = 0o755


def build_record(
    account: str,
    timestamp: datetime,
    message: str,
    raw_data: Any,
) -> Dict[str, Any]:
    """One chat log entry."""
    return {
        "timestamp": to_iso8601(timestamp),
        "account": account,
        "message": message,
        "raw_data": raw_data,
    }


class ChatLogStore:
    """Append-only JSON chat logs, one file per account."""

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory)
        self._enabled = True

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def enabled(self) -> bool:
        return self._enabled

    def disable(self, reason: str) -> None:
        if self._enabled:
            logger.warning(f"Disabling chat logging: {reason}")
        self._enabled = False

    def prepare(self) -> bool:
        """
        Create the log directory and verify it is writable.

        Returns whether logging is enabled.

        Raises:
            ChatLogStorageError: Directory unusable for a reason other than permissions
        """
        write_test = self._directory / WRITE_TEST_FILENAME
        try:
            self._directory.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
            write_test.write_text("test", encoding="utf-8")
            write_test.unlink()
        except PermissionError as e:
            logger.warning(f"Chat logs directory is not writable: {self._directory} ({e})")
            self.disable("permission denied")
            return False
        except OSError as e:
            raise ChatLogStorageError(
                f"Failed to prepare chat logs directory: {e}",
                path=str(self._directory),
                cause=e,
            ) from e

        logger.info(f"Chat logs directory ready: {self._directory}")
        return True

    def path_for(self, account: str) -> Path:
        return self._directory / f"{account.lower()}_chat.json"

    def append(self, account: str, record: Dict[str, Any]) -> bool:
        """
        Append a record to the account's log.

        Returns True if the record was written.
        """
        if not self._enabled:
            return False

        path = self.path_for(account)
        try:
            entries = self._read(path)
            entries.append(record)
            self._write(path, json.dumps(entries, indent=2, ensure_ascii=False))
        except PermissionError as e:
            logger.error(f"Failed to save chat for {account}: {e}")
            self.disable("permission denied")
            return False
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to save chat for {account}: {e}")
            return False

        return True

    @staticmethod
    def _write(path: Path, content: str) -> None:
        """Replace the file at path without ever leaving it half-written."""
        temp = path.with_name(path.name + TEMP_SUFFIX)
        try:
            temp.write_text(content, encoding="utf-8")
            os.replace(temp, path)
        except OSError:
            temp.unlink(missing_ok=True)
            raise

    @staticmethod
    def _read(path: Path) -> List[Any]:
        if not path.exists():
            return []
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            return []
        entries = json.loads(content)
        if not isinstance(entries, list):
            raise ValueError(f"{path.name} does not hold a JSON array")
        return entries


__all__ = [
    "ChatLogStore",
    "build_record",
    "WRITE_TEST_FILENAME",
]
