"""
Chat Logging Package.

Plain-text extraction of chat components and the per-account
append-only JSON log.
"""

from .extraction import extract_chat_text, COMPLEX_MESSAGE, PARSE_FAILURE
from .store import ChatLogStore, build_record, WRITE_TEST_FILENAME


__all__ = [
    "extract_chat_text",
    "COMPLEX_MESSAGE",
    "PARSE_FAILURE",
    "ChatLogStore",
    "build_record",
    "WRITE_TEST_FILENAME",
]
