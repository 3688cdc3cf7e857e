"""
Chat Logging - Text Extraction.

Reduces a Minecraft chat component to its plain text.
"""

from typing import Any


COMPLEX_MESSAGE = "Complex message format"
PARSE_FAILURE = "Failed to parse chat text"


def _is_plain_run(part: Any) -> bool:
    """A run with text that is neither bold nor colored."""
    return bool(part.get("text")) and not part.get("bold") and not part.get("color")


def _runs(parts: Any) -> list:
    """Component runs, skipping entries that are not objects."""
    return [part for part in parts if isinstance(part, dict)]


def extract_chat_text(data: Any) -> str:
    """
    Extract readable text from a chat payload.

    Rules, first match wins:
    1. translate == "%s" with with[0].extra: plain runs only
       (drops bold and colored prefixes such as rank tags)
    2. Top-level extra: all runs
    3. Top-level text
    4. Anything else, including a payload that is not an object:
       "Complex message format"

    Runs that are not objects are skipped. A payload that still breaks
    these shapes yields "Failed to parse chat text".
    """
    if not isinstance(data, dict):
        return COMPLEX_MESSAGE

    try:
        if data.get("translate") == "%s":
            with_args = data.get("with")
            first = with_args[0] if with_args else None
            if isinstance(first, dict) and first.get("extra") is not None:
                return "".join(
                    part["text"] for part in _runs(first["extra"]) if _is_plain_run(part)
                ).strip()

        if data.get("extra") is not None:
            return "".join(part.get("text") or "" for part in _runs(data["extra"])).strip()

        if data.get("text"):
            return data["text"]

        return COMPLEX_MESSAGE

    except (AttributeError, TypeError, KeyError, IndexError):
        return PARSE_FAILURE


__all__ = [
    "extract_chat_text",
    "COMPLEX_MESSAGE",
    "PARSE_FAILURE",
]
