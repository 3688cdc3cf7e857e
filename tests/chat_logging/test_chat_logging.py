"""
Tests for the Chat Logging Package.

============================================================
PURPOSE
============================================================
- Plain-text extraction from chat components
- Per-account JSON log files
- Permission failures disable logging instead of crashing

============================================================
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chat_logging.extraction import COMPLEX_MESSAGE, PARSE_FAILURE, extract_chat_text
from chat_logging.store import ChatLogStore, WRITE_TEST_FILENAME, build_record
from core.exceptions import ChatLogStorageError


def record(message: str) -> dict:
    return build_record(
        "Steve",
        datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
        message,
        {"text": message},
    )


def deny(*args, **kwargs):
    raise PermissionError("denied")


# ============================================================
# EXTRACTION TESTS
# ============================================================

class TestExtractChatText:
    """Tests for extract_chat_text."""

    def test_translate_keeps_plain_runs(self):
        """Test rank prefixes in bold or color are dropped."""
        data = {
            "translate": "%s",
            "with": [{"extra": [
                {"text": "[Admin] ", "color": "red"},
                {"text": "Notch", "bold": True},
                {"text": " world"},
            ]}],
        }

        assert extract_chat_text(data) == "world"

    def test_top_level_extra_keeps_everything(self):
        data = {"extra": [{"text": "Hello ", "color": "green"}, {"text": "there "}]}

        assert extract_chat_text(data) == "Hello there"

    def test_plain_text(self):
        assert extract_chat_text({"text": "plain"}) == "plain"

    def test_translate_without_extra_falls_through(self):
        """Test a translate payload without runs uses the later rules."""
        assert extract_chat_text({"translate": "%s", "with": [], "text": "hi"}) == "hi"

    def test_complex_message(self):
        assert extract_chat_text({"translate": "chat.type.text"}) == COMPLEX_MESSAGE

    @pytest.mark.parametrize("data", [None, "just a string", 42, ["text"]])
    def test_non_object_payload_is_complex(self, data):
        assert extract_chat_text(data) == COMPLEX_MESSAGE

    @pytest.mark.parametrize("data, expected", [
        ({"extra": [{"text": "ok"}, "not a dict"]}, "ok"),
        ({"extra": [None, {"text": "a "}, 5, {"text": "b"}]}, "a b"),
        ({"translate": "%s", "with": [{"extra": [{"text": "a"}, 5]}]}, "a"),
        ({"translate": "%s", "with": ["not a dict"], "text": "fallback"}, "fallback"),
    ])
    def test_non_object_runs_are_skipped(self, data, expected):
        """Test stray values inside a run list do not lose the message."""
        assert extract_chat_text(data) == expected

    @pytest.mark.parametrize("data", [
        {"extra": 5},
        {"translate": "%s", "with": 5},
    ])
    def test_parse_failure(self, data):
        """Test malformed payloads never raise."""
        assert extract_chat_text(data) == PARSE_FAILURE


# ============================================================
# STORE TESTS
# ============================================================

class TestChatLogStore:
    """Tests for ChatLogStore."""

    def test_prepare_creates_directory(self, tmp_path):
        """Test the directory is created and the write test file removed."""
        directory = tmp_path / "logs" / "chat"
        store = ChatLogStore(directory)

        assert store.prepare() is True
        assert directory.is_dir()
        assert not (directory / WRITE_TEST_FILENAME).exists()

    def test_append_writes_array(self, tmp_path):
        """Test records accumulate in a pretty-printed array."""
        store = ChatLogStore(tmp_path)

        assert store.append("Steve", record("first")) is True
        assert store.append("Steve", record("second")) is True

        path = tmp_path / "steve_chat.json"
        content = path.read_text(encoding="utf-8")
        entries = json.loads(content)

        assert [e["message"] for e in entries] == ["first", "second"]
        assert entries[0]["timestamp"] == "2025-01-01T12:00:00+00:00"
        assert entries[0]["raw_data"] == {"text": "first"}
        assert content.startswith("[\n  {")

    def test_filename_is_lowercased(self, tmp_path):
        store = ChatLogStore(tmp_path)

        assert store.path_for("MixedCase") == tmp_path / "mixedcase_chat.json"

    def test_non_ascii_is_kept(self, tmp_path):
        store = ChatLogStore(tmp_path)
        store.append("Steve", record("héllo ✨"))

        assert "héllo ✨" in (tmp_path / "steve_chat.json").read_text(encoding="utf-8")

    def test_permission_denied_on_prepare(self, tmp_path, monkeypatch):
        """Test an unwritable directory disables logging."""
        store = ChatLogStore(tmp_path)
        monkeypatch.setattr(Path, "write_text", deny)

        assert store.prepare() is False
        assert store.enabled is False
        assert store.append("Steve", record("dropped")) is False

    def test_other_prepare_error_raises(self, tmp_path, monkeypatch):
        """Test non-permission failures are fatal at startup."""
        def broken_mkdir(self, *args, **kwargs):
            raise OSError("read-only file system")

        monkeypatch.setattr(Path, "mkdir", broken_mkdir)
        store = ChatLogStore(tmp_path / "logs")

        with pytest.raises(ChatLogStorageError) as exc_info:
            store.prepare()

        assert exc_info.value.context["path"] == str(tmp_path / "logs")

    def test_permission_denied_on_append(self, tmp_path, monkeypatch):
        """Test a write failure disables every later append."""
        store = ChatLogStore(tmp_path)
        assert store.prepare() is True

        monkeypatch.setattr(Path, "write_text", deny)
        assert store.append("Steve", record("first")) is False
        assert store.enabled is False

        monkeypatch.undo()
        assert store.append("Steve", record("second")) is False
        assert not (tmp_path / "steve_chat.json").exists()

    def test_corrupted_file_drops_record(self, tmp_path):
        """Test an unreadable log keeps logging enabled for other accounts."""
        store = ChatLogStore(tmp_path)
        (tmp_path / "steve_chat.json").write_text("{not json", encoding="utf-8")

        assert store.append("Steve", record("lost")) is False
        assert store.enabled is True
        assert store.append("Alex", record("kept")) is True

    def test_failed_replace_keeps_previous_log(self, tmp_path, monkeypatch):
        """Test an interrupted rewrite leaves the earlier records readable."""
        store = ChatLogStore(tmp_path)
        assert store.append("Steve", record("first")) is True
        path = tmp_path / "steve_chat.json"
        before = path.read_text(encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)

        assert store.append("Steve", record("second")) is False
        assert store.enabled is True
        assert path.read_text(encoding="utf-8") == before
        assert list(tmp_path.iterdir()) == [path]

    def test_no_temporary_file_left_behind(self, tmp_path):
        store = ChatLogStore(tmp_path)
        store.append("Steve", record("first"))
        store.append("Steve", record("second"))

        assert [p.name for p in tmp_path.iterdir()] == ["steve_chat.json"]
