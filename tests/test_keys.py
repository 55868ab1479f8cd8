"""Tests for raw terminal input decoding."""

import pytest

from repo_shell.tui.keys import decode_keys


class TestPrintable:
    def test_plain_characters(self):
        assert decode_keys("jkq") == ["j", "k", "q"]

    def test_uppercase_is_preserved(self):
        assert decode_keys("G") == ["G"]

    def test_empty_chunk(self):
        assert decode_keys("") == []


class TestControlKeys:
    @pytest.mark.parametrize(
        "raw, key",
        [
            ("\r", "enter"),
            ("\n", "enter"),
            ("\t", "tab"),
            ("\x7f", "backspace"),
            (" ", "space"),
            ("\x03", "ctrl+c"),
            ("\x01", "ctrl+a"),
        ],
    )
    def test_control_characters(self, raw, key):
        assert decode_keys(raw) == [key]


class TestEscapeSequences:
    @pytest.mark.parametrize(
        "raw, key",
        [
            ("\x1b[A", "up"),
            ("\x1b[B", "down"),
            ("\x1bOA", "up"),
            ("\x1bOB", "down"),
            ("\x1b[H", "home"),
            ("\x1b[4~", "end"),
            ("\x1b[5~", "pageup"),
            ("\x1b[6~", "pagedown"),
            ("\x1b[Z", "shift+tab"),
        ],
    )
    def test_known_sequences(self, raw, key):
        assert decode_keys(raw) == [key]

    def test_lone_escape(self):
        assert decode_keys("\x1b") == ["escape"]

    def test_alt_modified_character(self):
        assert decode_keys("\x1bx") == ["alt+x"]

    def test_unknown_csi_sequence_is_skipped(self):
        # Focus-in report; not a key.
        assert decode_keys("\x1b[Ij") == ["j"]

    def test_mixed_chunk_keeps_order(self):
        assert decode_keys("j\x1b[Bk\r\tq") == ["j", "down", "k", "enter", "tab", "q"]

    def test_double_escape(self):
        assert decode_keys("\x1b\x1b[A") == ["escape", "up"]
