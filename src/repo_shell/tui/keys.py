"""Decode raw terminal input into key names.

Key names follow the Textual convention: "up", "down", "enter", "tab",
"escape", "ctrl+c", and the character itself for printable keys.

This module is pure data + parsing, no state.
"""

import re

# [LAW:one-source-of-truth] Escape sequence → key name.
# Both CSI (ESC [) and SS3 (ESC O) forms are listed; terminals in application
# cursor mode send the SS3 variants.
ESCAPE_SEQUENCES: dict[str, str] = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1bOH": "home",
    "\x1bOF": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[7~": "home",
    "\x1b[8~": "end",
    "\x1b[5~": "pageup",
    "\x1b[6~": "pagedown",
    "\x1b[2~": "insert",
    "\x1b[3~": "delete",
    "\x1b[Z": "shift+tab",
}

CONTROL_KEYS: dict[str, str] = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    " ": "space",
}

# Any CSI / SS3 sequence, used to skip sequences we do not map.
_CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
_SS3_RE = re.compile(r"\x1bO[@-~]")
_MAX_SEQUENCE = max(len(seq) for seq in ESCAPE_SEQUENCES)


def _decode_escape(data: str, pos: int) -> tuple[str | None, int]:
    """Decode the escape sequence at data[pos]. Returns (key or None, new position)."""
    for length in range(min(_MAX_SEQUENCE, len(data) - pos), 1, -1):
        key = ESCAPE_SEQUENCES.get(data[pos:pos + length])
        if key is not None:
            return key, pos + length

    for pattern in (_CSI_RE, _SS3_RE):
        match = pattern.match(data, pos)
        if match:
            return None, match.end()

    if pos + 1 < len(data) and data[pos + 1] != "\x1b":
        # ESC followed by a character is how terminals send alt+<char>.
        return f"alt+{data[pos + 1]}", pos + 2
    return "escape", pos + 1


def decode_keys(data: str) -> list[str]:
    """Split a chunk of raw input into key names, in order."""
    keys: list[str] = []
    pos = 0
    while pos < len(data):
        ch = data[pos]
        if ch == "\x1b":
            key, pos = _decode_escape(data, pos)
            if key is not None:
                keys.append(key)
            continue

        pos += 1
        named = CONTROL_KEYS.get(ch)
        if named is not None:
            keys.append(named)
        elif ord(ch) < 0x20:
            # ctrl+a .. ctrl+z arrive as 0x01 .. 0x1a.
            keys.append(f"ctrl+{chr(ord(ch) + 0x60)}")
        else:
            keys.append(ch)
    return keys
