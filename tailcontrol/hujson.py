"""Reading JSON with comments and trailing commas."""

from __future__ import annotations

import json
from typing import Any

_WHITESPACE = " \t\r\n"


def standardize(text: str | bytes) -> str:
    """Return standard JSON: comments blanked out and trailing commas removed.

    Raises ValueError on an unterminated block comment.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8")
    out: list[str] = []
    position = 0
    length = len(text)
    while position < length:
        char = text[position]
        if char == '"':
            end = position + 1
            while end < length and text[end] != '"':
                end += 2 if text[end] == "\\" else 1
            end = min(end + 1, length)
            out.append(text[position:end])
            position = end
        elif text.startswith("//", position):
            end = text.find("\n", position)
            end = length if end < 0 else end
            out.append(" " * (end - position))
            position = end
        elif text.startswith("/*", position):
            end = text.find("*/", position + 2)
            if end < 0:
                raise ValueError(f"unterminated block comment at offset {position}")
            end += 2
            comment = text[position:end]
            out.append("".join(c if c == "\n" else " " for c in comment))
            position = end
        else:
            if char in "]}":
                _drop_trailing_comma(out)
            out.append(char)
            position += 1
    return "".join(out)


def _drop_trailing_comma(out: list[str]) -> None:
    for index in range(len(out) - 1, -1, -1):
        piece = out[index]
        stripped = piece.rstrip(_WHITESPACE)
        if not stripped:
            continue
        if stripped.endswith(","):
            out[index] = stripped[:-1] + " " + piece[len(stripped):]
        return


def loads(text: str | bytes) -> Any:
    """Parse JSON that may contain comments and trailing commas."""
    return json.loads(standardize(text))