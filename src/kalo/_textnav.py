"""Cursor arithmetic shared by the filter inputs."""

from __future__ import annotations

# Same delimiters the query syntax uses between path segments.
WORD_BOUNDARIES = ".[]"


def find_previous_boundary(text: str, pos: int) -> int:
    """Return the start of the word before *pos*.

    Scans backward from ``pos - 1``.  A boundary at index ``i`` yields
    ``i + 1`` (the first character after it), except at index 0 which
    yields 0.
    """
    if pos <= 0:
        return 0
    for i in range(min(pos, len(text)) - 1, -1, -1):
        if text[i] in WORD_BOUNDARIES:
            return 0 if i == 0 else i + 1
    return 0


def find_next_boundary(text: str, pos: int) -> int:
    """Return the index of the next boundary at or after *pos*, else ``len(text)``."""
    if pos >= len(text):
        return len(text)
    for i in range(max(pos, 0), len(text)):
        if text[i] in WORD_BOUNDARIES:
            return i
    return len(text)


# -- Edits -----------------------------------------------------------------
# Each helper returns the new (text, cursor) pair.


def insert_char(text: str, pos: int, char: str) -> tuple[str, int]:
    return text[:pos] + char + text[pos:], pos + len(char)


def delete_char_back(text: str, pos: int) -> tuple[str, int]:
    if pos <= 0 or not text:
        return text, pos
    return text[: pos - 1] + text[pos:], pos - 1


def delete_char_forward(text: str, pos: int) -> tuple[str, int]:
    if pos >= len(text):
        return text, pos
    return text[:pos] + text[pos + 1 :], pos


def delete_word_back(text: str, pos: int) -> tuple[str, int]:
    """Ctrl+W: remove from the previous word boundary up to the cursor."""
    if pos <= 0:
        return text, pos
    start = find_previous_boundary(text, pos)
    return text[:start] + text[pos:], start
