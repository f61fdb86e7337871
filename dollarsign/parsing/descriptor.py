"""Split a slot's inner text into expression, alignment and format specifier.

``{value,10:F2}`` yields expression ``value``, alignment ``10`` and format
``F2``. Colons belonging to a ternary (``a ? b : c``), colons and commas
nested inside parens/brackets/braces, and anything inside string literals
are never treated as separators.
"""

from __future__ import annotations

from dataclasses import dataclass

_OPENERS = "([{"
_CLOSERS = ")]}"


@dataclass(frozen=True)
class ExpressionDescriptor:
    """A slot's expression text plus its optional alignment and format."""

    raw_text: str
    alignment: int | None = None
    format_specifier: str | None = None


def _top_level_positions(text: str):
    """Yield (index, char) for characters outside quotes and brackets."""
    depth = 0
    quote: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif depth == 0:
            yield i, ch
        i += 1


def find_format_colon(text: str) -> int:
    """Index of the colon that starts the format specifier, or -1.

    Each top-level ``?`` opens a ternary that consumes the next top-level
    ``:``; ``??``, ``?.`` and ``?[`` are not ternaries.
    """
    pending_ternaries = 0
    skip_next = False
    for i, ch in _top_level_positions(text):
        if skip_next:
            skip_next = False
            continue
        if ch == "?":
            following = text[i + 1] if i + 1 < len(text) else ""
            if following == "?":
                skip_next = True
                continue
            if following in ".[":
                continue
            pending_ternaries += 1
        elif ch == ":":
            if pending_ternaries:
                pending_ternaries -= 1
                continue
            if i > 0:
                return i
    return -1


def find_alignment_comma(text: str) -> int:
    """Index of the first top-level comma, or -1."""
    for i, ch in _top_level_positions(text):
        if ch == ",":
            return i
    return -1


def _parse_int(text: str) -> int | None:
    text = text.strip()
    digits = text[1:] if text[:1] in "+-" else text
    if not digits.isdigit():
        return None
    return int(text)


def parse_descriptor(inner: str) -> ExpressionDescriptor:
    """Build the descriptor for a slot's inner text.

    Args:
        inner: Text between the slot delimiters

    Returns:
        ExpressionDescriptor with trimmed expression text
    """
    format_specifier: str | None = None
    main = inner
    colon = find_format_colon(inner)
    if colon > 0:
        main = inner[:colon]
        format_specifier = inner[colon + 1:].strip() or None

    comma = find_alignment_comma(main)
    if comma > 0:
        alignment = _parse_int(main[comma + 1:])
        if alignment is not None:
            return ExpressionDescriptor(main[:comma].strip(), alignment, format_specifier)

    return ExpressionDescriptor(main.strip(), None, format_specifier)
