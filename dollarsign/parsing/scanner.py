"""Template scanner: split a template into literal text and expression slots.

Two delimiter conventions are supported:

- standard mode: ``{expr}`` is a slot, ``${...}`` is kept verbatim
- dollar mode: ``${expr}`` is a slot, a bare ``{...}`` is kept verbatim

In both modes ``{{`` and ``}}`` are escapes. They are replaced by private-use
markers during scanning so that they survive slot evaluation untouched, and
are turned back into ``{``/``}`` only by :func:`unescape` on the final output.

Usage:
    from dollarsign.parsing import scan, Literal, ExpressionSlot

    for segment in scan("Hello {name,-10:G}!"):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .descriptor import ExpressionDescriptor, parse_descriptor

OPEN_ESCAPE = "\ue000"
CLOSE_ESCAPE = "\ue001"


@dataclass(frozen=True)
class Literal:
    """Literal template text (may contain escape markers)."""

    text: str


@dataclass(frozen=True)
class ExpressionSlot:
    """A delimited expression; start/end are the offsets of the inner text."""

    descriptor: ExpressionDescriptor
    start: int
    end: int

    @property
    def expression(self) -> str:
        return self.descriptor.raw_text


Segment = Literal | ExpressionSlot


class _State(str, Enum):
    LITERAL = "literal"
    IN_EXPR = "in_expr"
    IN_QUOTE = "in_quote"


def find_slot_end(text: str, start: int) -> int | None:
    """Index of the brace that closes a slot whose inner text begins at *start*.

    Brace depth starts at 1. Braces inside string literals are ignored.
    Returns None when the slot is never closed.
    """
    state = _State.IN_EXPR
    depth = 1
    quote = ""
    i = start
    while i < len(text):
        ch = text[i]
        if state is _State.IN_QUOTE:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                state = _State.IN_EXPR
        elif ch in "\"'":
            state = _State.IN_QUOTE
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def scan(template: str, dollar_mode: bool = False) -> list[Segment]:
    """Split *template* into ordered Literal and ExpressionSlot segments.

    Args:
        template: Template text
        dollar_mode: Use ``${expr}`` slots instead of ``{expr}``

    Returns:
        Segments in encounter order. Adjacent literal text is merged.
    """
    segments: list[Segment] = []
    buffer: list[str] = []
    i = 0
    n = len(template)

    def flush() -> None:
        if buffer:
            segments.append(Literal("".join(buffer)))
            buffer.clear()

    while i < n:
        ch = template[i]
        nxt = template[i + 1] if i + 1 < n else ""

        if ch == "{" and nxt == "{":
            buffer.append(OPEN_ESCAPE)
            i += 2
            continue
        if ch == "}" and nxt == "}":
            buffer.append(CLOSE_ESCAPE)
            i += 2
            continue

        is_dollar_open = ch == "$" and nxt == "{" and template[i + 2:i + 3] != "{"
        if is_dollar_open and not dollar_mode:
            # ${...} is inert text in standard mode
            end = find_slot_end(template, i + 2)
            if end is None:
                buffer.append(ch)
                i += 1
            else:
                buffer.append(template[i:end + 1])
                i = end + 1
            continue

        opens_slot = is_dollar_open if dollar_mode else ch == "{"
        if opens_slot:
            inner_start = i + (2 if dollar_mode else 1)
            end = find_slot_end(template, inner_start)
            if end is None:
                buffer.append(template[i:inner_start])
                i = inner_start
                continue
            flush()
            inner = template[inner_start:end]
            segments.append(ExpressionSlot(parse_descriptor(inner), inner_start, end))
            i = end + 1
            continue

        buffer.append(ch)
        i += 1

    flush()
    return segments


def unescape(text: str) -> str:
    """Restore escape markers to literal braces."""
    return text.replace(OPEN_ESCAPE, "{").replace(CLOSE_ESCAPE, "}")


def has_slots(template: str, dollar_mode: bool = False) -> bool:
    return any(isinstance(s, ExpressionSlot) for s in scan(template, dollar_mode))
