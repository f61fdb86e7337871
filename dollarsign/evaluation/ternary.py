"""Top-level ternary splitting and boolean coercion.

A ternary found at the top level of an expression is split textually so
that only the selected branch is ever evaluated.
"""

from __future__ import annotations

from collections.abc import Sized
from decimal import Decimal
from typing import Any

_OPENERS = "([{"
_CLOSERS = ")]}"


def _is_ternary_question(text: str, i: int) -> bool:
    following = text[i + 1] if i + 1 < len(text) else ""
    preceding = text[i - 1] if i > 0 else ""
    return following not in "?.[" and preceding != "?"


def split_ternary(text: str) -> tuple[str, str, str] | None:
    """Split ``cond ? a : b`` at its top-level operators.

    Nested ternaries in the branches are skipped with a nesting counter so
    ``a ? b : c ? d : e`` splits as ``a`` / ``b`` / ``c ? d : e``.

    Returns:
        (condition, when_true, when_false) stripped, or None when *text* has
        no top-level ternary.
    """
    depth = 0
    quote: str | None = None
    question = -1
    nested = 0
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
        elif depth == 0 and ch == "?" and _is_ternary_question(text, i):
            if question < 0:
                question = i
            else:
                nested += 1
        elif depth == 0 and ch == ":" and question >= 0:
            if nested:
                nested -= 1
            else:
                condition = text[:question].strip()
                when_true = text[question + 1:i].strip()
                when_false = text[i + 1:].strip()
                if not condition or not when_true or not when_false:
                    return None
                return condition, when_true, when_false
        i += 1
    return None


def to_bool(value: Any) -> bool:
    """Coerce a ternary condition result to bool.

    bool passes through; None is False; numbers are non-zero; strings
    "true"/"false" parse (any case), other strings are non-empty; sized
    collections are non-empty; any other object is True.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return value != ""
    if isinstance(value, Sized):
        return len(value) > 0
    return True
