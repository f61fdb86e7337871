"""Fast-path resolution for plain member paths.

Expressions of the shape ``ident(.ident | [int] | [^int] | ["key"])*`` are
resolved by walking the variable context directly, without parsing or
caching. Anything else (operators, calls, static roots, reserved words)
is left to the full evaluator.
"""

from __future__ import annotations

import ast
import logging
import re
from collections.abc import Iterable
from typing import Any

from ..context import resolve_index, resolve_member
from .interpreter import Scope

logger = logging.getLogger(__name__)

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_STRING_KEY = r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'"
_SEGMENT = rf"\.{_IDENT}|\[\s*\^?\d+\s*\]|\[\s*(?:{_STRING_KEY})\s*\]"

FAST_PATH_PATTERN = re.compile(rf"^({_IDENT})((?:{_SEGMENT})*)$")
_SEGMENT_PATTERN = re.compile(
    rf"\.(?P<member>{_IDENT})|\[\s*(?P<from_end>\^)?(?P<index>\d+)\s*\]|\[\s*(?P<key>{_STRING_KEY})\s*\]"
)

RESERVED_WORDS = frozenset({
    "true", "false", "null", "new", "typeof", "default", "nameof", "sizeof",
    "this", "base", "is", "as", "in", "var", "checked", "unchecked",
})


class ExpressionClassifier:
    """Decides whether an expression qualifies for the fast path."""

    def __init__(self, special_roots: Iterable[str] = ()) -> None:
        self._special = frozenset(name.casefold() for name in special_roots) | RESERVED_WORDS

    def match(self, text: str) -> re.Match[str] | None:
        """Return the path match when *text* is a fast-path candidate."""
        match = FAST_PATH_PATTERN.match(text.strip())
        if match is None or match.group(1).casefold() in self._special:
            return None
        return match

    def is_fast_path(self, text: str) -> bool:
        return self.match(text) is not None


class FastPathResolver:
    """Walks a member path through the variable scope."""

    def __init__(self, classifier: ExpressionClassifier, strict: bool = False) -> None:
        self.classifier = classifier
        self.strict = strict

    def try_resolve(self, text: str, scope: Scope) -> tuple[bool, Any]:
        """Resolve *text* if it is a plain path.

        Returns:
            (handled, value). handled is False when the text needs the full
            evaluator.

        Raises:
            MissingVariableError: If the root identifier is not defined.
            MissingMemberError: If a segment is missing under strict access.
        """
        match = self.classifier.match(text)
        if match is None:
            return False, None
        expression = text.strip()
        current = scope.lookup(match.group(1))
        for segment in _SEGMENT_PATTERN.finditer(match.group(2)):
            if current is None and not self.strict:
                return True, None
            if segment.group("member") is not None:
                current = resolve_member(current, segment.group("member"), self.strict, expression)
            elif segment.group("index") is not None:
                current = resolve_index(
                    current,
                    int(segment.group("index")),
                    from_end=segment.group("from_end") is not None,
                    strict=self.strict,
                    expression=expression,
                )
            else:
                key = ast.literal_eval(segment.group("key"))
                current = resolve_index(current, key, strict=self.strict, expression=expression)
        logger.debug(f"Fast path resolved '{expression}'")
        return True, current
