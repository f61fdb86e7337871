"""Prepare parsed expressions as reusable compiled units.

Compilation parses the text and checks bindings against the context shape:
lambdas may only appear as call arguments, ``nameof`` needs an identifier
or member argument, and bare function calls must name a known function or
a variable. The resulting CompiledUnit is immutable and cached per
(shape, text).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..errors import CompilationError
from .nodes import Binary, Call, Coalesce, Lambda, Member, Name, Node, iter_children
from .parser import parse

logger = logging.getLogger(__name__)

# Names that may be called as bare functions
BUILTIN_FUNCTIONS = frozenset({"nameof"})

# Operators with no counterpart in the expression language
UNSUPPORTED_FUNCTIONS = frozenset({"typeof", "default", "sizeof", "checked", "unchecked", "stackalloc"})


@dataclass(frozen=True)
class CompiledUnit:
    """A parsed, binding-checked expression.

    Attributes:
        text: Normalized expression text
        shape_id: Shape of the variable context it was compiled against
        tree: Root AST node
        free_names: Identifiers read from the scope (lambda parameters excluded)
        deferred_names: Free names absent from the shape; resolved at run time
            through the variable resolver or static roots
    """

    text: str
    shape_id: str
    tree: Node
    free_names: frozenset[str]
    deferred_names: frozenset[str]


def normalize(text: str) -> str:
    return text.strip()


def _check(node: Node, bound: frozenset[str], free: set[str], known: frozenset[str],
           text: str, as_argument: bool = False) -> None:
    if isinstance(node, Lambda):
        if not as_argument:
            raise CompilationError("Lambda expressions are only allowed as method arguments", text)
        _check(node.body, bound | frozenset(node.params), free, known, text)
        return
    if isinstance(node, Binary):
        while isinstance(node, Binary):
            _check(node.right, bound, free, known, text)
            node = node.left
        _check(node, bound, free, known, text)
        return
    if isinstance(node, Coalesce):
        while isinstance(node, Coalesce):
            _check(node.left, bound, free, known, text)
            node = node.right
        _check(node, bound, free, known, text)
        return
    if isinstance(node, Name):
        if node.id not in bound:
            free.add(node.id)
        return
    if isinstance(node, Call):
        func = node.func
        if isinstance(func, Name):
            name = func.id
            if name in UNSUPPORTED_FUNCTIONS:
                raise CompilationError(f"'{name}' is not supported in expressions", text)
            if name in BUILTIN_FUNCTIONS:
                if len(node.args) != 1 or not isinstance(node.args[0], (Name, Member)):
                    raise CompilationError("nameof expects a single identifier or member", text)
                return
            if name not in bound and name.casefold() not in known:
                raise CompilationError(f"Unknown function '{name}'", text)
            if name not in bound:
                free.add(name)
        else:
            _check(func, bound, free, known, text)
        for arg in node.args:
            _check(arg, bound, free, known, text, as_argument=True)
        return
    for child in iter_children(node):
        _check(child, bound, free, known, text)


def compile_expression(text: str, shape_id: str = "", known_names: Iterable[str] = ()) -> CompiledUnit:
    """Parse and bind-check *text*.

    Args:
        text: Expression text
        shape_id: Context shape the unit is compiled against
        known_names: Names present in the context shape (any case)

    Returns:
        CompiledUnit

    Raises:
        ParseError: If the text is not a valid expression.
        CompilationError: If binding fails.
    """
    normalized = normalize(text)
    tree = parse(normalized)

    known = frozenset(name.casefold() for name in known_names)
    free: set[str] = set()
    _check(tree, frozenset(), free, known, normalized)
    deferred = frozenset(name for name in free if name.casefold() not in known)
    logger.debug(f"Compiled '{normalized}' (free={sorted(free)}, deferred={sorted(deferred)})")
    return CompiledUnit(normalized, shape_id, tree, frozenset(free), deferred)
