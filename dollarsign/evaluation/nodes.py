"""AST node types produced by the expression parser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Constant:
    value: Any


@dataclass(frozen=True)
class Name:
    id: str


@dataclass(frozen=True)
class Member:
    target: Node
    name: str
    null_conditional: bool = False


@dataclass(frozen=True)
class Index:
    target: Node
    index: Node
    null_conditional: bool = False


@dataclass(frozen=True)
class FromEnd:
    """``^n`` index operand: the n-th element counted from the end."""

    operand: Node


@dataclass(frozen=True)
class Call:
    func: Node
    args: tuple[Node, ...]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Coalesce:
    left: Node
    right: Node


@dataclass(frozen=True)
class Conditional:
    test: Node
    body: Node
    orelse: Node


@dataclass(frozen=True)
class Lambda:
    params: tuple[str, ...]
    body: Node


@dataclass(frozen=True)
class Cast:
    type_name: str
    operand: Node


@dataclass(frozen=True)
class Hole:
    """One ``{expr,align:format}`` hole of an interpolated string."""

    expression: Node
    alignment: int | None = None
    format_specifier: str | None = None


@dataclass(frozen=True)
class Interpolated:
    parts: tuple[Union[str, Hole], ...]


Node = Union[
    Constant, Name, Member, Index, FromEnd, Call, Unary, Binary,
    Coalesce, Conditional, Lambda, Cast, Interpolated,
]


def iter_children(node: Node):
    """Yield the direct child nodes of *node*."""
    if isinstance(node, (Member, FromEnd)):
        yield node.target if isinstance(node, Member) else node.operand
    elif isinstance(node, Index):
        yield node.target
        yield node.index
    elif isinstance(node, Call):
        yield node.func
        yield from node.args
    elif isinstance(node, (Unary, Cast)):
        yield node.operand
    elif isinstance(node, (Binary, Coalesce)):
        yield node.left
        yield node.right
    elif isinstance(node, Conditional):
        yield node.test
        yield node.body
        yield node.orelse
    elif isinstance(node, Lambda):
        yield node.body
    elif isinstance(node, Interpolated):
        for part in node.parts:
            if isinstance(part, Hole):
                yield part.expression
