"""Recursive-descent parser for the expression language.

Precedence, lowest first::

    lambda        x => body, (a, b) => body
    conditional   a ? b : c            (right-associative)
    coalesce      a ?? b               (right-associative)
    logical or    ||
    logical and   &&
    equality      == !=
    relational    < > <= >=
    additive      + -
    multiplicative * / %
    unary         ! - + ^ (T)x
    postfix       .member ?.member [index] ?[index] (args)
    primary       literals, identifiers, (expr), $"..."
"""

from __future__ import annotations

from ..errors import ParseError
from ..parsing.descriptor import ExpressionDescriptor
from .lexer import Token, TokenKind, tokenize
from .nodes import (
    Binary,
    Call,
    Cast,
    Coalesce,
    Conditional,
    Constant,
    FromEnd,
    Hole,
    Index,
    Interpolated,
    Lambda,
    Member,
    Name,
    Node,
    Unary,
)

CAST_TYPES = frozenset({
    "int", "long", "short", "byte", "double", "float", "decimal", "string", "bool", "object",
})

KEYWORD_CONSTANTS = {"true": True, "false": False, "null": None}

MAX_POSTFIX_CHAIN = 200


class Parser:
    """Parses one expression text into a Node tree."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    # -- token helpers -------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind is not TokenKind.EOF:
            self.pos += 1
        return token

    def accept(self, *ops: str) -> Token | None:
        if self.current.is_op(*ops):
            return self.advance()
        return None

    def expect(self, op: str) -> Token:
        token = self.accept(op)
        if token is None:
            found = self.current.value if self.current.kind is not TokenKind.EOF else "end of expression"
            raise ParseError(f"Expected '{op}' but found '{found}'", self.text, self.current.pos)
        return token

    # -- grammar -------------------------------------------------------------

    def parse(self) -> Node:
        if self.current.kind is TokenKind.EOF:
            raise ParseError("Empty expression", self.text, 0)
        node = self.parse_expression()
        if self.current.kind is not TokenKind.EOF:
            raise ParseError(
                f"Unexpected token '{self.current.value}' at position {self.current.pos}",
                self.text,
                self.current.pos,
            )
        return node

    def parse_expression(self) -> Node:
        params = self._lambda_params()
        if params is not None:
            body = self.parse_expression()
            return Lambda(params, body)
        return self.parse_conditional()

    def _lambda_params(self) -> tuple[str, ...] | None:
        """Consume a lambda parameter list and '=>' if one starts here."""
        token = self.current
        if token.kind is TokenKind.IDENT and self.peek().is_op("=>"):
            self.pos += 2
            return (token.value,)
        if not token.is_op("("):
            return None
        offset = 1
        names: list[str] = []
        while True:
            item = self.peek(offset)
            if item.is_op(")") and not names:
                break
            if item.kind is not TokenKind.IDENT:
                return None
            names.append(item.value)
            offset += 1
            separator = self.peek(offset)
            if separator.is_op(","):
                offset += 1
                continue
            if separator.is_op(")"):
                break
            return None
        if not self.peek(offset + 1).is_op("=>"):
            return None
        self.pos += offset + 2
        return tuple(names)

    def parse_conditional(self) -> Node:
        test = self.parse_coalesce()
        if self.accept("?"):
            body = self.parse_expression()
            self.expect(":")
            orelse = self.parse_expression()
            return Conditional(test, body, orelse)
        return test

    def parse_coalesce(self) -> Node:
        operands = [self.parse_or()]
        while self.accept("??"):
            operands.append(self.parse_or())
        node = operands.pop()
        while operands:
            node = Coalesce(operands.pop(), node)
        return node

    def _binary_level(self, ops: tuple[str, ...], operand) -> Node:
        left = operand()
        while True:
            token = self.accept(*ops)
            if token is None:
                return left
            left = Binary(token.value, left, operand())

    def parse_or(self) -> Node:
        return self._binary_level(("||",), self.parse_and)

    def parse_and(self) -> Node:
        return self._binary_level(("&&",), self.parse_equality)

    def parse_equality(self) -> Node:
        return self._binary_level(("==", "!="), self.parse_relational)

    def parse_relational(self) -> Node:
        return self._binary_level(("<", ">", "<=", ">="), self.parse_additive)

    def parse_additive(self) -> Node:
        return self._binary_level(("+", "-"), self.parse_multiplicative)

    def parse_multiplicative(self) -> Node:
        return self._binary_level(("*", "/", "%"), self.parse_unary)

    def parse_unary(self) -> Node:
        token = self.accept("!", "-", "+")
        if token is not None:
            return Unary(token.value, self.parse_unary())
        if self.accept("^"):
            return FromEnd(self.parse_unary())
        cast = self._cast_type()
        if cast is not None:
            return Cast(cast, self.parse_unary())
        return self.parse_postfix()

    def _cast_type(self) -> str | None:
        if not (self.current.is_op("(")
                and self.peek().kind is TokenKind.IDENT
                and self.peek().value in CAST_TYPES
                and self.peek(2).is_op(")")):
            return None
        following = self.peek(3)
        starts_operand = following.kind in (
            TokenKind.IDENT, TokenKind.NUMBER, TokenKind.STRING, TokenKind.INTERPOLATED,
        ) or following.is_op("(", "!")
        if not starts_operand:
            return None
        type_name = self.peek().value
        self.pos += 3
        return type_name

    def parse_postfix(self) -> Node:
        node = self.parse_primary()
        links = 0
        while True:
            if self.accept("."):
                node = Member(node, self._member_name())
            elif self.accept("?."):
                node = Member(node, self._member_name(), null_conditional=True)
            elif self.current.is_op("?") and self.peek().is_op("["):
                self.pos += 2
                node = Index(node, self.parse_expression(), null_conditional=True)
                self.expect("]")
            elif self.accept("["):
                node = Index(node, self.parse_expression())
                self.expect("]")
            elif self.accept("("):
                node = Call(node, self._arguments())
            else:
                return node
            links += 1
            if links > MAX_POSTFIX_CHAIN:
                raise ParseError(
                    f"Member access chain exceeds {MAX_POSTFIX_CHAIN} links", self.text, self.current.pos
                )

    def _member_name(self) -> str:
        token = self.advance()
        if token.kind is not TokenKind.IDENT:
            raise ParseError("Expected member name after '.'", self.text, token.pos)
        return token.value

    def _arguments(self) -> tuple[Node, ...]:
        args: list[Node] = []
        if self.accept(")"):
            return ()
        while True:
            args.append(self.parse_expression())
            if self.accept(")"):
                return tuple(args)
            self.expect(",")

    def parse_primary(self) -> Node:
        token = self.advance()
        if token.kind in (TokenKind.NUMBER, TokenKind.STRING):
            return Constant(token.value)
        if token.kind is TokenKind.INTERPOLATED:
            return self._interpolated(token.value)
        if token.kind is TokenKind.IDENT:
            if token.value in KEYWORD_CONSTANTS:
                return Constant(KEYWORD_CONSTANTS[token.value])
            return Name(token.value)
        if token.is_op("("):
            node = self.parse_expression()
            self.expect(")")
            return node
        if token.kind is TokenKind.EOF:
            raise ParseError("Unexpected end of expression", self.text, token.pos)
        raise ParseError(f"Unexpected token '{token.value}' at position {token.pos}", self.text, token.pos)

    def _interpolated(self, parts: list) -> Interpolated:
        converted: list = []
        for part in parts:
            if isinstance(part, ExpressionDescriptor):
                converted.append(Hole(parse(part.raw_text), part.alignment, part.format_specifier))
            else:
                converted.append(part)
        return Interpolated(tuple(converted))


def parse(text: str) -> Node:
    """Parse *text* into an expression tree.

    Raises:
        ParseError: If the text is not a valid expression or nests too deeply.
    """
    try:
        return Parser(text).parse()
    except RecursionError:
        raise ParseError("Expression is nested too deeply to parse", text) from None
