"""Tokenizer for the expression language.

Produces NUMBER, STRING, INTERPOLATED, IDENT and OP tokens followed by a
single EOF token. Interpolated strings (``$"Hi {name}"``) are split into
literal text and hole descriptors here; the parser parses each hole.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from ..errors import ParseError
from ..parsing.descriptor import parse_descriptor
from ..parsing.scanner import find_slot_end


class TokenKind(str, Enum):
    NUMBER = "number"
    STRING = "string"
    INTERPOLATED = "interpolated"
    IDENT = "ident"
    OP = "op"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: Any
    pos: int

    def is_op(self, *ops: str) -> bool:
        return self.kind is TokenKind.OP and self.value in ops


# Longest first so that '??' wins over '?', '=>' over '=' and so on
OPERATORS = (
    "=>", "??", "?.", "==", "!=", "<=", ">=", "&&", "||",
    "+", "-", "*", "/", "%", "<", ">", "!", "?", ":", ".", ",",
    "(", ")", "[", "]", "^",
)

_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\",
    '"': '"', "'": "'", "a": "\a", "b": "\b", "f": "\f", "v": "\v",
}


def _read_escape(text: str, i: int, expression: str) -> tuple[str, int]:
    """Decode the escape starting at the backslash at *i*; return (char, next index)."""
    if i + 1 >= len(text):
        raise ParseError("Unterminated escape sequence", expression, i)
    code = text[i + 1]
    if code in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[code], i + 2
    if code == "u":
        digits = text[i + 2:i + 6]
        if len(digits) == 4 and all(c in "0123456789abcdefABCDEF" for c in digits):
            return chr(int(digits, 16)), i + 6
    raise ParseError(f"Invalid escape sequence '\\{code}'", expression, i)


def _read_string(text: str, start: int, quote: str) -> tuple[str, int]:
    out: list[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            decoded, i = _read_escape(text, i, text)
            out.append(decoded)
            continue
        if ch == quote:
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    raise ParseError("Unterminated string literal", text, start)


def _read_verbatim_string(text: str, start: int) -> tuple[str, int]:
    out: list[str] = []
    i = start + 2
    while i < len(text):
        ch = text[i]
        if ch == '"':
            if text[i + 1:i + 2] == '"':
                out.append('"')
                i += 2
                continue
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    raise ParseError("Unterminated verbatim string literal", text, start)


def _read_interpolated(text: str, start: int) -> tuple[list[Any], int]:
    """Read ``$"..."``; returns literal str parts and ExpressionDescriptor holes."""
    parts: list[Any] = []
    buffer: list[str] = []
    i = start + 2
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            decoded, i = _read_escape(text, i, text)
            buffer.append(decoded)
            continue
        if ch == "{":
            if text[i + 1:i + 2] == "{":
                buffer.append("{")
                i += 2
                continue
            end = find_slot_end(text, i + 1)
            if end is None:
                raise ParseError("Unterminated interpolation hole", text, i)
            if buffer:
                parts.append("".join(buffer))
                buffer.clear()
            parts.append(parse_descriptor(text[i + 1:end]))
            i = end + 1
            continue
        if ch == "}":
            if text[i + 1:i + 2] == "}":
                buffer.append("}")
                i += 2
                continue
            raise ParseError("Unescaped '}' in interpolated string", text, i)
        if ch == '"':
            if buffer:
                parts.append("".join(buffer))
            return parts, i + 1
        buffer.append(ch)
        i += 1
    raise ParseError("Unterminated interpolated string", text, start)


def _read_number(text: str, start: int) -> tuple[Any, int]:
    i = start
    if text.startswith(("0x", "0X"), i):
        j = i + 2
        while j < len(text) and text[j] in "0123456789abcdefABCDEF_":
            j += 1
        digits = text[i + 2:j].replace("_", "")
        if not digits:
            raise ParseError("Invalid hexadecimal literal", text, start)
        if j < len(text) and text[j] in "lLuU":
            j += 1
        return int(digits, 16), j

    while i < len(text) and (text[i].isdigit() or text[i] == "_"):
        i += 1
    is_real = False
    if i + 1 < len(text) and text[i] == "." and text[i + 1].isdigit():
        is_real = True
        i += 1
        while i < len(text) and (text[i].isdigit() or text[i] == "_"):
            i += 1
    if i < len(text) and text[i] in "eE":
        j = i + 1
        if j < len(text) and text[j] in "+-":
            j += 1
        if j < len(text) and text[j].isdigit():
            is_real = True
            i = j
            while i < len(text) and text[i].isdigit():
                i += 1
    literal = text[start:i].replace("_", "")

    suffix = text[i].lower() if i < len(text) and text[i].isalpha() else ""
    if suffix == "m":
        return Decimal(literal), i + 1
    if suffix in ("d", "f"):
        return float(literal), i + 1
    if suffix in ("l", "u"):
        if is_real:
            raise ParseError(f"Invalid integer suffix on '{literal}'", text, i)
        # UL / LU
        j = i + 1
        if j < len(text) and text[j].lower() in ("l", "u") and text[j].lower() != suffix:
            j += 1
        return int(literal), j
    if suffix:
        raise ParseError(f"Invalid numeric literal '{text[start:i + 1]}'", text, start)
    return (float(literal) if is_real else int(literal)), i


def tokenize(text: str) -> list[Token]:
    """Tokenize an expression.

    Raises:
        ParseError: On an unexpected character or malformed literal.
    """
    tokens: list[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch.isdigit():
            value, end = _read_number(text, i)
            tokens.append(Token(TokenKind.NUMBER, value, i))
            i = end
            continue
        if ch in "\"'":
            value, end = _read_string(text, i, ch)
            tokens.append(Token(TokenKind.STRING, value, i))
            i = end
            continue
        if ch == "$" and text[i + 1:i + 2] == '"':
            parts, end = _read_interpolated(text, i)
            tokens.append(Token(TokenKind.INTERPOLATED, parts, i))
            i = end
            continue
        if ch == "@" and text[i + 1:i + 2] == '"':
            value, end = _read_verbatim_string(text, i)
            tokens.append(Token(TokenKind.STRING, value, i))
            i = end
            continue
        if ch.isalpha() or ch == "_" or (ch == "@" and i + 1 < n and (text[i + 1].isalpha() or text[i + 1] == "_")):
            j = i + 1
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            name = text[i + 1:j] if ch == "@" else text[i:j]
            tokens.append(Token(TokenKind.IDENT, name, i))
            i = j
            continue
        for op in OPERATORS:
            if text.startswith(op, i):
                tokens.append(Token(TokenKind.OP, op, i))
                i += len(op)
                break
        else:
            raise ParseError(f"Unexpected character '{ch}' at position {i}", text, i)
    tokens.append(Token(TokenKind.EOF, None, n))
    return tokens
