"""Error taxonomy for template and expression evaluation.

Every failure raised by the engine derives from DollarSignError and carries a
machine-readable code and category, so callers (and error handlers) can
switch on them instead of parsing messages.

Usage:
    from dollarsign.errors import DollarSignError, ErrorCode

    try:
        await engine.eval_async("{order.Total:C}", data, options)
    except DollarSignError as e:
        if e.code == ErrorCode.SECURITY_VIOLATION:
            ...
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories for error classification.

    - SYNTAX: Template or expression could not be parsed/bound
    - SECURITY: Expression rejected by the security validator
    - RESOLUTION: Variable or member could not be resolved
    - EXECUTION: Runtime failure, timeout
    - FORMAT: Value could not be rendered with the requested specifier
    - SYSTEM: Engine lifecycle problems
    """

    SYNTAX = "syntax"
    SECURITY = "security"
    RESOLUTION = "resolution"
    EXECUTION = "execution"
    FORMAT = "format"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    PARSE_ERROR = "parse_error"
    COMPILATION_ERROR = "compilation_error"
    SECURITY_VIOLATION = "security_violation"
    MISSING_VARIABLE = "missing_variable"
    MISSING_MEMBER = "missing_member"
    RESOLVER_FAILED = "resolver_failed"
    RUNTIME_ERROR = "runtime_error"
    TIMEOUT = "timeout"
    FORMAT_ERROR = "format_error"
    DISPOSED = "disposed"


class DollarSignError(Exception):
    """Base class for all engine errors."""

    code: ErrorCode = ErrorCode.RUNTIME_ERROR
    category: ErrorCategory = ErrorCategory.EXECUTION

    def __init__(self, message: str, expression: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.expression = expression

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error": self.message,
            "code": self.code.value,
            "category": self.category.value,
        }
        if self.expression is not None:
            result["expression"] = self.expression
        if self.__cause__ is not None:
            result["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return result


class ParseError(DollarSignError):
    """Raised when an expression cannot be tokenized or parsed."""

    code = ErrorCode.PARSE_ERROR
    category = ErrorCategory.SYNTAX

    def __init__(self, message: str, expression: str | None = None, position: int | None = None) -> None:
        super().__init__(message, expression)
        self.position = position


class CompilationError(DollarSignError):
    """Raised when a parsed expression cannot be bound into a compiled unit."""

    code = ErrorCode.COMPILATION_ERROR
    category = ErrorCategory.SYNTAX


class SecurityViolationError(DollarSignError):
    """Raised when an expression is rejected at the configured security level."""

    code = ErrorCode.SECURITY_VIOLATION
    category = ErrorCategory.SECURITY

    def __init__(self, message: str, expression: str | None = None, level: str | None = None) -> None:
        super().__init__(message, expression)
        self.level = level


class MissingVariableError(DollarSignError):
    """Raised when a root identifier is not present in the variable context."""

    code = ErrorCode.MISSING_VARIABLE
    category = ErrorCategory.RESOLUTION

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = list(available or [])
        super().__init__(self._build_message(name, self.available), name)

    @staticmethod
    def _build_message(name: str, available: list[str]) -> str:
        message = f"Variable '{name}' could not be resolved."
        if not available:
            return message
        message += f" Available variables: {', '.join(available)}"
        lowered = name.lower()
        similar = [v for v in available if lowered in v.lower() or v.lower() in lowered][:3]
        if similar:
            message += f". Did you mean: {', '.join(similar)}?"
        return message


class MissingMemberError(DollarSignError):
    """Raised under strict parameter access when a member/key does not exist."""

    code = ErrorCode.MISSING_MEMBER
    category = ErrorCategory.RESOLUTION

    def __init__(self, member: str, owner: str, expression: str | None = None) -> None:
        super().__init__(f"Member '{member}' not found on {owner}", expression)
        self.member = member
        self.owner = owner


class VariableResolverError(DollarSignError):
    """Raised under strict parameter access when the variable resolver callback fails."""

    code = ErrorCode.RESOLVER_FAILED
    category = ErrorCategory.RESOLUTION


class RuntimeEvaluationError(DollarSignError):
    """Raised when evaluating an expression fails; wraps the underlying cause."""

    code = ErrorCode.RUNTIME_ERROR
    category = ErrorCategory.EXECUTION


class EvaluationTimeoutError(DollarSignError):
    """Raised when an evaluation exceeds the configured timeout."""

    code = ErrorCode.TIMEOUT
    category = ErrorCategory.EXECUTION

    def __init__(self, expression: str, timeout_ms: int) -> None:
        super().__init__(
            f"Expression execution timed out after {timeout_ms}ms: {expression}", expression
        )
        self.timeout_ms = timeout_ms


class FormatError(DollarSignError):
    """Raised when a value cannot be formatted with the requested specifier."""

    code = ErrorCode.FORMAT_ERROR
    category = ErrorCategory.FORMAT


class EngineDisposedError(DollarSignError):
    """Raised when a disposed engine or cache is used."""

    code = ErrorCode.DISPOSED
    category = ErrorCategory.SYSTEM


def root_cause(error: BaseException) -> BaseException:
    """Follow the __cause__ chain to the innermost exception."""
    current = error
    while current.__cause__ is not None:
        current = current.__cause__
    return current


def caused_by(error: BaseException, kind: type[BaseException]) -> bool:
    """Check whether *error* or anything in its cause chain is a *kind*."""
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, kind):
            return True
        current = current.__cause__
    return False
