"""Tree-walking interpreter for compiled expression units.

Identifiers resolve in a fixed order at every level: lambda parameters,
then the variable resolver callback, then the variable context, then the
static roots. Arithmetic follows C# rules where they differ from Python's
(integer division and remainder truncate toward zero; ``+`` concatenates
when either side is a string). ``+``, ``*`` and ``Math.Pow`` are guarded by
simpleeval's size-limited helpers.

Every failure leaves :meth:`Interpreter.run` as a RuntimeEvaluationError
carrying the expression text, with the original error chained as its cause.
Security violations propagate unchanged.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from simpleeval import safe_add, safe_mult

from ..context import VariableContext, resolve_index, resolve_member
from ..errors import (
    DollarSignError,
    MissingVariableError,
    RuntimeEvaluationError,
    SecurityViolationError,
    VariableResolverError,
)
from ..formatting import to_display_string
from .builtins import CallContext, StaticRoot, invoke_method
from .compiler import CompiledUnit
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
from .ternary import to_bool

logger = logging.getLogger(__name__)


class EvaluationCancelled(RuntimeError):
    """Raised inside a worker when its cancellation event is set."""


def call_resolver(resolver: Callable[[str], Any], text: str, strict: bool = False) -> Any:
    """Consult the variable resolver callback for *text*.

    A failing callback counts as "no answer" and resolution continues,
    unless strict access is set.

    Raises:
        VariableResolverError: If the callback fails and *strict* is set.
    """
    try:
        return resolver(text)
    except Exception as e:
        if strict:
            raise VariableResolverError(
                f"Variable resolver failed for '{text}': {e}", text
            ) from e
        logger.debug(f"Variable resolver failed for '{text}', falling through: {e}")
        return None


class Scope:
    """Identifier lookup for one evaluation (plus nested lambda frames)."""

    def __init__(
        self,
        context: VariableContext,
        statics: Mapping[str, StaticRoot],
        resolver: Callable[[str], Any] | None = None,
        bindings: dict[str, Any] | None = None,
        parent: Scope | None = None,
        strict: bool = False,
    ) -> None:
        self.context = context
        self.statics = statics
        self.resolver = resolver
        self.bindings = bindings or {}
        self.parent = parent
        self.strict = strict

    def child(self, bindings: dict[str, Any]) -> Scope:
        return Scope(self.context, self.statics, self.resolver, bindings, self, self.strict)

    def lookup(self, name: str) -> Any:
        """Resolve *name*.

        Raises:
            MissingVariableError: If nothing resolves the name.
            VariableResolverError: If the resolver fails under strict access.
        """
        frame: Scope | None = self
        while frame is not None:
            if name in frame.bindings:
                return frame.bindings[name]
            frame = frame.parent
        if self.resolver is not None:
            resolved = call_resolver(self.resolver, name, self.strict)
            if resolved is not None:
                return resolved
        found, value = self.context.lookup(name)
        if found:
            return value
        if name in self.statics:
            return self.statics[name]
        raise MissingVariableError(name, self.context.names)


class Closure:
    """A lambda bound to the scope it was created in."""

    def __init__(self, node: Lambda, scope: Scope, interpreter: Interpreter,
                 cancel_event: threading.Event | None) -> None:
        self.node = node
        self.scope = scope
        self.interpreter = interpreter
        self.cancel_event = cancel_event

    @property
    def arity(self) -> int:
        return len(self.node.params)

    def __call__(self, *args: Any) -> Any:
        if len(args) < len(self.node.params):
            raise TypeError(
                f"Lambda expects {len(self.node.params)} argument(s), got {len(args)}"
            )
        bindings = dict(zip(self.node.params, args))
        return self.interpreter.visit(self.node.body, self.scope.child(bindings), self.cancel_event)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _align_numeric(left: Any, right: Any) -> tuple[Any, Any]:
    """Promote float operands to Decimal when mixed with Decimal."""
    if isinstance(left, Decimal) and isinstance(right, float):
        return left, Decimal(repr(right))
    if isinstance(right, Decimal) and isinstance(left, float):
        return Decimal(repr(left)), right
    return left, right


def _divide(left: Any, right: Any) -> Any:
    if _is_int(left) and _is_int(right):
        if right == 0:
            raise ZeroDivisionError("Attempted to divide by zero")
        quotient = abs(left) // abs(right)
        return quotient if (left >= 0) == (right >= 0) else -quotient
    if isinstance(left, float) or isinstance(right, float):
        if right == 0:
            if left == 0 or (isinstance(left, float) and math.isnan(left)):
                return math.nan
            return math.inf if left > 0 else -math.inf
    return left / right


def _remainder(left: Any, right: Any) -> Any:
    if _is_int(left) and _is_int(right):
        if right == 0:
            raise ZeroDivisionError("Attempted to divide by zero")
        return left - right * _divide(left, right)
    if isinstance(left, Decimal) or isinstance(right, Decimal):
        return Decimal(left) % Decimal(right)
    return math.fmod(left, right)


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if left is None or right is None:
        return False
    if isinstance(left, bool) != isinstance(right, bool):
        raise TypeError(
            f"Operator '{op}' cannot be applied to {type(left).__name__} and {type(right).__name__}"
        )
    left, right = _align_numeric(left, right)
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


def _cast(type_name: str, value: Any) -> Any:
    if value is None:
        if type_name in ("string", "object"):
            return None
        raise TypeError(f"Cannot convert null to {type_name}")
    if type_name in ("int", "long", "short", "byte"):
        if isinstance(value, str):
            raise TypeError(f"Cannot convert type 'string' to '{type_name}'")
        return int(value)
    if type_name in ("double", "float"):
        return float(value)
    if type_name == "decimal":
        return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    if type_name == "bool":
        if not isinstance(value, bool):
            raise TypeError(f"Cannot convert type '{type(value).__name__}' to 'bool'")
        return value
    if type_name == "string":
        if not isinstance(value, str):
            raise TypeError(f"Cannot convert type '{type(value).__name__}' to 'string'")
        return value
    return value


class Interpreter:
    """Evaluates CompiledUnit trees against a Scope.

    Holds per-run state; create one per evaluation.
    """

    def __init__(self, call_context: CallContext) -> None:
        self.ctx = call_context
        self._expression = ""

    def run(self, unit: CompiledUnit, scope: Scope,
            cancel_event: threading.Event | None = None) -> Any:
        """Evaluate *unit*.

        Raises:
            RuntimeEvaluationError: On any evaluation failure (cause chained).
            SecurityViolationError: If a disallowed member is touched.
        """
        self._expression = unit.text
        try:
            return self.visit(unit.tree, scope, cancel_event)
        except SecurityViolationError:
            raise
        except RuntimeEvaluationError:
            raise
        except Exception as e:
            detail = e.message if isinstance(e, DollarSignError) else str(e)
            raise RuntimeEvaluationError(
                f"Error evaluating '{unit.text}': {type(e).__name__}: {detail}", unit.text
            ) from e

    def visit(self, node: Node, scope: Scope, cancel_event: threading.Event | None) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            raise EvaluationCancelled(f"Evaluation of '{self._expression}' was cancelled")

        if isinstance(node, Constant):
            return node.value
        if isinstance(node, Name):
            return scope.lookup(node.id)
        if isinstance(node, Member):
            target = self.visit(node.target, scope, cancel_event)
            if target is None and node.null_conditional:
                return None
            if isinstance(target, StaticRoot):
                return target.get_member(node.name)
            return resolve_member(target, node.name, self.ctx.strict_parameter_access, self._expression)
        if isinstance(node, Index):
            return self._index(node, scope, cancel_event)
        if isinstance(node, Call):
            return self._call(node, scope, cancel_event)
        if isinstance(node, Binary):
            return self._binary(node, scope, cancel_event)
        if isinstance(node, Unary):
            return self._unary(node.op, self.visit(node.operand, scope, cancel_event))
        if isinstance(node, Conditional):
            if to_bool(self.visit(node.test, scope, cancel_event)):
                return self.visit(node.body, scope, cancel_event)
            return self.visit(node.orelse, scope, cancel_event)
        if isinstance(node, Coalesce):
            return self._coalesce(node, scope, cancel_event)
        if isinstance(node, Lambda):
            return Closure(node, scope, self, cancel_event)
        if isinstance(node, Cast):
            return _cast(node.type_name, self.visit(node.operand, scope, cancel_event))
        if isinstance(node, Interpolated):
            return self._interpolated(node, scope, cancel_event)
        if isinstance(node, FromEnd):
            raise TypeError("'^' index is only valid inside an indexer")
        raise TypeError(f"Unsupported node {type(node).__name__}")

    def _coalesce(self, node: Coalesce, scope: Scope, cancel_event: threading.Event | None) -> Any:
        current: Node = node
        while isinstance(current, Coalesce):
            left = self.visit(current.left, scope, cancel_event)
            if left is not None:
                return left
            current = current.right
        return self.visit(current, scope, cancel_event)

    def _index(self, node: Index, scope: Scope, cancel_event: threading.Event | None) -> Any:
        target = self.visit(node.target, scope, cancel_event)
        if target is None and node.null_conditional:
            return None
        from_end = isinstance(node.index, FromEnd)
        index_node = node.index.operand if isinstance(node.index, FromEnd) else node.index
        index = self.visit(index_node, scope, cancel_event)
        return resolve_index(target, index, from_end, self.ctx.strict_parameter_access, self._expression)

    def _call(self, node: Call, scope: Scope, cancel_event: threading.Event | None) -> Any:
        func = node.func
        if isinstance(func, Name) and func.id == "nameof":
            arg = node.args[0]
            return arg.id if isinstance(arg, Name) else arg.name
        args = [self.visit(arg, scope, cancel_event) for arg in node.args]
        if isinstance(func, Member):
            target = self.visit(func.target, scope, cancel_event)
            if target is None and func.null_conditional:
                return None
            return invoke_method(target, func.name, args, self.ctx)
        callee = self.visit(func, scope, cancel_event)
        if not callable(callee):
            raise TypeError(f"'{type(callee).__name__}' object is not callable")
        return callee(*args)

    def _binary(self, node: Binary, scope: Scope, cancel_event: threading.Event | None) -> Any:
        # Operator chains parse left-deep; walk the spine iteratively
        spine: list[Binary] = []
        current: Node = node
        while isinstance(current, Binary):
            spine.append(current)
            current = current.left
        value = self.visit(current, scope, cancel_event)
        for link in reversed(spine):
            if cancel_event is not None and cancel_event.is_set():
                raise EvaluationCancelled(f"Evaluation of '{self._expression}' was cancelled")
            value = self._apply(link, value, scope, cancel_event)
        return value

    def _apply(self, node: Binary, left: Any, scope: Scope,
               cancel_event: threading.Event | None) -> Any:
        op = node.op
        if op == "&&":
            return to_bool(left) and to_bool(self.visit(node.right, scope, cancel_event))
        if op == "||":
            return to_bool(left) or to_bool(self.visit(node.right, scope, cancel_event))
        right = self.visit(node.right, scope, cancel_event)
        if op in ("==", "!=", "<", ">", "<=", ">="):
            return _compare(op, left, right)
        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return to_display_string(left, self.ctx.culture) + to_display_string(right, self.ctx.culture)
        if left is None or right is None:
            # Lifted arithmetic on null yields null
            return None
        left, right = _align_numeric(left, right)
        if op == "+":
            return safe_add(left, right)
        if op == "-":
            return left - right
        if op == "*":
            return safe_mult(left, right)
        if op == "/":
            return _divide(left, right)
        if op == "%":
            return _remainder(left, right)
        raise TypeError(f"Unsupported operator '{op}'")

    @staticmethod
    def _unary(op: str, value: Any) -> Any:
        if op == "!":
            return not to_bool(value)
        if value is None:
            return None
        if op == "-":
            return -value
        return +value

    def _interpolated(self, node: Interpolated, scope: Scope,
                      cancel_event: threading.Event | None) -> str:
        out: list[str] = []
        for part in node.parts:
            if isinstance(part, Hole):
                value = self.visit(part.expression, scope, cancel_event)
                out.append(self.ctx.applier.format(
                    value, part.alignment, part.format_specifier, self.ctx.culture,
                    throw_on_error=self.ctx.throw_on_error,
                ))
            else:
                out.append(part)
        return "".join(out)
