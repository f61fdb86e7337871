"""DollarSign engine: runtime template interpolation.

A template such as ``"Hello {user.Name}, total {order.Total:C2}"`` is scanned
into literal text and expression slots. Each slot is resolved in a fixed
order, formatted, and substituted back in encounter order.

The whole slot text is first checked against the security length and
nesting limits. Resolution order (applied to a slot and, recursively, to
ternary parts):
    1. empty text -> ""
    2. variable_resolver(text); a non-None result wins
    3. fast path for plain member paths (``user.Address.City``, ``items[^1]``)
    4. top-level ternary: evaluate the condition, then only the chosen branch
    5. full evaluator: security validation, compiled-unit cache, interpreter
       run in a worker thread under the configured timeout

Usage:
    from dollarsign import DollarSignEngine, DollarSignOptions

    with DollarSignEngine() as engine:
        text = await engine.eval_async("{name,-10}|{score:N1}", {"name": "Ana", "score": 9.25})
        value = await engine.evaluate_async("items.Where(i => i.Price > 10).Count()", data)

    # Shared instance (explicit opt-in)
    from dollarsign import engine
    await engine.eval_async("{x}", {"x": 1})
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any

from .config import get_options
from .config_schema import DollarSignOptions, SecurityLevel
from .context import CaseInsensitiveDict, VariableContext
from .errors import (
    CompilationError,
    DollarSignError,
    EngineDisposedError,
    EvaluationTimeoutError,
    MissingMemberError,
    MissingVariableError,
    RuntimeEvaluationError,
    SecurityViolationError,
    VariableResolverError,
    caused_by,
)
from .evaluation.builtins import CallContext, build_static_roots
from .evaluation.cache import CacheMetrics, ExpressionCache
from .evaluation.compiler import CompiledUnit, compile_expression, normalize
from .evaluation.fast_path import ExpressionClassifier, FastPathResolver
from .evaluation.interpreter import Interpreter, Scope, call_resolver
from .evaluation.ternary import split_ternary, to_bool
from .formatting import FormatApplier
from .log import trace
from .parsing import ExpressionSlot, scan, unescape
from .security import SecurityValidator

logger = logging.getLogger(__name__)

SIMPLE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Errors that are never converted into an empty substitution
_ALWAYS_PROPAGATE = (SecurityViolationError, EvaluationTimeoutError, EngineDisposedError)


@dataclass
class _CallState:
    """Everything one eval/evaluate call needs; never shared between calls."""

    options: DollarSignOptions
    context: VariableContext
    scope: Scope
    fast_path: FastPathResolver
    call_context: CallContext


class DollarSignEngine:
    """Evaluates templates and expressions against host variables.

    One engine owns one compiled-unit cache and one security validator.
    Engines are safe to share between concurrent calls; dispose() releases
    the cache sweep timer, after which every call raises EngineDisposedError.

    Args:
        options: Engine defaults (per-call options override them). Defaults
            to the process options from config/config.yaml.
        validator: Security validator (default: a new SecurityValidator)
    """

    def __init__(
        self,
        options: DollarSignOptions | None = None,
        validator: SecurityValidator | None = None,
    ) -> None:
        self.options = options if options is not None else get_options()
        self._validator = validator if validator is not None else SecurityValidator()
        self._cache: ExpressionCache[CompiledUnit] = ExpressionCache(
            max_size=self.options.cache_size,
            ttl_seconds=self.options.cache_ttl_seconds,
        )
        self._applier = FormatApplier()
        self._roots: dict[tuple[str, ...], CaseInsensitiveDict] = {}
        self._roots_lock = threading.Lock()
        self._disposed = False

    # -- lifecycle -----------------------------------------------------------

    def __enter__(self) -> DollarSignEngine:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    async def __aenter__(self) -> DollarSignEngine:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.dispose()

    def dispose(self) -> None:
        """Stop background work and drop cached units. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._cache.dispose()
        logger.debug("Engine disposed")

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _check_disposed(self) -> None:
        if self._disposed:
            raise EngineDisposedError("DollarSignEngine has been disposed")

    # -- public API ----------------------------------------------------------

    async def eval_async(
        self,
        template: str,
        variables: Any = None,
        options: DollarSignOptions | dict[str, Any] | None = None,
    ) -> str:
        """Interpolate every slot of *template*.

        Args:
            template: Template text
            variables: Mapping, dataclass, pydantic model, namedtuple or object
            options: Per-call options (a dict overrides individual engine defaults)

        Returns:
            The rendered text

        Raises:
            SecurityViolationError: If a slot is rejected by validation.
            EvaluationTimeoutError: If a slot exceeds the timeout.
            DollarSignError: For other failures when the options say to throw.
        """
        self._check_disposed()
        if not template:
            return ""
        opts = self._resolve_options(options)
        segments = scan(template, opts.support_dollar_sign_syntax)
        if not any(isinstance(s, ExpressionSlot) for s in segments):
            return unescape("".join(s.text for s in segments))

        state = self._new_state(variables, opts)
        parts: list[str] = []
        for segment in segments:
            if isinstance(segment, ExpressionSlot):
                parts.append(await self._render_slot(segment, state))
            else:
                parts.append(segment.text)
        result = unescape("".join(parts))
        trace(logger, opts, f"Rendered template ({len(segments)} segments) -> {result!r}")
        return result

    async def evaluate_async(
        self,
        expression: str,
        variables: Any = None,
        options: DollarSignOptions | dict[str, Any] | None = None,
    ) -> Any:
        """Evaluate a single expression and return its raw value.

        Returns:
            The value, the error handler's substitution, or None when an
            error is suppressed by the options.
        """
        self._check_disposed()
        opts = self._resolve_options(options)
        state = self._new_state(variables, opts)
        try:
            self._validator.validate_limits(expression, opts.security_level)
            return await self._resolve(expression, state)
        except Exception as e:
            return self._handle_error(expression, e, opts)

    async def eval_many_async(
        self,
        templates: dict[str, str],
        variables: Any = None,
        options: DollarSignOptions | dict[str, Any] | None = None,
    ) -> dict[str, str]:
        """Render several templates concurrently; results keep the input keys."""
        self._check_disposed()
        keys = list(templates)
        results = await asyncio.gather(
            *(self.eval_async(templates[key], variables, options) for key in keys)
        )
        return dict(zip(keys, results))

    def eval(self, template: str, variables: Any = None,
             options: DollarSignOptions | dict[str, Any] | None = None) -> str:
        """Synchronous eval_async; must not be called from a running event loop."""
        return asyncio.run(self.eval_async(template, variables, options))

    def evaluate(self, expression: str, variables: Any = None,
                 options: DollarSignOptions | dict[str, Any] | None = None) -> Any:
        """Synchronous evaluate_async; must not be called from a running event loop."""
        return asyncio.run(self.evaluate_async(expression, variables, options))

    def validate_expression(self, expression: str, level: SecurityLevel | None = None) -> bool:
        """Check *expression* against the security validator without evaluating it."""
        self._check_disposed()
        return self._validator.is_safe(expression, level or self.options.security_level)

    def clear_cache(self) -> None:
        """Drop all compiled units and reset cache metrics."""
        self._check_disposed()
        self._cache.clear()
        logger.debug("Expression cache cleared")

    def get_metrics(self) -> CacheMetrics:
        self._check_disposed()
        return self._cache.metrics()

    # -- internals -----------------------------------------------------------

    def _resolve_options(self, options: DollarSignOptions | dict[str, Any] | None) -> DollarSignOptions:
        if options is None:
            return self.options
        if isinstance(options, DollarSignOptions):
            return options
        overrides = DollarSignOptions.model_validate(options)
        return self.options.model_copy(
            update={name: getattr(overrides, name) for name in overrides.model_fields_set}
        )

    def _static_roots(self, namespaces: list[str]) -> CaseInsensitiveDict:
        key = tuple(namespaces)
        with self._roots_lock:
            roots = self._roots.get(key)
        if roots is not None:
            return roots
        try:
            roots = build_static_roots(namespaces)
        except ImportError as e:
            raise CompilationError(f"Cannot import namespace: {e}") from e
        with self._roots_lock:
            self._roots[key] = roots
        return roots

    def _new_state(self, variables: Any, opts: DollarSignOptions) -> _CallState:
        context = VariableContext.build(variables, opts.global_data)
        statics = self._static_roots(opts.additional_namespaces)
        scope = Scope(context, statics, opts.variable_resolver, strict=opts.strict_parameter_access)
        classifier = ExpressionClassifier(statics.keys())
        culture = opts.culture_info
        call_context = CallContext(
            culture=culture,
            applier=self._applier,
            throw_on_error=opts.throw_on_error,
            strict_parameter_access=opts.strict_parameter_access,
        )
        trace(logger, opts, f"Context built: {context.names} (shape {context.shape_id})")
        return _CallState(
            options=opts,
            context=context,
            scope=scope,
            fast_path=FastPathResolver(classifier, strict=opts.strict_parameter_access),
            call_context=call_context,
        )

    async def _render_slot(self, slot: ExpressionSlot, state: _CallState) -> str:
        opts = state.options
        descriptor = slot.descriptor
        try:
            self._validator.validate_limits(descriptor.raw_text, opts.security_level)
            value = await self._resolve(descriptor.raw_text, state)
            return self._applier.format(
                value,
                descriptor.alignment,
                descriptor.format_specifier,
                state.call_context.culture,
                throw_on_error=opts.throw_on_error,
            )
        except Exception as e:
            substitution = self._handle_error(descriptor.raw_text, e, opts)
            return "" if substitution is None else str(substitution)

    async def _resolve(self, text: str, state: _CallState) -> Any:
        opts = state.options
        expression = text.strip()
        # Each pass resolves the text or narrows it to the selected ternary branch
        while True:
            if not expression:
                return ""

            if opts.variable_resolver is not None:
                resolved = call_resolver(
                    opts.variable_resolver, expression, opts.strict_parameter_access
                )
                if resolved is not None:
                    trace(logger, opts, f"Resolver supplied '{expression}'")
                    return resolved

            handled, value = state.fast_path.try_resolve(expression, state.scope)
            if handled:
                return value

            ternary = split_ternary(expression)
            if ternary is None:
                return await self._evaluate_full(expression, state)
            condition, when_true, when_false = ternary
            chosen = when_true if to_bool(await self._resolve(condition, state)) else when_false
            trace(logger, opts, f"Ternary '{condition}' selected '{chosen}'")
            expression = chosen.strip()

    def _compile(self, expression: str, state: _CallState) -> CompiledUnit:
        shape_id = state.context.shape_id
        names = state.context.names

        def factory() -> CompiledUnit:
            return compile_expression(expression, shape_id, names)

        if not state.options.use_cache:
            return factory()
        return self._cache.get_or_create((shape_id, normalize(expression)), factory)

    async def _evaluate_full(self, expression: str, state: _CallState) -> Any:
        opts = state.options
        self._validator.validate(expression, opts.security_level)
        unit = self._compile(expression, state)

        cancel_event = threading.Event()
        interpreter = Interpreter(state.call_context)
        timeout = opts.timeout_ms / 1000
        try:
            value = await asyncio.wait_for(
                asyncio.to_thread(interpreter.run, unit, state.scope, cancel_event),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            cancel_event.set()
            logger.warning(f"Expression timed out after {opts.timeout_ms}ms: {expression}")
            raise EvaluationTimeoutError(expression, opts.timeout_ms) from None
        trace(logger, opts, f"Evaluated '{expression}' -> {value!r}")
        return value

    def _handle_error(self, expression: str, error: Exception, opts: DollarSignOptions) -> Any:
        """Apply the error policy; return a substitution or None, or raise.

        Policy, in order: error_handler text wins; security, timeout and
        disposal errors always raise; with throw_on_error everything raises;
        under strict_parameter_access a missing member or a failing resolver
        raises; a missing variable raises under throw_on_missing_parameter
        (or, for a bare identifier, when undefined identifiers are not
        treated as empty); anything else is suppressed.
        """
        if opts.error_handler is not None:
            substitution = opts.error_handler(expression, error)
            if substitution is not None:
                trace(logger, opts, f"Error handler substituted '{expression}'")
                return substitution

        if isinstance(error, _ALWAYS_PROPAGATE):
            raise error
        if opts.throw_on_error:
            self._raise_typed(expression, error)

        if opts.strict_parameter_access and (
            caused_by(error, MissingMemberError) or caused_by(error, VariableResolverError)
        ):
            self._raise_typed(expression, error)

        if caused_by(error, MissingVariableError):
            bare = SIMPLE_IDENTIFIER.match(expression.strip()) is not None
            if opts.throw_on_missing_parameter or (
                bare and not opts.treat_undefined_variables_in_simple_expressions_as_empty
            ):
                self._raise_typed(expression, error)

        logger.debug(f"Suppressed error in '{expression}': {type(error).__name__}: {error}")
        return None

    @staticmethod
    def _raise_typed(expression: str, error: Exception) -> None:
        if isinstance(error, DollarSignError):
            raise error
        raise RuntimeEvaluationError(
            f"Error evaluating expression '{expression}': {error}", expression
        ) from error


# =============================================================================
# SHARED INSTANCE
# =============================================================================

_shared: DollarSignEngine | None = None
_shared_lock = threading.Lock()


def shared_engine() -> DollarSignEngine:
    """Return the process-wide engine, creating it on first use (or after disposal)."""
    global _shared
    with _shared_lock:
        if _shared is None or _shared.disposed:
            _shared = DollarSignEngine()
        return _shared


async def eval_async(template: str, variables: Any = None,
                     options: DollarSignOptions | dict[str, Any] | None = None) -> str:
    return await shared_engine().eval_async(template, variables, options)


async def evaluate_async(expression: str, variables: Any = None,
                         options: DollarSignOptions | dict[str, Any] | None = None) -> Any:
    return await shared_engine().evaluate_async(expression, variables, options)


def clear_cache() -> None:
    shared_engine().clear_cache()


def get_metrics() -> CacheMetrics:
    return shared_engine().get_metrics()
