"""DollarSign: runtime string interpolation for templates built at runtime.

Usage:
    from dollarsign import DollarSignEngine

    engine = DollarSignEngine()
    await engine.eval_async("Hello {name}!", {"name": "World"})
"""

from .config import get_options, load_options, reset_options, set_options
from .config_schema import DollarSignOptions, SecurityLevel
from .engine import (
    DollarSignEngine,
    clear_cache,
    eval_async,
    evaluate_async,
    get_metrics,
    shared_engine,
)
from .errors import (
    CompilationError,
    DollarSignError,
    EngineDisposedError,
    ErrorCategory,
    ErrorCode,
    EvaluationTimeoutError,
    FormatError,
    MissingMemberError,
    MissingVariableError,
    ParseError,
    RuntimeEvaluationError,
    SecurityViolationError,
    VariableResolverError,
)
from .evaluation.cache import CacheMetrics
from .security import SecurityValidator

__version__ = "1.0.0"

__all__ = [
    "CacheMetrics",
    "CompilationError",
    "DollarSignEngine",
    "DollarSignError",
    "DollarSignOptions",
    "EngineDisposedError",
    "ErrorCategory",
    "ErrorCode",
    "EvaluationTimeoutError",
    "FormatError",
    "MissingMemberError",
    "MissingVariableError",
    "ParseError",
    "RuntimeEvaluationError",
    "SecurityLevel",
    "SecurityValidator",
    "SecurityViolationError",
    "VariableResolverError",
    "clear_cache",
    "eval_async",
    "evaluate_async",
    "get_metrics",
    "get_options",
    "load_options",
    "reset_options",
    "set_options",
    "shared_engine",
]
