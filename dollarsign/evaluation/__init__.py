"""Expression compilation, caching and evaluation."""

from .cache import CacheMetrics, ExpressionCache
from .compiler import CompiledUnit, compile_expression, normalize
from .fast_path import ExpressionClassifier, FastPathResolver
from .interpreter import Interpreter, Scope
from .parser import parse
from .ternary import split_ternary, to_bool

__all__ = [
    "CacheMetrics",
    "CompiledUnit",
    "ExpressionCache",
    "ExpressionClassifier",
    "FastPathResolver",
    "Interpreter",
    "Scope",
    "compile_expression",
    "normalize",
    "parse",
    "split_ternary",
    "to_bool",
]
