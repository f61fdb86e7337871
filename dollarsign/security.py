"""Expression security validation.

Every expression that reaches the full evaluator is validated first.
Violations raise SecurityViolationError and are never downgraded to an
empty substitution.

Levels:
    STRICT: baseline + only arithmetic/comparison/logical operators,
        identifiers, member/indexer access, literals and ternaries
        (no calls, no lambdas)
    MODERATE: baseline + reflection introspection blocked
        (``GetType()``, ``typeof(``, ``nameof(``, ``default(``)
    PERMISSIVE: baseline only

Baseline (all levels): keyword blocklist, dangerous-pattern blocklist,
nesting depth limit and length limit.

Usage:
    from dollarsign.security import SecurityValidator
    from dollarsign.config_schema import SecurityLevel

    validator = SecurityValidator()
    validator.is_safe("items.Count() > 0", SecurityLevel.STRICT)  # False
    validator.validate("File.ReadAllText(p)", SecurityLevel.PERMISSIVE)  # raises
"""

from __future__ import annotations

import logging
import re

from .config_schema import SecurityLevel
from .errors import ParseError, SecurityViolationError
from .evaluation.lexer import TokenKind, tokenize

logger = logging.getLogger(__name__)

MAX_NESTING_DEPTH = 20
MAX_EXPRESSION_LENGTH = 10000

BLOCKED_KEYWORDS: tuple[str, ...] = (
    # filesystem
    "System.IO", "File.", "Directory.", "FileStream", "StreamReader", "StreamWriter",
    "Path.", "DriveInfo", "FileInfo", "DirectoryInfo",
    "open(", "shutil", "pathlib", "os.", "io.",
    # process and host system
    "Process.", "ProcessStartInfo", "System.Diagnostics.Process",
    "Registry", "RegistryKey", "Microsoft.Win32",
    "Environment.", "System.Environment", "GC.",
    "subprocess", "sys.", "signal.", "exit(", "quit(",
    # reflection and dynamic loading
    "Assembly.", "Type.GetType", "Activator.CreateInstance", "AppDomain",
    "System.Reflection", "MethodInfo", "PropertyInfo", "FieldInfo",
    "import", "importlib", "builtins", "getattr(", "setattr(", "delattr(",
    "globals(", "locals(", "vars(", "inspect.",
    # threading
    "Thread.", "Task.Run", "Task.Factory", "Parallel.", "ThreadPool",
    "System.Threading", "CancellationToken", "Mutex", "Semaphore",
    "threading", "multiprocessing", "asyncio", "concurrent.",
    # network and data access
    "WebClient", "HttpClient", "WebRequest", "Socket", "TcpClient",
    "System.Net", "NetworkStream",
    "SqlConnection", "SqlCommand", "OleDbConnection", "System.Data",
    "socket", "urllib", "http.", "requests.", "sqlite3",
    # raw memory
    "Marshal.", "RuntimeHelpers", "Unsafe.", "ctypes", "mmap",
    # dynamic compilation and execution
    "CSharpCodeProvider", "CodeDomProvider", "Microsoft.CodeAnalysis",
    "Roslyn", "ScriptEngine",
    "eval(", "exec(", "compile(", "pickle", "marshal",
)

DANGEROUS_PATTERNS: tuple[str, ...] = (
    r"\busing\s+[^;]+;",
    r"\b(?:while|for)\s*\(\s*true\s*\)",
    r"\bfor\s*\(\s*;\s*;\s*\)",
    r"\bgoto\s+",
    r"__[a-zA-Z]",
    r"\bsizeof\s*\(",
    r"\bstackalloc\s+",
    r"\bfixed\s*\(",
    r"\bunsafe\s*\{",
)

MODERATE_BLOCKED: tuple[str, ...] = (
    r"\bGetType\s*\(\s*\)",
    r"\btypeof\s*\(",
    r"\bnameof\s*\(",
    r"\bdefault\s*\(",
)


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Match *keyword* at an identifier boundary, case-insensitively.

    Keywords are matched only where an expression root could start, so a
    member named like a keyword (``order.Path``) is not blocked.
    """
    body = re.escape(keyword)
    tail = "" if not keyword[-1].isalnum() else r"(?![A-Za-z0-9_])"
    return re.compile(rf"(?<![A-Za-z0-9_.]){body}{tail}", re.IGNORECASE)


class SecurityValidator:
    """Validates expression text against a SecurityLevel.

    The keyword and pattern tables are compiled once per validator and never
    mutated, so one validator may be shared by concurrent evaluations.
    """

    def __init__(self, max_depth: int = MAX_NESTING_DEPTH,
                 max_length: int = MAX_EXPRESSION_LENGTH) -> None:
        self.max_depth = max_depth
        self.max_length = max_length
        self._keywords: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
            (keyword, _keyword_pattern(keyword)) for keyword in BLOCKED_KEYWORDS
        )
        self._patterns: tuple[re.Pattern[str], ...] = tuple(
            re.compile(p, re.IGNORECASE) for p in DANGEROUS_PATTERNS
        )
        self._moderate: tuple[re.Pattern[str], ...] = tuple(
            re.compile(p, re.IGNORECASE) for p in MODERATE_BLOCKED
        )

    def check(self, text: str, level: SecurityLevel = SecurityLevel.MODERATE) -> str | None:
        """Return the reason *text* is rejected at *level*, or None if it is safe."""
        if not text or not text.strip():
            return None
        reason = self._baseline(text)
        if reason is None and level is SecurityLevel.STRICT:
            reason = self._strict(text)
        if reason is None and level is SecurityLevel.MODERATE:
            reason = self._moderate_check(text)
        return reason

    def is_safe(self, text: str, level: SecurityLevel = SecurityLevel.MODERATE) -> bool:
        reason = self.check(text, level)
        if reason is not None:
            logger.warning(f"Blocked expression at {level.value} level: {reason}")
            return False
        return True

    def validate(self, text: str, level: SecurityLevel = SecurityLevel.MODERATE) -> None:
        """Raise if *text* is not safe at *level*.

        Raises:
            SecurityViolationError: With the reason for rejection.
        """
        reason = self.check(text, level)
        if reason is not None:
            logger.warning(f"Blocked expression at {level.value} level: {reason}")
            raise SecurityViolationError(
                f"Expression rejected by security validation ({level.value}): {reason}",
                text,
                level.value,
            )

    def validate_limits(self, text: str, level: SecurityLevel = SecurityLevel.MODERATE) -> None:
        """Raise if *text* exceeds the length or nesting limits.

        These limits hold at every level and apply to the whole slot text,
        before it is split into ternary branches or resolved as a path.

        Raises:
            SecurityViolationError: With the exceeded limit.
        """
        reason = self._limits(text)
        if reason is not None:
            logger.warning(f"Blocked expression at {level.value} level: {reason}")
            raise SecurityViolationError(
                f"Expression rejected by security validation ({level.value}): {reason}",
                text,
                level.value,
            )

    # -- checks --------------------------------------------------------------

    def _limits(self, text: str) -> str | None:
        if len(text) > self.max_length:
            return f"expression exceeds maximum length of {self.max_length}"
        depth = self._nesting_depth(text)
        if depth > self.max_depth:
            return f"nesting depth {depth} exceeds maximum of {self.max_depth}"
        return None

    def _baseline(self, text: str) -> str | None:
        reason = self._limits(text)
        if reason is not None:
            return reason
        for keyword, pattern in self._keywords:
            if pattern.search(text):
                return f"dangerous keyword '{keyword}'"
        for pattern in self._patterns:
            if pattern.search(text):
                return f"dangerous pattern '{pattern.pattern}'"
        return None

    @staticmethod
    def _nesting_depth(text: str) -> int:
        depth = 0
        deepest = 0
        for ch in text:
            if ch in "([{":
                depth += 1
                deepest = max(deepest, depth)
            elif ch in ")]}":
                depth = max(0, depth - 1)
        return deepest

    @staticmethod
    def _strict(text: str) -> str | None:
        try:
            tokens = tokenize(text)
        except ParseError as e:
            return f"unparseable expression: {e.message}"
        previous = None
        for token in tokens:
            if token.is_op("=>"):
                return "lambda expressions are not allowed"
            if token.is_op("(") and previous is not None and (
                previous.kind is TokenKind.IDENT or previous.is_op(")", "]")
            ):
                return "method calls are not allowed"
            previous = token
        return None

    def _moderate_check(self, text: str) -> str | None:
        for pattern in self._moderate:
            if pattern.search(text):
                return f"reflection access '{pattern.pattern}'"
        return None
