"""Unit tests for expression security validation.

Verifies both the level hierarchy and the baseline blocklists.
"""

from __future__ import annotations

import pytest

from dollarsign.config_schema import SecurityLevel
from dollarsign.errors import SecurityViolationError
from dollarsign.security import MAX_EXPRESSION_LENGTH, SecurityValidator

ALL_LEVELS = [SecurityLevel.STRICT, SecurityLevel.MODERATE, SecurityLevel.PERMISSIVE]


@pytest.fixture
def validator() -> SecurityValidator:
    return SecurityValidator()


class TestBaseline:
    """Checks applied at every level."""

    @pytest.mark.parametrize("level", ALL_LEVELS)
    @pytest.mark.parametrize(
        "expression",
        [
            'File.ReadAllText("a.txt")',
            "System.IO.Directory",
            'Process.Start("cmd")',
            "__import__('os')",
            'open("f")',
            "eval(x)",
            "os.system(cmd)",
            "Environment.Exit(1)",
            "while (true) x",
            "Assembly.Load(bytes)",
        ],
    )
    def test_dangerous_expressions_blocked(self, validator: SecurityValidator,
                                           expression: str, level: SecurityLevel) -> None:
        """Blocklisted keywords and patterns are rejected everywhere."""
        assert validator.is_safe(expression, level) is False

    @pytest.mark.parametrize(
        "expression",
        ["order.Path", "important > 0", "reopen(x)", "profile.Name", "items.Count"],
    )
    def test_keyword_lookalikes_allowed(self, validator: SecurityValidator, expression: str) -> None:
        """Keywords only match where an expression root could start."""
        assert validator.check(expression, SecurityLevel.PERMISSIVE) is None

    def test_nesting_depth(self, validator: SecurityValidator) -> None:
        shallow = "(" * 20 + "1" + ")" * 20
        deep = "(" * 21 + "1" + ")" * 21
        assert validator.is_safe(shallow, SecurityLevel.PERMISSIVE)
        assert not validator.is_safe(deep, SecurityLevel.PERMISSIVE)

    def test_custom_limits(self) -> None:
        validator = SecurityValidator(max_depth=1, max_length=5)
        assert validator.check("((1))", SecurityLevel.PERMISSIVE) is not None
        assert "length" in validator.check("a + bb", SecurityLevel.PERMISSIVE)

    def test_length_limit(self, validator: SecurityValidator) -> None:
        text = "a" * (MAX_EXPRESSION_LENGTH + 1)
        assert "length" in validator.check(text, SecurityLevel.PERMISSIVE)

    def test_empty_is_safe(self, validator: SecurityValidator) -> None:
        assert validator.check("   ") is None

    @pytest.mark.parametrize("level", ALL_LEVELS)
    def test_validate_limits(self, validator: SecurityValidator, level: SecurityLevel) -> None:
        long_ternary = "true ? " + "+".join(["1"] * 3000) + " : 0"
        with pytest.raises(SecurityViolationError, match="length"):
            validator.validate_limits(long_ternary, level)
        with pytest.raises(SecurityViolationError, match="nesting depth"):
            validator.validate_limits("(" * 21 + "1" + ")" * 21, level)
        validator.validate_limits("a.b[0] + 1 > 2 ? 'x' : 'y'", level)

    def test_validate_limits_ignores_blocklists(self, validator: SecurityValidator) -> None:
        validator.validate_limits("x.GetType()", SecurityLevel.STRICT)


class TestLevels:
    """STRICT ⊂ MODERATE ⊂ PERMISSIVE."""

    def test_arithmetic_everywhere(self, validator: SecurityValidator) -> None:
        for level in ALL_LEVELS:
            assert validator.is_safe("a.b[0] + 1 > 2 ? 'x' : 'y'", level)

    def test_strict_blocks_calls_and_lambdas(self, validator: SecurityValidator) -> None:
        assert "method calls" in validator.check("items.Count()", SecurityLevel.STRICT)
        assert "lambda" in validator.check("x => x > 1", SecurityLevel.STRICT)
        assert validator.is_safe("items.Count()", SecurityLevel.MODERATE)

    def test_strict_allows_grouping_parens(self, validator: SecurityValidator) -> None:
        assert validator.is_safe("(a + b) * 2", SecurityLevel.STRICT)

    def test_moderate_blocks_reflection(self, validator: SecurityValidator) -> None:
        for expression in ("x.GetType()", "nameof(x)", "typeof(int)"):
            assert not validator.is_safe(expression, SecurityLevel.MODERATE)
            assert validator.is_safe(expression, SecurityLevel.PERMISSIVE)

    def test_validate_raises_with_level(self, validator: SecurityValidator) -> None:
        with pytest.raises(SecurityViolationError) as exc_info:
            validator.validate("nameof(x)", SecurityLevel.STRICT)
        assert exc_info.value.level == "strict"
        assert exc_info.value.expression == "nameof(x)"

    def test_validate_passes_safe_text(self, validator: SecurityValidator) -> None:
        validator.validate("a + 1", SecurityLevel.STRICT)
