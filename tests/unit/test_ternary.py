"""Unit tests for ternary splitting and boolean coercion."""

from __future__ import annotations

from decimal import Decimal

import pytest

from dollarsign.evaluation.ternary import split_ternary, to_bool


class TestSplitTernary:
    """Tests for top-level ternary detection."""

    def test_simple(self) -> None:
        assert split_ternary("a ? b : c") == ("a", "b", "c")

    def test_nested_in_false_branch(self) -> None:
        assert split_ternary('score>=90?"A":score>=80?"B":"C"') == (
            "score>=90", '"A"', 'score>=80?"B":"C"'
        )

    def test_nested_in_true_branch(self) -> None:
        assert split_ternary("a ? b ? 1 : 2 : 3") == ("a", "b ? 1 : 2", "3")

    def test_parenthesized_is_not_top_level(self) -> None:
        assert split_ternary("(a ? b : c)") is None

    def test_coalesce_and_null_conditional_ignored(self) -> None:
        assert split_ternary("a ?? b") is None
        assert split_ternary("a?.b") is None
        assert split_ternary("a?[0]") is None

    def test_coalesce_inside_condition(self) -> None:
        assert split_ternary("a ?? b ? 1 : 2") == ("a ?? b", "1", "2")

    def test_quoted_operators_ignored(self) -> None:
        assert split_ternary('x == "?" ? ":" : "-"') == ('x == "?"', '":"', '"-"')

    def test_incomplete(self) -> None:
        assert split_ternary("a ? b") is None
        assert split_ternary("? b : c") is None


class TestToBool:
    """Tests for condition coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, True),
            (None, False),
            (0, False),
            (2, True),
            (0.0, False),
            (Decimal("0.1"), True),
            ("false", False),
            ("TRUE", True),
            ("", False),
            ("text", True),
            ([], False),
            ([0], True),
            (object(), True),
        ],
    )
    def test_coercion(self, value: object, expected: bool) -> None:
        assert to_bool(value) is expected
