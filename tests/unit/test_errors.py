"""Tests for the error taxonomy."""

from __future__ import annotations

from dollarsign.errors import (
    DollarSignError,
    ErrorCategory,
    ErrorCode,
    EvaluationTimeoutError,
    MissingMemberError,
    MissingVariableError,
    ParseError,
    RuntimeEvaluationError,
    SecurityViolationError,
    caused_by,
    root_cause,
)


class TestErrors:
    """Tests for codes, messages and serialization."""

    def test_codes_and_categories(self) -> None:
        assert ParseError("bad").code is ErrorCode.PARSE_ERROR
        assert ParseError("bad").category is ErrorCategory.SYNTAX
        assert SecurityViolationError("no").category is ErrorCategory.SECURITY
        assert MissingVariableError("x").category is ErrorCategory.RESOLUTION
        assert EvaluationTimeoutError("x", 5).code is ErrorCode.TIMEOUT

    def test_missing_variable_suggestions(self) -> None:
        error = MissingVariableError("use", ["user", "items"])
        assert "Available variables: user, items" in error.message
        assert "Did you mean: user?" in error.message
        assert error.expression == "use"

    def test_missing_variable_without_context(self) -> None:
        assert MissingVariableError("x").message == "Variable 'x' could not be resolved."

    def test_missing_member(self) -> None:
        error = MissingMemberError("Age", "Person", "p.Age")
        assert str(error) == "Member 'Age' not found on Person"

    def test_timeout_message(self) -> None:
        error = EvaluationTimeoutError("slow()", 100)
        assert error.timeout_ms == 100
        assert "100ms" in error.message

    def test_to_dict_includes_cause(self) -> None:
        try:
            try:
                raise KeyError("k")
            except KeyError as e:
                raise RuntimeEvaluationError("failed", "a[k]") from e
        except RuntimeEvaluationError as error:
            data = error.to_dict()
        assert data["code"] == "runtime_error"
        assert data["expression"] == "a[k]"
        assert data["cause"].startswith("KeyError")

    def test_cause_chain_helpers(self) -> None:
        inner = MissingVariableError("x")
        outer = RuntimeEvaluationError("wrapped")
        outer.__cause__ = inner
        assert caused_by(outer, MissingVariableError)
        assert not caused_by(outer, ParseError)
        assert root_cause(outer) is inner
        assert isinstance(outer, DollarSignError)
