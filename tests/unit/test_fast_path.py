"""Unit tests for fast-path classification and resolution."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from dollarsign.context import VariableContext
from dollarsign.errors import MissingMemberError, MissingVariableError
from dollarsign.evaluation.builtins import build_static_roots
from dollarsign.evaluation.fast_path import ExpressionClassifier, FastPathResolver
from dollarsign.evaluation.interpreter import Scope


@dataclass
class Address:
    City: str


@dataclass
class Customer:
    Name: str
    Address: Address | None


STATICS = build_static_roots()


def make_scope(variables: dict, resolver=None) -> Scope:
    return Scope(VariableContext.build(variables), STATICS, resolver)


@pytest.fixture
def classifier() -> ExpressionClassifier:
    return ExpressionClassifier(STATICS.keys())


class TestClassifier:
    """Tests for fast-path eligibility."""

    @pytest.mark.parametrize(
        "text",
        ["name", "user.Address.City", "items[^1]", "items[ 0 ]", 'map["key"]', "map['a b'].x"],
    )
    def test_paths_qualify(self, classifier: ExpressionClassifier, text: str) -> None:
        assert classifier.is_fast_path(text)

    @pytest.mark.parametrize(
        "text",
        ["a + b", "Math.PI", "math.pi", "true", "null", "x.Count()", "items[i]", "a ? b : c", "1"],
    )
    def test_other_expressions_do_not(self, classifier: ExpressionClassifier, text: str) -> None:
        assert not classifier.is_fast_path(text)


class TestResolver:
    """Tests for walking member paths."""

    def setup_method(self) -> None:
        self.resolver = FastPathResolver(ExpressionClassifier(STATICS.keys()))
        self.variables = {
            "customer": Customer("Ana", Address("Paris")),
            "nobody": Customer("Bo", None),
            "items": [1, 2, 3],
            "settings": {"Max Items": 10},
        }

    def test_case_insensitive_path(self) -> None:
        assert self.resolver.try_resolve("CUSTOMER.address.city", make_scope(self.variables)) == (True, "Paris")

    def test_index_forms(self) -> None:
        scope = make_scope(self.variables)
        assert self.resolver.try_resolve("items[^1]", scope) == (True, 3)
        assert self.resolver.try_resolve("items[0]", scope) == (True, 1)
        assert self.resolver.try_resolve('settings["Max Items"]', scope) == (True, 10)

    def test_null_short_circuits(self) -> None:
        assert self.resolver.try_resolve("nobody.Address.City", make_scope(self.variables)) == (True, None)

    def test_not_handled(self) -> None:
        assert self.resolver.try_resolve("items.Count()", make_scope(self.variables)) == (False, None)

    def test_missing_root(self) -> None:
        with pytest.raises(MissingVariableError) as exc_info:
            self.resolver.try_resolve("custmer.Name", make_scope(self.variables))
        assert "customer" in str(exc_info.value)

    def test_strict_missing_member(self) -> None:
        strict = FastPathResolver(ExpressionClassifier(), strict=True)
        with pytest.raises(MissingMemberError):
            strict.try_resolve("nobody.Address.City", make_scope(self.variables))

    def test_resolver_supplies_root(self) -> None:
        scope = make_scope({}, resolver=lambda name: {"Title": "Dr"} if name == "profile" else None)
        assert self.resolver.try_resolve("profile.title", scope) == (True, "Dr")
