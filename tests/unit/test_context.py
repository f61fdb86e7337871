"""Unit tests for variable contexts and member access."""

from __future__ import annotations

from collections import namedtuple
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
from pydantic import BaseModel

from dollarsign.context import (
    MISSING,
    CaseInsensitiveDict,
    IndexedSequenceAccess,
    OrderedMapAccess,
    StructuredRecordAccess,
    VariableContext,
    capability_of,
    resolve_index,
    resolve_member,
)
from dollarsign.errors import MissingMemberError, SecurityViolationError

Point = namedtuple("Point", ["X", "Y"])


@dataclass
class Product:
    Name: str
    Price: float


class Customer(BaseModel):
    name: str
    tier: int = 1


class Account:
    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._secret = "hidden"

    @property
    def Label(self) -> str:
        return f"acct:{self.owner}"


class TestCaseInsensitiveDict:
    """Tests for the case-insensitive map."""

    def test_lookup_ignores_case(self) -> None:
        d = CaseInsensitiveDict({"UserName": "ana"})
        assert d["username"] == "ana"
        assert "USERNAME" in d

    def test_first_spelling_kept(self) -> None:
        d = CaseInsensitiveDict({"Name": 1})
        d["NAME"] = 2
        assert list(d) == ["Name"]
        assert d["name"] == 2

    def test_delete_and_len(self) -> None:
        d = CaseInsensitiveDict({"a": 1, "B": 2})
        del d["b"]
        assert len(d) == 1

    def test_non_string_contains(self) -> None:
        assert 1 not in CaseInsensitiveDict({"a": 1})


class TestCapability:
    """Tests for capability selection."""

    def test_variants(self) -> None:
        assert isinstance(capability_of({}), OrderedMapAccess)
        assert isinstance(capability_of([1]), IndexedSequenceAccess)
        assert isinstance(capability_of("abc"), IndexedSequenceAccess)
        assert isinstance(capability_of(Point(1, 2)), StructuredRecordAccess)
        assert isinstance(capability_of(Product("a", 1.0)), StructuredRecordAccess)


class TestResolveMember:
    """Tests for case-insensitive member reads."""

    def test_mapping_key(self) -> None:
        assert resolve_member({"City": "Paris"}, "city") == "Paris"

    def test_exact_key_preferred(self) -> None:
        assert resolve_member({"a": 1, "A": 2}, "A") == 2

    def test_dataclass_field(self) -> None:
        assert resolve_member(Product("pen", 2.5), "price") == 2.5

    def test_pydantic_field(self) -> None:
        assert resolve_member(Customer(name="ana"), "Name") == "ana"

    def test_namedtuple_field(self) -> None:
        assert resolve_member(Point(3, 4), "y") == 4

    def test_property(self) -> None:
        assert resolve_member(Account("bo"), "label") == "acct:bo"

    def test_missing_is_none(self) -> None:
        assert resolve_member(Product("pen", 1.0), "Weight") is None

    def test_missing_strict_raises(self) -> None:
        with pytest.raises(MissingMemberError):
            resolve_member(Product("pen", 1.0), "Weight", strict=True)

    def test_none_target(self) -> None:
        assert resolve_member(None, "Name") is None
        with pytest.raises(MissingMemberError):
            resolve_member(None, "Name", strict=True)

    def test_private_member_blocked(self) -> None:
        """Underscore-prefixed members are never readable."""
        with pytest.raises(SecurityViolationError):
            resolve_member(Account("bo"), "_secret")
        with pytest.raises(SecurityViolationError):
            resolve_member(Account("bo"), "__class__")

    def test_count_and_length(self) -> None:
        assert resolve_member([1, 2, 3], "Count") == 3
        assert resolve_member("abcd", "Length") == 4
        assert resolve_member({"a": 1}, "count") == 1

    def test_mapping_keys_values(self) -> None:
        assert resolve_member({"a": 1, "b": 2}, "Keys") == ["a", "b"]
        assert resolve_member({"a": 1, "b": 2}, "Values") == [1, 2]

    def test_datetime_parts(self) -> None:
        moment = datetime(2024, 3, 5, 14, 30, 15, 250000)
        assert resolve_member(moment, "Year") == 2024
        assert resolve_member(moment, "Date") == datetime(2024, 3, 5)
        assert resolve_member(moment, "TimeOfDay") == timedelta(hours=14, minutes=30, seconds=15,
                                                               microseconds=250000)
        assert resolve_member(moment, "Millisecond") == 250
        assert resolve_member(moment, "DayOfWeek") == "Tuesday"
        assert resolve_member(moment, "DayOfYear") == 65

    def test_timedelta_parts(self) -> None:
        span = timedelta(days=1, hours=2, minutes=3, seconds=4)
        assert resolve_member(span, "TotalHours") == pytest.approx(26.0511, rel=1e-3)
        assert resolve_member(span, "Hours") == 2
        assert resolve_member(span, "Minutes") == 3
        assert resolve_member(span, "Days") == 1


class TestResolveIndex:
    """Tests for indexer reads."""

    def test_list_index(self) -> None:
        assert resolve_index([10, 20, 30], 1) == 20

    def test_from_end(self) -> None:
        assert resolve_index([10, 20, 30], 1, from_end=True) == 30

    def test_out_of_range(self) -> None:
        assert resolve_index([1], 5) is None
        with pytest.raises(MissingMemberError):
            resolve_index([1], 5, strict=True)

    def test_mapping_key(self) -> None:
        assert resolve_index({"Max Items": 10}, "max items") == 10

    def test_from_end_on_mapping_missing(self) -> None:
        assert OrderedMapAccess().get_index({1: "a"}, 1, from_end=True) is MISSING

    def test_bool_is_not_an_index(self) -> None:
        assert resolve_index([1, 2], True) is None


class TestVariableContext:
    """Tests for context construction and shape identity."""

    def test_build_from_mapping(self) -> None:
        ctx = VariableContext.build({"Name": "ana"})
        assert ctx.lookup("name") == (True, "ana")
        assert ctx.lookup("other") == (False, None)

    def test_build_from_dataclass(self) -> None:
        ctx = VariableContext.build(Product("pen", 1.5))
        assert ctx.names == ["Name", "Price"]

    def test_build_from_object_includes_properties(self) -> None:
        ctx = VariableContext.build(Account("bo"))
        assert "owner" in ctx
        assert "Label" in ctx
        assert "_secret" not in ctx

    def test_globals_are_shadowed(self) -> None:
        ctx = VariableContext.build({"site": "local"}, {"site": "global", "year": 2024})
        assert ctx.lookup("site") == (True, "local")
        assert ctx.lookup("year") == (True, 2024)
        assert len(ctx) == 2

    def test_unsupported_source(self) -> None:
        with pytest.raises(TypeError):
            VariableContext.build(42)

    def test_shape_id_ignores_values(self) -> None:
        """Same names and types give the same shape."""
        a = VariableContext.build({"x": 1, "y": "a"})
        b = VariableContext.build({"Y": "b", "X": 2})
        assert a.shape_id == b.shape_id

    def test_shape_id_tracks_types(self) -> None:
        a = VariableContext.build({"x": 1})
        b = VariableContext.build({"x": 1.0})
        assert a.shape_id != b.shape_id

    def test_type_name(self) -> None:
        ctx = VariableContext.build({"x": [1]})
        assert ctx.type_name("X") == "list"
        assert ctx.type_name("missing") is None
