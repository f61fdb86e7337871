"""Variable context and case-insensitive member access.

A VariableContext is built fresh for each evaluation call by merging the
global defaults with the per-call variables (per-call values shadow globals).
Variables may be supplied as a mapping, dataclass, pydantic model,
namedtuple or plain object.

Member and indexer reads on arbitrary values go through one capability,
MemberAccessible, with three variants:

- OrderedMapAccess: mappings (key match is case-insensitive for str keys)
- IndexedSequenceAccess: lists, tuples, strings (positional and ``^n`` from end)
- StructuredRecordAccess: dataclasses, pydantic models, namedtuples, objects

Usage:
    from dollarsign.context import VariableContext, resolve_member

    ctx = VariableContext.build({"user": {"Name": "Alice"}}, global_data={"app": "demo"})
    found, user = ctx.lookup("USER")
    resolve_member(user, "name")  # 'Alice'
"""

from __future__ import annotations

import calendar
import dataclasses
import hashlib
import logging
from collections.abc import Iterator, Mapping, MutableMapping, Sequence, Sized
from datetime import date, datetime, timedelta
from typing import Any, Protocol

from pydantic import BaseModel
from simpleeval import DISALLOW_METHODS, DISALLOW_PREFIXES

from .errors import MissingMemberError, SecurityViolationError

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for a member or index that does not exist."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# =============================================================================
# CASE-INSENSITIVE MAP
# =============================================================================

class CaseInsensitiveDict(MutableMapping[str, Any]):
    """Insertion-ordered mapping whose string keys compare case-insensitively.

    The spelling of the first insertion is kept for display.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._store: dict[str, tuple[str, Any]] = {}
        if data:
            self.update(data)

    def __setitem__(self, key: str, value: Any) -> None:
        folded = key.casefold()
        original = self._store[folded][0] if folded in self._store else key
        self._store[folded] = (original, value)

    def __getitem__(self, key: str) -> Any:
        return self._store[key.casefold()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.casefold()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._store

    def __repr__(self) -> str:
        return f"CaseInsensitiveDict({dict(self.items())!r})"


# =============================================================================
# MEMBER ACCESS CAPABILITY
# =============================================================================

class MemberAccessible(Protocol):
    """Reads named members and indexed elements from a host value."""

    def get_member(self, target: Any, name: str) -> Any:
        """Return the member value, or MISSING."""
        ...

    def get_index(self, target: Any, index: Any, from_end: bool = False) -> Any:
        """Return the element at *index*, or MISSING."""
        ...


def _fold_lookup(names: Iterator[str] | list[str], wanted: str) -> str | None:
    folded = wanted.casefold()
    for name in names:
        if name.casefold() == folded:
            return name
    return None


class OrderedMapAccess:
    """Mappings: member and indexer reads are both key lookups."""

    def get_member(self, target: Mapping[Any, Any], name: str) -> Any:
        return self._lookup(target, name)

    def get_index(self, target: Mapping[Any, Any], index: Any, from_end: bool = False) -> Any:
        if from_end:
            return MISSING
        return self._lookup(target, index)

    @staticmethod
    def _lookup(target: Mapping[Any, Any], key: Any) -> Any:
        if isinstance(target, CaseInsensitiveDict):
            return target[key] if key in target else MISSING
        try:
            if key in target:
                return target[key]
        except TypeError:
            return MISSING
        if isinstance(key, str):
            match = _fold_lookup([k for k in target if isinstance(k, str)], key)
            if match is not None:
                return target[match]
        return MISSING


class IndexedSequenceAccess:
    """Lists, tuples and strings: positional and from-end indexing."""

    def get_member(self, target: Sequence[Any], name: str) -> Any:
        return MISSING

    def get_index(self, target: Sequence[Any], index: Any, from_end: bool = False) -> Any:
        if isinstance(index, bool) or not isinstance(index, int):
            return MISSING
        position = len(target) - index if from_end else index
        if position < 0 or position >= len(target):
            return MISSING
        return target[position]


class StructuredRecordAccess:
    """Dataclasses, pydantic models, namedtuples and plain objects.

    Attribute names are matched case-insensitively. Private names and
    names simpleeval disallows are rejected outright.
    """

    def get_member(self, target: Any, name: str) -> Any:
        if name.startswith(tuple(DISALLOW_PREFIXES)) or name in DISALLOW_METHODS:
            raise SecurityViolationError(
                f"Access to member '{name}' is not allowed", name
            )
        if hasattr(target, name):
            return getattr(target, name)
        candidates = [n for n in dir(target) if not n.startswith("_")]
        match = _fold_lookup(candidates, name)
        if match is None:
            return MISSING
        return getattr(target, match)

    def get_index(self, target: Any, index: Any, from_end: bool = False) -> Any:
        if hasattr(target, "__getitem__") and not from_end:
            try:
                return target[index]
            except (KeyError, IndexError, TypeError):
                return MISSING
        return MISSING


_MAP_ACCESS = OrderedMapAccess()
_SEQUENCE_ACCESS = IndexedSequenceAccess()
_RECORD_ACCESS = StructuredRecordAccess()


def capability_of(value: Any) -> MemberAccessible:
    """Select the access variant for *value*."""
    if isinstance(value, Mapping):
        return _MAP_ACCESS
    # namedtuples read as records; their fields are the interesting part
    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return _RECORD_ACCESS
    if isinstance(value, Sequence):
        return _SEQUENCE_ACCESS
    return _RECORD_ACCESS


def _virtual_member(target: Any, name: str) -> Any:
    """Members synthesized for host types that lack them natively."""
    key = name.casefold()
    if key in ("count", "length") and isinstance(target, Sized):
        return len(target)
    if isinstance(target, Mapping):
        if key == "keys":
            return list(target.keys())
        if key == "values":
            return list(target.values())
    if isinstance(target, datetime):
        if key == "date":
            return datetime(target.year, target.month, target.day, tzinfo=target.tzinfo)
        if key == "timeofday":
            return timedelta(hours=target.hour, minutes=target.minute,
                             seconds=target.second, microseconds=target.microsecond)
        if key == "millisecond":
            return target.microsecond // 1000
    if isinstance(target, date):
        if key == "dayofweek":
            return calendar.day_name[target.weekday()]
        if key == "dayofyear":
            return target.timetuple().tm_yday
    if isinstance(target, timedelta):
        seconds = target.total_seconds()
        totals = {
            "totaldays": seconds / 86400,
            "totalhours": seconds / 3600,
            "totalminutes": seconds / 60,
            "totalseconds": seconds,
            "totalmilliseconds": seconds * 1000,
            "hours": target.seconds // 3600,
            "minutes": (target.seconds % 3600) // 60,
            "seconds": target.seconds % 60,
            "milliseconds": target.microseconds // 1000,
        }
        if key in totals:
            return totals[key]
    return MISSING


def resolve_member(target: Any, name: str, strict: bool = False,
                   expression: str | None = None) -> Any:
    """Read member *name* from *target* case-insensitively.

    Args:
        target: Host value (mapping, sequence or record)
        name: Member name
        strict: Raise instead of returning None for a missing member
        expression: Text reported in errors

    Returns:
        The member value, or None when missing and not strict

    Raises:
        MissingMemberError: If the member is missing and strict is set.
        SecurityViolationError: If a private member is requested.
    """
    if target is None:
        if strict:
            raise MissingMemberError(name, "null", expression)
        return None
    if isinstance(target, (date, timedelta)):
        # Date parts shadow same-named methods such as datetime.date()
        value = _virtual_member(target, name)
        if value is MISSING:
            value = capability_of(target).get_member(target, name)
    else:
        value = capability_of(target).get_member(target, name)
        if value is MISSING:
            value = _virtual_member(target, name)
    if value is MISSING:
        if strict:
            raise MissingMemberError(name, type(target).__name__, expression)
        return None
    return value


def resolve_index(target: Any, index: Any, from_end: bool = False, strict: bool = False,
                  expression: str | None = None) -> Any:
    """Read element *index* from *target* (``^index`` when *from_end*).

    Raises:
        MissingMemberError: If the element is missing and strict is set.
    """
    if target is None:
        if strict:
            raise MissingMemberError(f"[{index}]", "null", expression)
        return None
    value = capability_of(target).get_index(target, index, from_end)
    if value is MISSING:
        if strict:
            label = f"[^{index}]" if from_end else f"[{index!r}]"
            raise MissingMemberError(label, type(target).__name__, expression)
        return None
    return value


# =============================================================================
# VARIABLE CONTEXT
# =============================================================================

def _public_fields(source: Any) -> dict[str, Any]:
    """Flatten a variables source into name -> value pairs."""
    if source is None:
        return {}
    if isinstance(source, Mapping):
        return {str(k): v for k, v in source.items()}
    if isinstance(source, BaseModel):
        return {name: getattr(source, name) for name in type(source).model_fields}
    if dataclasses.is_dataclass(source) and not isinstance(source, type):
        return {f.name: getattr(source, f.name) for f in dataclasses.fields(source)}
    if isinstance(source, tuple) and hasattr(source, "_asdict"):
        return dict(source._asdict())
    if hasattr(source, "__dict__"):
        fields = {k: v for k, v in vars(source).items() if not k.startswith("_")}
        for name in dir(type(source)):
            if not name.startswith("_") and isinstance(getattr(type(source), name, None), property):
                fields[name] = getattr(source, name)
        return fields
    raise TypeError(f"Cannot use {type(source).__name__} as template variables")


class VariableContext:
    """Case-insensitive, ordered name -> value map for one evaluation call."""

    def __init__(self, variables: Mapping[str, Any] | None = None) -> None:
        self._values = CaseInsensitiveDict(variables or {})

    @classmethod
    def build(cls, variables: Any = None, global_data: Any = None) -> VariableContext:
        """Merge *global_data* then *variables*; later entries shadow earlier ones."""
        merged = CaseInsensitiveDict(_public_fields(global_data))
        for name, value in _public_fields(variables).items():
            merged[name] = value
        return cls(merged)

    def lookup(self, name: str) -> tuple[bool, Any]:
        """Return (found, value) for *name*."""
        if name in self._values:
            return True, self._values[name]
        return False, None

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    @property
    def names(self) -> list[str]:
        return list(self._values)

    def type_name(self, name: str) -> str | None:
        found, value = self.lookup(name)
        return type(value).__name__ if found else None

    @property
    def shape_id(self) -> str:
        """Stable identifier of the (name, type) pairs; part of the cache key."""
        pairs = sorted(
            f"{name.casefold()}:{type(value).__name__}" for name, value in self._values.items()
        )
        return hashlib.sha1("\n".join(pairs).encode("utf-8")).hexdigest()[:16]

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values.items())
