"""Method dispatch, collection operations and static roots.

Method calls resolve in this order: static roots, universal methods
(``ToString``, ``GetType``, ``Equals``), string methods, date methods,
mapping methods, whitelisted collection operations, and finally host
methods found on the value itself (case-insensitive).

Static roots mirror the familiar .NET surface: ``Math``, ``string`` /
``String``, ``DateTime``, ``TimeSpan``, ``Convert``, ``Guid`` and the
numeric parse roots. Modules listed in ``additional_namespaces`` are
exposed as extra roots named after their last dotted segment.
"""

from __future__ import annotations

import calendar
import importlib
import logging
import math
import uuid
from collections import namedtuple
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from simpleeval import safe_add, safe_power

from ..context import MISSING, CaseInsensitiveDict, capability_of
from ..errors import SecurityViolationError
from ..formatting import CultureInfo, FormatApplier, format_datetime, to_display_string
from ..parsing.scanner import ExpressionSlot, scan, unescape

logger = logging.getLogger(__name__)

KeyValuePair = namedtuple("KeyValuePair", ["Key", "Value"])


@dataclass(frozen=True)
class TypeInfo:
    """Result of ``GetType()``."""

    Name: str
    FullName: str

    def __str__(self) -> str:
        return self.Name


@dataclass
class CallContext:
    """Per-evaluation settings that builtins need."""

    culture: CultureInfo
    applier: FormatApplier
    throw_on_error: bool = False
    strict_parameter_access: bool = False


def _invoke(fn: Callable[..., Any], item: Any, index: int) -> Any:
    if getattr(fn, "arity", 1) >= 2:
        return fn(item, index)
    return fn(item)


# =============================================================================
# COLLECTION OPERATIONS
# =============================================================================

def as_items(target: Any) -> list[Any]:
    """Materialize an enumerable; mappings enumerate KeyValuePair(Key, Value)."""
    if isinstance(target, Mapping):
        return [KeyValuePair(k, v) for k, v in target.items()]
    return list(target)


def is_enumerable(target: Any) -> bool:
    return isinstance(target, Iterable) and not isinstance(target, (bytes, StaticRoot))


def _project(items: list[Any], selector: Callable[..., Any] | None) -> list[Any]:
    if selector is None:
        return items
    return [_invoke(selector, item, i) for i, item in enumerate(items)]


def _filtered(items: list[Any], predicate: Callable[..., Any] | None) -> list[Any]:
    if predicate is None:
        return items
    return [item for i, item in enumerate(items) if _invoke(predicate, item, i)]


def _non_empty(items: list[Any], op: str) -> list[Any]:
    if not items:
        raise ValueError(f"{op}: sequence contains no elements")
    return items


def _sum(items: list[Any], selector: Callable[..., Any] | None = None) -> Any:
    total: Any = 0
    for value in _project(items, selector):
        if value is not None:
            total = safe_add(total, value)
    return total


def _average(items: list[Any], selector: Callable[..., Any] | None = None) -> Any:
    values = [v for v in _project(_non_empty(items, "Average"), selector) if v is not None]
    return _sum(values) / len(values)


def _min(items: list[Any], selector: Callable[..., Any] | None = None) -> Any:
    return min(_project(_non_empty(items, "Min"), selector))


def _max(items: list[Any], selector: Callable[..., Any] | None = None) -> Any:
    return max(_project(_non_empty(items, "Max"), selector))


def _first(items: list[Any], predicate: Callable[..., Any] | None = None) -> Any:
    return _non_empty(_filtered(items, predicate), "First")[0]


def _first_or_default(items: list[Any], predicate: Callable[..., Any] | None = None) -> Any:
    matches = _filtered(items, predicate)
    return matches[0] if matches else None


def _last(items: list[Any], predicate: Callable[..., Any] | None = None) -> Any:
    return _non_empty(_filtered(items, predicate), "Last")[-1]


def _last_or_default(items: list[Any], predicate: Callable[..., Any] | None = None) -> Any:
    matches = _filtered(items, predicate)
    return matches[-1] if matches else None


def _distinct(items: list[Any]) -> list[Any]:
    seen: list[Any] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def _order_by(items: list[Any], key: Callable[..., Any] | None = None) -> list[Any]:
    return sorted(items, key=(lambda item: key(item)) if key else None)


def _order_by_descending(items: list[Any], key: Callable[..., Any] | None = None) -> list[Any]:
    return sorted(items, key=(lambda item: key(item)) if key else None, reverse=True)


def _count(items: list[Any], predicate: Callable[..., Any] | None = None) -> int:
    return len(_filtered(items, predicate))


def _any(items: list[Any], predicate: Callable[..., Any] | None = None) -> bool:
    return bool(_filtered(items, predicate))


def _all(items: list[Any], predicate: Callable[..., Any]) -> bool:
    return all(_invoke(predicate, item, i) for i, item in enumerate(items))


COLLECTION_OPS: dict[str, Callable[..., Any]] = {
    "count": _count,
    "sum": _sum,
    "average": _average,
    "min": _min,
    "max": _max,
    "where": _filtered,
    "select": _project,
    "orderby": _order_by,
    "orderbydescending": _order_by_descending,
    "take": lambda items, n: items[:max(n, 0)],
    "skip": lambda items, n: items[max(n, 0):],
    "first": _first,
    "firstordefault": _first_or_default,
    "last": _last,
    "lastordefault": _last_or_default,
    "any": _any,
    "all": _all,
    "contains": lambda items, value: value in items,
    "distinct": _distinct,
    "reverse": lambda items: list(reversed(items)),
    "tolist": list,
    "toarray": list,
}


# =============================================================================
# STRING AND DATE METHODS
# =============================================================================

def _substring(text: str, start: int, length: int | None = None) -> str:
    if start < 0 or start > len(text):
        raise IndexError(f"Substring start index {start} is out of range")
    if length is None:
        return text[start:]
    if length < 0 or start + length > len(text):
        raise IndexError(f"Substring length {length} is out of range")
    return text[start:start + length]


def _remove(text: str, start: int, count: int | None = None) -> str:
    if start < 0 or start > len(text):
        raise IndexError(f"Remove start index {start} is out of range")
    if count is None:
        return text[:start]
    return text[:start] + text[start + count:]


def _split(text: str, *separators: Any) -> list[str]:
    if not separators:
        return text.split()
    seps = [s for s in separators if isinstance(s, str) and s]
    if not seps:
        return text.split()
    parts = [text]
    for sep in seps:
        parts = [piece for part in parts for piece in part.split(sep)]
    return parts


STRING_METHODS: dict[str, Callable[..., Any]] = {
    "toupper": lambda s: s.upper(),
    "toupperinvariant": lambda s: s.upper(),
    "tolower": lambda s: s.lower(),
    "tolowerinvariant": lambda s: s.lower(),
    "trim": lambda s, chars=None: s.strip(chars),
    "trimstart": lambda s, chars=None: s.lstrip(chars),
    "trimend": lambda s, chars=None: s.rstrip(chars),
    "substring": _substring,
    "contains": lambda s, sub: sub in s,
    "startswith": lambda s, prefix: s.startswith(prefix),
    "endswith": lambda s, suffix: s.endswith(suffix),
    "replace": lambda s, old, new: s.replace(old, "" if new is None else new),
    "indexof": lambda s, sub: s.find(sub),
    "lastindexof": lambda s, sub: s.rfind(sub),
    "split": _split,
    "padleft": lambda s, width, ch=" ": s.rjust(width, ch),
    "padright": lambda s, width, ch=" ": s.ljust(width, ch),
    "insert": lambda s, index, value: s[:index] + value + s[index:],
    "remove": _remove,
    "tochararray": list,
    "isempty": lambda s: s == "",
}


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _date_methods(ctx: CallContext) -> dict[str, Callable[..., Any]]:
    culture = ctx.culture
    return {
        "adddays": lambda d, n: d + timedelta(days=n),
        "addhours": lambda d, n: d + timedelta(hours=n),
        "addminutes": lambda d, n: d + timedelta(minutes=n),
        "addseconds": lambda d, n: d + timedelta(seconds=n),
        "addmilliseconds": lambda d, n: d + timedelta(milliseconds=n),
        "addmonths": _add_months,
        "addyears": lambda d, n: _add_months(d, 12 * n),
        "subtract": lambda d, other: d - other,
        "toshortdatestring": lambda d: format_datetime(d, "d", culture),
        "tolongdatestring": lambda d: format_datetime(d, "D", culture),
        "toshorttimestring": lambda d: format_datetime(d, "t", culture),
        "tolongtimestring": lambda d: format_datetime(d, "T", culture),
    }


def _to_string(target: Any, ctx: CallContext, fmt: str | None = None) -> str:
    if fmt:
        return ctx.applier.format(target, None, fmt, ctx.culture, throw_on_error=True)
    return to_display_string(target, ctx.culture)


# =============================================================================
# STATIC ROOTS
# =============================================================================

class StaticRoot:
    """A named group of static properties and methods (``Math.Max``, ``DateTime.Now``).

    Property getters take no arguments; methods take the CallContext first.
    """

    def __init__(self, name: str, properties: dict[str, Callable[[], Any]] | None = None,
                 methods: dict[str, Callable[..., Any]] | None = None) -> None:
        self.name = name
        self._properties = CaseInsensitiveDict(properties or {})
        self._methods = CaseInsensitiveDict(methods or {})

    def get_member(self, member: str) -> Any:
        if member in self._properties:
            return self._properties[member]()
        raise AttributeError(f"'{self.name}' has no property '{member}'")

    def call(self, member: str, args: list[Any], ctx: CallContext) -> Any:
        if member not in self._methods:
            raise AttributeError(f"'{self.name}' has no method '{member}'")
        return self._methods[member](ctx, *args)

    def __repr__(self) -> str:
        return f"StaticRoot({self.name})"


class ModuleRoot(StaticRoot):
    """Exposes the public callables and constants of an importable module."""

    def __init__(self, name: str, module: Any) -> None:
        super().__init__(name)
        self._module = module

    def _lookup(self, member: str) -> Any:
        if member.startswith("_"):
            raise SecurityViolationError(f"Access to member '{member}' is not allowed", member)
        value = capability_of(self._module).get_member(self._module, member)
        if value is MISSING:
            raise AttributeError(f"Module '{self.name}' has no member '{member}'")
        return value

    def get_member(self, member: str) -> Any:
        return self._lookup(member)

    def call(self, member: str, args: list[Any], ctx: CallContext) -> Any:
        fn = self._lookup(member)
        if not callable(fn):
            raise TypeError(f"'{self.name}.{member}' is not callable")
        return fn(*args)


def _round(ctx: CallContext, value: Any, digits: int = 0) -> Any:
    if isinstance(value, Decimal):
        return value.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_EVEN)
    if isinstance(value, int):
        return value
    return round(value, digits)


def _log(ctx: CallContext, value: float, base: float | None = None) -> float:
    return math.log(value) if base is None else math.log(value, base)


def _sign(ctx: CallContext, value: Any) -> int:
    return (value > 0) - (value < 0)


def _string_join(ctx: CallContext, separator: str, *items: Any) -> str:
    if len(items) == 1 and is_enumerable(items[0]) and not isinstance(items[0], str):
        items = tuple(as_items(items[0]))
    return separator.join(to_display_string(item, ctx.culture) for item in items)


def _string_format(ctx: CallContext, template: str, *args: Any) -> str:
    """Composite formatting: ``{0}``, ``{1,-8}``, ``{2:N2}``."""
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        args = tuple(args[0])
    out: list[str] = []
    for segment in scan(template):
        if isinstance(segment, ExpressionSlot):
            descriptor = segment.descriptor
            index_text = descriptor.raw_text
            if not index_text.isdigit() or int(index_text) >= len(args):
                raise ValueError(f"Format item '{{{index_text}}}' does not refer to an argument")
            out.append(ctx.applier.format(
                args[int(index_text)], descriptor.alignment, descriptor.format_specifier,
                ctx.culture, throw_on_error=True,
            ))
        else:
            out.append(segment.text)
    return unescape("".join(out))


def _compare(ctx: CallContext, a: Any, b: Any) -> int:
    if a is None or b is None:
        return (a is not None) - (b is not None)
    return (a > b) - (a < b)


def _to_int(ctx: CallContext, value: Any) -> int:
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        return round(value)
    if isinstance(value, Decimal):
        return int(value.quantize(Decimal(1), rounding=ROUND_HALF_EVEN))
    if value is None:
        return 0
    return int(value)


def _to_bool(ctx: CallContext, value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        raise ValueError(f"String '{value}' was not recognized as a valid Boolean")
    if value is None:
        return False
    return bool(value)


def _parse_bool(ctx: CallContext, text: str) -> bool:
    return _to_bool(ctx, text)


def _parse_datetime(ctx: CallContext, text: str) -> datetime:
    return datetime.fromisoformat(text.strip())


def _to_decimal(ctx: CallContext, value: Any) -> Decimal:
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)


def _to_float(ctx: CallContext, value: Any) -> float:
    return float(value.strip()) if isinstance(value, str) else float(value)


def _math_root() -> StaticRoot:
    return StaticRoot(
        "Math",
        properties={"PI": lambda: math.pi, "E": lambda: math.e, "Tau": lambda: math.tau},
        methods={
            "Abs": lambda ctx, v: abs(v),
            "Max": lambda ctx, a, b: max(a, b),
            "Min": lambda ctx, a, b: min(a, b),
            "Round": _round,
            "Floor": lambda ctx, v: math.floor(v),
            "Ceiling": lambda ctx, v: math.ceil(v),
            "Truncate": lambda ctx, v: math.trunc(v),
            "Sqrt": lambda ctx, v: math.sqrt(v),
            "Pow": lambda ctx, a, b: safe_power(a, b),
            "Sign": _sign,
            "Log": _log,
            "Log10": lambda ctx, v: math.log10(v),
            "Log2": lambda ctx, v: math.log2(v),
            "Exp": lambda ctx, v: math.exp(v),
            "Sin": lambda ctx, v: math.sin(v),
            "Cos": lambda ctx, v: math.cos(v),
            "Tan": lambda ctx, v: math.tan(v),
            "Clamp": lambda ctx, v, lo, hi: max(lo, min(v, hi)),
        },
    )


def _string_root(name: str) -> StaticRoot:
    return StaticRoot(
        name,
        properties={"Empty": lambda: ""},
        methods={
            "IsNullOrEmpty": lambda ctx, v: v is None or v == "",
            "IsNullOrWhiteSpace": lambda ctx, v: v is None or str(v).strip() == "",
            "Join": _string_join,
            "Concat": lambda ctx, *parts: "".join(to_display_string(p, ctx.culture) for p in parts),
            "Format": _string_format,
            "Compare": _compare,
            "Equals": lambda ctx, a, b: a == b,
        },
    )


def _datetime_root() -> StaticRoot:
    return StaticRoot(
        "DateTime",
        properties={
            "Now": datetime.now,
            "UtcNow": lambda: datetime.now(timezone.utc),
            "Today": lambda: datetime.combine(date.today(), datetime.min.time()),
            "MinValue": lambda: datetime.min,
            "MaxValue": lambda: datetime.max,
        },
        methods={
            "Parse": _parse_datetime,
            "DaysInMonth": lambda ctx, year, month: calendar.monthrange(year, month)[1],
            "IsLeapYear": lambda ctx, year: calendar.isleap(year),
        },
    )


def _timespan_root() -> StaticRoot:
    return StaticRoot(
        "TimeSpan",
        properties={"Zero": lambda: timedelta(0)},
        methods={
            "FromDays": lambda ctx, n: timedelta(days=n),
            "FromHours": lambda ctx, n: timedelta(hours=n),
            "FromMinutes": lambda ctx, n: timedelta(minutes=n),
            "FromSeconds": lambda ctx, n: timedelta(seconds=n),
            "FromMilliseconds": lambda ctx, n: timedelta(milliseconds=n),
        },
    )


def _convert_root() -> StaticRoot:
    return StaticRoot(
        "Convert",
        methods={
            "ToInt32": _to_int,
            "ToInt64": _to_int,
            "ToDouble": _to_float,
            "ToSingle": _to_float,
            "ToDecimal": _to_decimal,
            "ToBoolean": _to_bool,
            "ToString": lambda ctx, v, fmt=None: _to_string(v, ctx, fmt),
        },
    )


def _number_root(name: str, parse: Callable[..., Any], minimum: Any, maximum: Any) -> StaticRoot:
    return StaticRoot(
        name,
        properties={"MinValue": lambda: minimum, "MaxValue": lambda: maximum},
        methods={"Parse": parse},
    )


def build_static_roots(additional_namespaces: Iterable[str] = ()) -> CaseInsensitiveDict:
    """Create the static roots visible to expressions.

    Args:
        additional_namespaces: Importable module names to expose

    Raises:
        ModuleNotFoundError: If a namespace cannot be imported.
    """
    roots = CaseInsensitiveDict()
    roots["Math"] = _math_root()
    roots["String"] = _string_root("String")
    roots["DateTime"] = _datetime_root()
    roots["TimeSpan"] = _timespan_root()
    roots["Convert"] = _convert_root()
    roots["Guid"] = StaticRoot(
        "Guid",
        properties={"Empty": lambda: uuid.UUID(int=0)},
        methods={"NewGuid": lambda ctx: uuid.uuid4(), "Parse": lambda ctx, s: uuid.UUID(s)},
    )
    int32 = _number_root("Int32", lambda ctx, s: int(s.strip()), -(2 ** 31), 2 ** 31 - 1)
    int64 = _number_root("Int64", lambda ctx, s: int(s.strip()), -(2 ** 63), 2 ** 63 - 1)
    double = _number_root("Double", _to_float, -1.7976931348623157e308, 1.7976931348623157e308)
    dec = _number_root("Decimal", _to_decimal, Decimal("-79228162514264337593543950335"),
                       Decimal("79228162514264337593543950335"))
    for alias, root in (("int", int32), ("Int32", int32), ("long", int64), ("Int64", int64),
                        ("double", double), ("Double", double), ("decimal", dec)):
        roots[alias] = root
    roots["bool"] = StaticRoot("Boolean", methods={"Parse": _parse_bool})

    for namespace in additional_namespaces:
        module = importlib.import_module(namespace)
        alias = namespace.rsplit(".", 1)[-1]
        roots[alias] = ModuleRoot(alias, module)
        logger.debug(f"Registered namespace '{namespace}' as static root '{alias}'")
    return roots


# =============================================================================
# METHOD DISPATCH
# =============================================================================

def invoke_method(target: Any, name: str, args: list[Any], ctx: CallContext) -> Any:
    """Call method *name* on *target* with already-evaluated *args*.

    Raises:
        AttributeError: If no method with that name applies to the target.
    """
    if isinstance(target, StaticRoot):
        return target.call(name, args, ctx)
    if target is None:
        raise TypeError(f"Cannot call '{name}' on null")

    key = name.casefold()
    if key == "tostring":
        return _to_string(target, ctx, *args)
    if key == "gettype":
        cls = type(target)
        return TypeInfo(cls.__name__, f"{cls.__module__}.{cls.__qualname__}")
    if key == "equals" and len(args) == 1:
        return target == args[0]

    if isinstance(target, str) and key in STRING_METHODS:
        return STRING_METHODS[key](target, *args)
    if isinstance(target, date):
        methods = _date_methods(ctx)
        if key in methods:
            return methods[key](target, *args)
    if isinstance(target, Mapping):
        if key == "containskey":
            return capability_of(target).get_index(target, args[0]) is not MISSING
        if key == "containsvalue":
            return args[0] in target.values()
    if key in COLLECTION_OPS and is_enumerable(target):
        return COLLECTION_OPS[key](as_items(target), *args)

    member = capability_of(target).get_member(target, name)
    if member is not MISSING and callable(member):
        return member(*args)
    raise AttributeError(f"'{type(target).__name__}' has no method '{name}'")
