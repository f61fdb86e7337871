"""Date and time format specifiers.

Standard single-letter specifiers (``d``, ``D``, ``f``, ``F``, ``g``, ``G``,
``M``, ``s``, ``t``, ``T``, ``u``, ``U``, ``o``, ``Y``) expand to culture
patterns; everything else is read as a custom pattern of tokens such as
``yyyy-MM-dd HH:mm:ss``. Quoted text and backslash escapes are literal.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from .culture import CultureInfo

_FIXED_PATTERNS = {
    "s": "yyyy'-'MM'-'dd'T'HH':'mm':'ss",
    "u": "yyyy'-'MM'-'dd HH':'mm':'ss'Z'",
    "o": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "O": "yyyy'-'MM'-'dd'T'HH':'mm':'ss'.'fffffffK",
    "r": "ddd, dd MMM yyyy HH':'mm':'ss 'GMT'",
    "R": "ddd, dd MMM yyyy HH':'mm':'ss 'GMT'",
}

_TOKEN_CHARS = frozenset("yMdhHmsfFtzK")


def _standard_pattern(spec: str, culture: CultureInfo) -> str | None:
    if spec in _FIXED_PATTERNS:
        return _FIXED_PATTERNS[spec]
    patterns = {
        "d": culture.short_date,
        "D": culture.long_date,
        "f": f"{culture.long_date} {culture.short_time}",
        "F": f"{culture.long_date} {culture.long_time}",
        "g": f"{culture.short_date} {culture.short_time}",
        "G": f"{culture.short_date} {culture.long_time}",
        "m": culture.month_day,
        "M": culture.month_day,
        "t": culture.short_time,
        "T": culture.long_time,
        "U": f"{culture.long_date} {culture.long_time}",
        "y": culture.year_month,
        "Y": culture.year_month,
    }
    return patterns.get(spec)


def _as_datetime(value: date | datetime | time) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.combine(date(1, 1, 1), value)


def _offset(value: datetime) -> timedelta:
    offset = value.utcoffset()
    if offset is None:
        offset = value.astimezone().utcoffset() or timedelta(0)
    return offset


def _offset_text(offset: timedelta, count: int) -> str:
    total_minutes = int(offset.total_seconds() // 60)
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    if count == 1:
        return f"{sign}{hours}"
    if count == 2:
        return f"{sign}{hours:02d}"
    return f"{sign}{hours:02d}:{minutes:02d}"


def _render_token(ch: str, count: int, value: datetime, culture: CultureInfo) -> str:
    if ch == "y":
        if count == 1:
            return str(value.year % 100)
        if count == 2:
            return f"{value.year % 100:02d}"
        return str(value.year).zfill(count)
    if ch == "M":
        if count <= 2:
            return str(value.month).zfill(count)
        names = culture.abbreviated_month_names if count == 3 else culture.month_names
        return names[value.month - 1]
    if ch == "d":
        if count <= 2:
            return str(value.day).zfill(count)
        names = culture.abbreviated_day_names if count == 3 else culture.day_names
        return names[value.weekday()]
    if ch == "h":
        hour = value.hour % 12 or 12
        return str(hour).zfill(min(count, 2))
    if ch == "H":
        return str(value.hour).zfill(min(count, 2))
    if ch == "m":
        return str(value.minute).zfill(min(count, 2))
    if ch == "s":
        return str(value.second).zfill(min(count, 2))
    if ch in "fF":
        if count > 7:
            raise ValueError("Fractional second specifier supports at most 7 digits")
        digits = f"{value.microsecond:06d}0"[:count]
        if ch == "F":
            digits = digits.rstrip("0")
        return digits
    if ch == "t":
        designator = culture.am_designator if value.hour < 12 else culture.pm_designator
        return designator[:1] if count == 1 else designator
    if ch == "z":
        return _offset_text(_offset(value), count)
    if ch == "K":
        offset = value.utcoffset()
        if offset is None:
            return ""
        if offset == timedelta(0):
            return "Z"
        return _offset_text(offset, 3)
    raise ValueError(f"Unknown date format token: {ch}")


def _render_pattern(pattern: str, value: datetime, culture: CultureInfo) -> str:
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch in "'\"":
            end = pattern.find(ch, i + 1)
            if end == -1:
                raise ValueError(f"Unterminated quoted literal in date format: {pattern!r}")
            out.append(pattern[i + 1:end])
            i = end + 1
            continue
        if ch == "\\":
            if i + 1 >= n:
                raise ValueError("Trailing escape in date format")
            out.append(pattern[i + 1])
            i += 2
            continue
        if ch == "%":
            i += 1
            continue
        if ch in _TOKEN_CHARS:
            j = i
            while j < n and pattern[j] == ch:
                j += 1
            out.append(_render_token(ch, j - i, value, culture))
            i = j
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def format_datetime(value: date | datetime | time, spec: str, culture: CultureInfo) -> str:
    """Format a date, datetime or time with a standard or custom specifier.

    Raises:
        ValueError: If the specifier is malformed.
    """
    moment = _as_datetime(value)
    if len(spec) == 1:
        pattern = _standard_pattern(spec, culture)
        if pattern is None:
            raise ValueError(f"Invalid standard date format specifier: {spec!r}")
        if spec in ("u", "U", "r", "R") and moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return _render_pattern(pattern, moment, culture)
    return _render_pattern(spec, moment, culture)


def default_datetime_text(value: date | datetime | time, culture: CultureInfo) -> str:
    """Default stringification: the culture's general ('G') pattern."""
    if isinstance(value, datetime):
        return format_datetime(value, "G", culture)
    if isinstance(value, date):
        return format_datetime(value, "d", culture)
    return format_datetime(value, "T", culture)


def format_timedelta(value: timedelta, spec: str | None = None) -> str:
    """Render a duration as ``[-][d.]hh:mm:ss[.fffffff]``.

    Supports the constant ``c`` specifier and custom patterns using
    ``d``, ``hh``, ``mm``, ``ss`` and ``f`` tokens.
    """
    negative = value < timedelta(0)
    span = -value if negative else value
    days = span.days
    hours, remainder = divmod(span.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    micros = span.microseconds

    if not spec or spec in ("c", "t", "T", "g", "G"):
        text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        if days:
            text = f"{days}.{text}"
        if micros:
            text += f".{micros:06d}0"
        return f"-{text}" if negative else text

    values = {"d": days, "h": hours, "m": minutes, "s": seconds}
    out: list[str] = []
    i = 0
    while i < len(spec):
        ch = spec[i]
        if ch in "'\"":
            end = spec.find(ch, i + 1)
            if end == -1:
                raise ValueError(f"Unterminated quoted literal in duration format: {spec!r}")
            out.append(spec[i + 1:end])
            i = end + 1
        elif ch == "\\" and i + 1 < len(spec):
            out.append(spec[i + 1])
            i += 2
        elif ch in values or ch in "fF":
            j = i
            while j < len(spec) and spec[j] == ch:
                j += 1
            count = j - i
            if ch in "fF":
                digits = f"{micros:06d}0"[:count]
                out.append(digits.rstrip("0") if ch == "F" else digits)
            else:
                out.append(str(values[ch]).zfill(count))
            i = j
        else:
            raise ValueError(f"Invalid character {ch!r} in duration format; escape literals")
    text = "".join(out)
    return f"-{text}" if negative else text
