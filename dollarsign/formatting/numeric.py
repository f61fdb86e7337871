"""Numeric format specifiers.

Supports the standard specifiers (C, D, E, F, G, N, P, R, X with optional
precision), custom patterns built from ``0``, ``#``, ``,``, ``.`` and ``%``,
and Python format-spec passthrough (``.2f``, ``>10,``) for anything that is
neither. Rounding for fixed-point output is half away from zero.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .culture import CultureInfo

_STANDARD_RX = re.compile(r"^([CcDdEeFfGgNnPpRrXx])(\d{0,2})$")
_PYTHON_SPEC_RX = re.compile(
    r"^(?:.?[<>=^])?[+\- ]?z?#?0?\d*[,_]?(?:\.\d+)?[bcdeEfFgGnosxX%]?$"
)


def is_number(value: object) -> bool:
    """Numbers eligible for numeric formatting (bool excluded)."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _to_decimal(value: int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    # repr gives the shortest round-tripping digits; avoids binary noise like 2.67499999
    return Decimal(repr(value))


def _group(digits: str, separator: str) -> str:
    if len(digits) <= 3:
        return digits
    head = len(digits) % 3
    parts = [digits[:head]] if head else []
    parts.extend(digits[i:i + 3] for i in range(head, len(digits), 3))
    return separator.join(parts)


def _fixed(value: Decimal, precision: int) -> tuple[bool, str, str]:
    """Round to *precision* places; return (negative, integer digits, fraction digits)."""
    quantum = Decimal(1).scaleb(-precision)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    negative = rounded < 0 and rounded != 0
    text = format(abs(rounded), "f")
    if "." in text:
        int_part, frac_part = text.split(".", 1)
    else:
        int_part, frac_part = text, ""
    return negative, int_part, frac_part.ljust(precision, "0")[:precision] if precision else ""


def _join(int_part: str, frac_part: str, culture: CultureInfo) -> str:
    return f"{int_part}{culture.decimal_separator}{frac_part}" if frac_part else int_part


def _special_float(value: object) -> str | None:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
    return None


def default_number_text(value: int | float | Decimal, culture: CultureInfo) -> str:
    """Default stringification for numbers (shortest round-trip for floats)."""
    special = _special_float(value)
    if special is not None:
        return special
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = repr(value)
        if "e" in text:
            mantissa, exponent = text.split("e")
            sign = "-" if exponent.startswith("-") else "+"
            text = f"{mantissa.removesuffix('.0')}E{sign}{exponent.lstrip('+-').zfill(2)}"
        elif text.endswith(".0"):
            text = text[:-2]
        return text.replace(".", culture.decimal_separator)
    return format(value, "f").replace(".", culture.decimal_separator)


def _exponential(value: Decimal, precision: int, upper: bool, min_exp_digits: int) -> str:
    text = f"{value:.{precision}e}" if value != 0 else f"{0:.{precision}e}"
    mantissa, exponent = text.split("e")
    sign = "-" if exponent.startswith("-") else "+"
    digits = exponent.lstrip("+-").lstrip("0") or "0"
    letter = "E" if upper else "e"
    return f"{mantissa}{letter}{sign}{digits.zfill(min_exp_digits)}"


def _format_standard(value: int | float | Decimal, kind: str, precision_text: str,
                     culture: CultureInfo) -> str:
    upper = kind.upper()
    precision = int(precision_text) if precision_text else None

    if upper in ("D", "X"):
        if not isinstance(value, int):
            raise ValueError(f"Format specifier '{kind}' is only valid for integral types")
        if upper == "D":
            digits = str(abs(value)).zfill(precision or 0)
            return f"-{digits}" if value < 0 else digits
        if value < 0:
            bits = 32 if value >= -(2 ** 31) else 64
            value = value & ((1 << bits) - 1)
        digits = format(value, "X" if kind == "X" else "x")
        return digits.zfill(precision or 0)

    special = _special_float(value)
    if special is not None:
        return special
    number = _to_decimal(value)

    if upper == "R":
        return default_number_text(value, culture)
    if upper == "E":
        text = _exponential(number, 6 if precision is None else precision, kind == "E", 3)
        return text.replace(".", culture.decimal_separator)
    if upper == "G":
        if precision is None or precision == 0:
            return default_number_text(value, culture)
        text = f"{number:.{precision}g}"
        if "e" in text:
            mantissa, exponent = text.split("e")
            sign = "-" if exponent.startswith("-") else "+"
            text = f"{mantissa}{'E' if kind == 'G' else 'e'}{sign}{exponent.lstrip('+-').zfill(2)}"
        return text.replace(".", culture.decimal_separator)
    if upper == "F":
        negative, int_part, frac_part = _fixed(number, 2 if precision is None else precision)
        text = _join(int_part, frac_part, culture)
        return f"-{text}" if negative else text
    if upper == "N":
        negative, int_part, frac_part = _fixed(number, 2 if precision is None else precision)
        text = _join(_group(int_part, culture.group_separator), frac_part, culture)
        return f"-{text}" if negative else text
    if upper == "C":
        negative, int_part, frac_part = _fixed(number, 2 if precision is None else precision)
        text = _join(_group(int_part, culture.group_separator), frac_part, culture)
        pattern = culture.currency_negative if negative else culture.currency_positive
        return pattern.format(s=culture.currency_symbol, n=text)
    if upper == "P":
        negative, int_part, frac_part = _fixed(number * 100, 2 if precision is None else precision)
        text = _join(_group(int_part, culture.group_separator), frac_part, culture)
        pattern = culture.percent_negative if negative else culture.percent_positive
        return pattern.format(n=text)
    raise ValueError(f"Unsupported numeric format specifier: {kind}")


def _split_sections(pattern: str) -> list[str]:
    sections: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if quote:
            if ch == quote:
                quote = None
            current.append(ch)
        elif ch in "'\"":
            quote = ch
            current.append(ch)
        elif ch == "\\" and i + 1 < len(pattern):
            current.append(pattern[i:i + 2])
            i += 1
        elif ch == ";":
            sections.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    sections.append("".join(current))
    return sections


def _literal_text(raw: str) -> str:
    out: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(raw):
        ch = raw[i]
        if quote:
            if ch == quote:
                quote = None
            else:
                out.append(ch)
        elif ch in "'\"":
            quote = ch
        elif ch == "\\" and i + 1 < len(raw):
            out.append(raw[i + 1])
            i += 1
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _format_custom_section(number: Decimal, section: str, culture: CultureInfo,
                           with_sign: bool) -> str:
    placeholders = [i for i, ch in enumerate(section) if ch in "0#"]
    if not placeholders:
        return _literal_text(section)
    start = placeholders[0]
    end = placeholders[-1]
    while end + 1 < len(section) and section[end + 1] in ".,":
        end += 1
    # A '.' directly before the first placeholder belongs to the number
    if start > 0 and section[start - 1] == ".":
        start -= 1
    prefix = _literal_text(section[:start])
    suffix = _literal_text(section[end + 1:])
    body = section[start:end + 1]

    if "%" in section[:start] + section[end + 1:]:
        number *= 100

    if "." in body:
        int_pattern, frac_pattern = body.split(".", 1)
        frac_pattern = frac_pattern.replace(",", "")
    else:
        int_pattern, frac_pattern = body, ""

    while int_pattern.endswith(","):
        number /= 1000
        int_pattern = int_pattern[:-1]

    use_grouping = "," in int_pattern
    min_int = int_pattern.count("0")
    min_frac = frac_pattern.count("0")
    max_frac = min_frac + frac_pattern.count("#")

    negative, int_part, frac_part = _fixed(number, max_frac)
    frac_part = frac_part.rstrip("0") if max_frac else ""
    if len(frac_part) < min_frac:
        frac_part = frac_part.ljust(min_frac, "0")
    int_part = int_part.lstrip("0")
    int_part = int_part.zfill(min_int) if min_int else int_part
    if use_grouping:
        int_part = _group(int_part, culture.group_separator)

    text = f"{int_part}{culture.decimal_separator}{frac_part}" if frac_part else int_part
    sign = "-" if negative and with_sign else ""
    return f"{sign}{prefix}{text}{suffix}"


def _format_custom(value: int | float | Decimal, pattern: str, culture: CultureInfo) -> str:
    number = _to_decimal(value)
    sections = _split_sections(pattern)
    if len(sections) >= 3 and number == 0 and sections[2]:
        return _format_custom_section(number, sections[2], culture, with_sign=False)
    if len(sections) >= 2 and number < 0 and sections[1]:
        return _format_custom_section(-number, sections[1], culture, with_sign=False)
    return _format_custom_section(number, sections[0], culture, with_sign=True)


def format_number(value: int | float | Decimal, spec: str, culture: CultureInfo) -> str:
    """Format *value* with a numeric format specifier.

    Args:
        value: int, float or Decimal (not bool)
        spec: Standard (``N2``), custom (``#,##0.00``) or Python (``.3f``) specifier
        culture: Culture conventions for separators and symbols

    Raises:
        ValueError: If the specifier is not valid for the value.
    """
    match = _STANDARD_RX.match(spec)
    if match:
        return _format_standard(value, match.group(1), match.group(2), culture)
    if "0" in spec or "#" in spec:
        special = _special_float(value)
        if special is not None:
            return special
        try:
            return _format_custom(value, spec, culture)
        except InvalidOperation as e:
            raise ValueError(f"Invalid custom numeric format '{spec}': {e}") from e
    if _PYTHON_SPEC_RX.match(spec):
        return format(value, spec)
    raise ValueError(f"Invalid numeric format specifier: {spec!r}")
