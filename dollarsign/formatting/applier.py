"""Format and alignment post-processing for evaluated slot values.

Usage:
    from dollarsign.formatting import FormatApplier, get_culture

    applier = FormatApplier()
    applier.format(3.14159, alignment=10, format_specifier="F2", culture=get_culture("en-US"))
    # '      3.14'
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from ..errors import FormatError
from .culture import CultureInfo, get_culture
from .dates import default_datetime_text, format_datetime, format_timedelta
from .numeric import default_number_text, format_number, is_number

logger = logging.getLogger(__name__)

# Failures a formatter may raise for a bad specifier/value combination
_FORMAT_FAILURES = (ValueError, TypeError, ArithmeticError, IndexError, KeyError)


def _has_custom_format(value: Any) -> bool:
    method = getattr(type(value), "__format__", None)
    return method is not None and method is not object.__format__


def _format_enum(value: Enum, spec: str) -> str:
    upper = spec.upper()
    if upper in ("G", "F"):
        return value.name
    if upper == "D":
        return str(value.value)
    if upper == "X":
        if not isinstance(value.value, int):
            raise ValueError(f"Enum {type(value).__name__} has no integral value")
        return format(value.value & 0xFFFFFFFF, "08X")
    raise ValueError(f"Invalid enum format specifier: {spec!r}")


def _format_uuid(value: uuid.UUID, spec: str) -> str:
    upper = spec.upper()
    if upper == "N":
        return value.hex
    if upper == "D":
        return str(value)
    if upper == "B":
        return f"{{{value}}}"
    if upper == "P":
        return f"({value})"
    raise ValueError(f"Invalid UUID format specifier: {spec!r}")


def to_display_string(value: Any, culture: CultureInfo | None = None) -> str:
    """Default stringification used when no format specifier applies.

    Args:
        value: Any evaluated value
        culture: Culture for decimal separators and date patterns

    Returns:
        Display text ('' for None, 'True'/'False' for bools)
    """
    culture = culture or get_culture(None)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, str):
        return value
    if is_number(value):
        return default_number_text(value, culture)
    if isinstance(value, (datetime, date, time)):
        return default_datetime_text(value, culture)
    if isinstance(value, timedelta):
        return format_timedelta(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(to_display_string(item, culture) for item in value)
    return str(value)


class FormatApplier:
    """Renders values with a format specifier and alignment.

    Specifier dispatch by value kind: numbers, dates/times, durations,
    enums, UUIDs, objects exposing ``to_string(format, culture)``, and
    objects defining ``__format__``. Other values ignore the specifier.
    """

    def format(
        self,
        value: Any,
        alignment: int | None = None,
        format_specifier: str | None = None,
        culture: CultureInfo | None = None,
        throw_on_error: bool = False,
    ) -> str:
        """Format *value* and pad it to *alignment*.

        Args:
            value: Evaluated slot value
            alignment: Positive pads left (right-align), negative pads right
            format_specifier: Specifier text after ':' in the slot, if any
            culture: Formatting culture (defaults to en-US)
            throw_on_error: Raise FormatError instead of degrading

        Returns:
            Formatted, aligned text

        Raises:
            FormatError: If formatting fails and throw_on_error is set.
        """
        culture = culture or get_culture(None)
        if value is None:
            text = ""
        elif not format_specifier:
            text = to_display_string(value, culture)
        else:
            try:
                text = self._apply_specifier(value, format_specifier, culture)
            except _FORMAT_FAILURES as e:
                if throw_on_error:
                    raise FormatError(
                        f"Cannot format {type(value).__name__} with '{format_specifier}': {e}",
                        format_specifier,
                    ) from e
                logger.debug(
                    f"Format '{format_specifier}' failed for {type(value).__name__}, "
                    f"using default text: {e}"
                )
                text = to_display_string(value, culture)
        return self.align(text, alignment)

    @staticmethod
    def align(text: str, alignment: int | None) -> str:
        """Pad *text* to the absolute width of *alignment*."""
        if not alignment:
            return text
        if alignment > 0:
            return text.rjust(alignment)
        return text.ljust(-alignment)

    def _apply_specifier(self, value: Any, spec: str, culture: CultureInfo) -> str:
        if isinstance(value, bool):
            return to_display_string(value, culture)
        to_string = getattr(value, "to_string", None)
        if callable(to_string):
            return str(to_string(spec, culture))
        if isinstance(value, Enum):
            return _format_enum(value, spec)
        if is_number(value):
            return format_number(value, spec, culture)
        if isinstance(value, (datetime, date, time)):
            return format_datetime(value, spec, culture)
        if isinstance(value, timedelta):
            return format_timedelta(value, spec)
        if isinstance(value, uuid.UUID):
            return _format_uuid(value, spec)
        if _has_custom_format(value):
            return format(value, spec)
        return to_display_string(value, culture)
