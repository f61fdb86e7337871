"""Culture-aware value formatting."""

from .applier import FormatApplier, to_display_string
from .culture import DEFAULT_CULTURE, CultureInfo, available_cultures, get_culture
from .dates import format_datetime, format_timedelta
from .numeric import format_number

__all__ = [
    "DEFAULT_CULTURE",
    "CultureInfo",
    "FormatApplier",
    "available_cultures",
    "format_datetime",
    "format_number",
    "format_timedelta",
    "get_culture",
    "to_display_string",
]
