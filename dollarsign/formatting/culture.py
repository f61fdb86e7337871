"""Culture tables for number and date rendering.

Python's ``locale`` module is process-global, so cultures are modeled as
immutable value objects passed explicitly to the formatters.
"""

from __future__ import annotations

from dataclasses import dataclass

_EN_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_EN_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class CultureInfo:
    """Formatting conventions for one culture.

    Currency patterns use ``{s}`` for the symbol and ``{n}`` for the number.
    Date/time patterns use .NET custom format tokens.
    """

    name: str
    decimal_separator: str = "."
    group_separator: str = ","
    currency_symbol: str = "$"
    currency_positive: str = "{s}{n}"
    currency_negative: str = "-{s}{n}"
    percent_positive: str = "{n}%"
    percent_negative: str = "-{n}%"
    short_date: str = "M/d/yyyy"
    long_date: str = "dddd, MMMM d, yyyy"
    short_time: str = "h:mm tt"
    long_time: str = "h:mm:ss tt"
    month_day: str = "MMMM d"
    year_month: str = "MMMM yyyy"
    am_designator: str = "AM"
    pm_designator: str = "PM"
    month_names: tuple[str, ...] = _EN_MONTHS
    day_names: tuple[str, ...] = _EN_DAYS  # Monday first, matching datetime.weekday()

    @property
    def abbreviated_month_names(self) -> tuple[str, ...]:
        return tuple(m[:3] for m in self.month_names)

    @property
    def abbreviated_day_names(self) -> tuple[str, ...]:
        return tuple(d[:3] for d in self.day_names)


_CULTURES: dict[str, CultureInfo] = {
    "invariant": CultureInfo(
        name="invariant",
        currency_symbol="¤",
        short_date="MM/dd/yyyy",
        long_date="dddd, dd MMMM yyyy",
        short_time="HH:mm",
        long_time="HH:mm:ss",
        year_month="yyyy MMMM",
        percent_positive="{n} %",
        percent_negative="-{n} %",
    ),
    "en-US": CultureInfo(name="en-US"),
    "en-GB": CultureInfo(
        name="en-GB",
        currency_symbol="£",
        short_date="dd/MM/yyyy",
        long_date="dd MMMM yyyy",
        short_time="HH:mm",
        long_time="HH:mm:ss",
        month_day="d MMMM",
        am_designator="am",
        pm_designator="pm",
    ),
    "de-DE": CultureInfo(
        name="de-DE",
        decimal_separator=",",
        group_separator=".",
        currency_symbol="€",
        currency_positive="{n} {s}",
        currency_negative="-{n} {s}",
        percent_positive="{n} %",
        percent_negative="-{n} %",
        short_date="dd.MM.yyyy",
        long_date="dddd, d. MMMM yyyy",
        short_time="HH:mm",
        long_time="HH:mm:ss",
        month_day="d. MMMM",
        am_designator="",
        pm_designator="",
        month_names=(
            "Januar", "Februar", "März", "April", "Mai", "Juni",
            "Juli", "August", "September", "Oktober", "November", "Dezember",
        ),
        day_names=("Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag"),
    ),
    "fr-FR": CultureInfo(
        name="fr-FR",
        decimal_separator=",",
        group_separator=" ",
        currency_symbol="€",
        currency_positive="{n} {s}",
        currency_negative="-{n} {s}",
        percent_positive="{n} %",
        percent_negative="-{n} %",
        short_date="dd/MM/yyyy",
        long_date="dddd d MMMM yyyy",
        short_time="HH:mm",
        long_time="HH:mm:ss",
        month_day="d MMMM",
        am_designator="",
        pm_designator="",
        month_names=(
            "janvier", "février", "mars", "avril", "mai", "juin",
            "juillet", "août", "septembre", "octobre", "novembre", "décembre",
        ),
        day_names=("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"),
    ),
    "ja-JP": CultureInfo(
        name="ja-JP",
        currency_symbol="￥",
        short_date="yyyy/MM/dd",
        long_date="yyyy年M月d日dddd",
        short_time="H:mm",
        long_time="H:mm:ss",
        month_day="M月d日",
        am_designator="午前",
        pm_designator="午後",
        month_names=tuple(f"{i}月" for i in range(1, 13)),
        day_names=(
            "月曜日", "火曜日", "水曜日", "木曜日",
            "金曜日", "土曜日", "日曜日",
        ),
    ),
    "ko-KR": CultureInfo(
        name="ko-KR",
        currency_symbol="₩",
        short_date="yyyy. M. d.",
        long_date="yyyy년 M월 d일 dddd",
        short_time="tt h:mm",
        long_time="tt h:mm:ss",
        month_day="M월 d일",
        am_designator="오전",
        pm_designator="오후",
        month_names=tuple(f"{i}월" for i in range(1, 13)),
        day_names=(
            "월요일", "화요일", "수요일", "목요일",
            "금요일", "토요일", "일요일",
        ),
    ),
}

_ALIASES = {"": "invariant", "iv": "invariant", "en": "en-US", "de": "de-DE", "fr": "fr-FR",
            "ja": "ja-JP", "ko": "ko-KR"}

DEFAULT_CULTURE = "en-US"


def get_culture(name: str | None) -> CultureInfo:
    """Look up a culture by name (case-insensitive, '_' accepted for '-').

    Raises:
        ValueError: If the culture is unknown.
    """
    if name is None:
        return _CULTURES[DEFAULT_CULTURE]
    key = name.strip().replace("_", "-")
    key = _ALIASES.get(key.lower(), key)
    for culture_name, culture in _CULTURES.items():
        if culture_name.lower() == key.lower():
            return culture
    raise ValueError(f"Unknown culture: {name!r}. Known: {', '.join(sorted(_CULTURES))}")


def available_cultures() -> list[str]:
    """Names of all known cultures."""
    return sorted(_CULTURES)
