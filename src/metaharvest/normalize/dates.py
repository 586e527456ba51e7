"""Free-text and partial ISO-8601 date expressions resolved to validated ranges.

Display dates in museum records are typed by hand, mostly in Finnish but
increasingly in English. The resolver tries an ordered cascade of pattern
families; the first family that matches wins, so the order below is part of
the behaviour: several families structurally match the same text (a
``1930-1940`` range also looks like two bare years, ``1930-luvun loppu``
also looks like a decade).

Nothing here raises on bad input. Unusable text resolves to ``None`` and a
warning is passed to the caller-supplied ``warn`` callback.
"""

from __future__ import annotations

from calendar import isleap
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import re
from re import Match, Pattern
from typing import Callable

from metaharvest.normalize.models import DateRange

logger = logging.getLogger(__name__)

WarningSink = Callable[[str], None]

START_OF_YEAR = "-01-01T00:00:00Z"
END_OF_YEAR = "-12-31T23:59:59Z"


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

_ERA_MAPPINGS: tuple[tuple[str, DateRange | None], ...] = (
    ("kivikausi", DateRange("-8600-01-01T00:00:00Z", "-1501-12-31T23:59:59Z")),
    ("stone age", DateRange("-8600-01-01T00:00:00Z", "-1501-12-31T23:59:59Z")),
    ("pronssikausi", DateRange("-1500-01-01T00:00:00Z", "-0501-12-31T23:59:59Z")),
    ("bronze age", DateRange("-1500-01-01T00:00:00Z", "-0501-12-31T23:59:59Z")),
    ("rautakausi", DateRange("-0500-01-01T00:00:00Z", "1299-12-31T23:59:59Z")),
    ("iron age", DateRange("-0500-01-01T00:00:00Z", "1299-12-31T23:59:59Z")),
    ("keskiaika", DateRange("1300-01-01T00:00:00Z", "1550-12-31T23:59:59Z")),
    ("middle ages", DateRange("1300-01-01T00:00:00Z", "1550-12-31T23:59:59Z")),
    ("ajoittamaton", None),
    ("tuntematon", None),
    ("undated", None),
    ("unknown", None),
)

_MONTHS: dict[str, int] = {
    "tammikuu": 1, "helmikuu": 2, "maaliskuu": 3, "huhtikuu": 4,
    "toukokuu": 5, "kesäkuu": 6, "heinäkuu": 7, "elokuu": 8,
    "syyskuu": 9, "lokakuu": 10, "marraskuu": 11, "joulukuu": 12,
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}
_MONTH_ALT = "|".join(_MONTHS)

_Y = r"(\d?\d?\d\d)"
_SY = r"(-?\d?\d?\d\d)"
_DEC = r"'?s\b"
_BC = r"(?:ekr\.?|eaa\.?|bce|bc|b\.c\.)"
_AD = r"(?:jkr\.?|jaa\.?|ce|ad|a\.d\.)"


# ---------------------------------------------------------------------------
# Pattern families
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class _Parsed:
    start: str | int
    end: str | int
    complete: bool = False


class _InvalidDate(ValueError):
    pass


def _days_in_month(year: int, month: int) -> int:
    if month == 2:
        return 29 if isleap(year) else 28
    return 30 if month in (4, 6, 9, 11) else 31


def _month_end(year: str | int, month: str | int) -> str:
    year_no, month_no = int(year), int(month)
    if not 1 <= month_no <= 12:
        raise _InvalidDate(f"{int(year):04d}-{month_no:02d}")
    return f"{year_no:04d}-{month_no:02d}-{_days_in_month(year_no, month_no):02d}T23:59:59Z"


def _day_start(year: str, month: str, day: str) -> str:
    return f"{int(year):04d}-{int(month):02d}-{int(day):02d}T00:00:00Z"


def _day_end(year: str, month: str, day: str) -> str:
    return f"{int(year):04d}-{int(month):02d}-{int(day):02d}T23:59:59Z"


def _dmy_to_dmy(m: Match[str]) -> _Parsed:
    return _Parsed(_day_start(m[3], m[2], m[1]), _day_end(m[6], m[5], m[4]), True)


def _year_to_dmy(m: Match[str]) -> _Parsed:
    return _Parsed(f"{int(m[1]):04d}{START_OF_YEAR}", _day_end(m[4], m[3], m[2]), True)


def _dmy_to_year(m: Match[str]) -> _Parsed:
    return _Parsed(_day_start(m[3], m[2], m[1]), f"{int(m[4]):04d}{END_OF_YEAR}", True)


def _ymd_to_ymd(m: Match[str]) -> _Parsed:
    return _Parsed(_day_start(m[1], m[2], m[3]), _day_end(m[4], m[5], m[6]), True)


def _ym_to_ym(m: Match[str]) -> _Parsed:
    return _Parsed(f"{int(m[1]):04d}-{int(m[2]):02d}-01T00:00:00Z", _month_end(m[3], m[4]), True)


def _single_ymd(m: Match[str]) -> _Parsed:
    return _Parsed(_day_start(m[1], m[2], m[3]), _day_end(m[1], m[2], m[3]), True)


def _single_dmy(m: Match[str]) -> _Parsed:
    return _Parsed(_day_start(m[3], m[2], m[1]), _day_end(m[3], m[2], m[1]), True)


def _single_ym(m: Match[str]) -> _Parsed:
    return _Parsed(f"{int(m[1]):04d}-{int(m[2]):02d}-01T00:00:00Z", _month_end(m[1], m[2]), True)


def _single_my(m: Match[str]) -> _Parsed:
    return _Parsed(f"{int(m[2]):04d}-{int(m[1]):02d}-01T00:00:00Z", _month_end(m[2], m[1]), True)


def _year_text_month(m: Match[str]) -> _Parsed:
    year = m["year"] or m["year_last"]
    month = _MONTHS[m["month"] or m["month_first"]]
    return _Parsed(f"{int(year):04d}-{month:02d}-01T00:00:00Z", _month_end(year, month), True)


def _synthesize_end(end: int) -> int:
    if end % 100 == 0:
        return end + 99
    if end % 10 == 0:
        return end + 9
    return end


def _year_to_year_endish(m: Match[str]) -> _Parsed:
    return _Parsed(m[1], _synthesize_end(int(m[2])))


def _year_to_year_decade(m: Match[str]) -> _Parsed:
    end = int(m[3])
    if m[4] and end % 10 == 0:
        end += 9
    return _Parsed(m[1], m[3] if not m[4] else _keep_width(m[3], end))


def _keep_width(raw: str, value: int) -> str:
    # "40" stays two digits so the century of the start year can be inherited.
    return str(value).zfill(len(raw)) if len(raw) == 2 else str(value)


def _year(m: Match[str]) -> str:
    return m["year"] or m["year_en"]


def _qualified(offsets: tuple[tuple[int, int], tuple[int, int]]) -> Callable[[Match[str]], _Parsed]:
    century, decade = offsets

    def handler(m: Match[str]) -> _Parsed:
        year = int(_year(m))
        if year % 100 == 0:
            return _Parsed(year + century[0], year + century[1])
        if year % 10 == 0:
            return _Parsed(year + decade[0], year + decade[1])
        return _Parsed(year, year)

    return handler


def _from_decade(m: Match[str]) -> _Parsed:
    year = int(_year(m))
    return _Parsed(year, _synthesize_end(year))


def _bce_to_bce(m: Match[str]) -> _Parsed:
    return _Parsed(-int(m[1]), -int(m[2]))


def _bce_to_ce(m: Match[str]) -> _Parsed:
    return _Parsed(-int(m[1]), int(m[2]))


def _bce_year(m: Match[str]) -> _Parsed:
    return _Parsed(-int(m[1]), -int(m[1]))


def _after_year(m: Match[str]) -> _Parsed:
    year = _year(m)
    return _Parsed(year, int(year) + 9)


def _year_to_year(m: Match[str]) -> _Parsed:
    return _Parsed(m[1], m[2])


def _single_year(m: Match[str]) -> _Parsed:
    return _Parsed(m[1], m[1])


def _family(name: str, pattern: str, handler: Callable[[Match[str]], _Parsed]) -> tuple[str, Pattern[str], Callable[[Match[str]], _Parsed]]:
    return name, re.compile(pattern), handler


_FAMILIES: tuple[tuple[str, Pattern[str], Callable[[Match[str]], _Parsed]], ...] = (
    _family(
        "dmy-to-dmy",
        r"(\d\d?)\s*.\s*(\d\d?)\s*.\s*(\d\d\d\d)\s*-\s*(\d\d?)\s*.\s*(\d\d?)\s*.\s*(\d\d\d\d)",
        _dmy_to_dmy,
    ),
    _family("year-to-dmy", r"(\d\d\d\d)\s*-\s*(\d\d?)\s*.\s*(\d\d?)\s*.\s*(\d\d\d\d)", _year_to_dmy),
    _family("dmy-to-year", r"(\d\d?)\s*.\s*(\d\d?)\s*.\s*(\d\d\d\d)\s*-\s*(\d\d\d\d)", _dmy_to_year),
    _family(
        "ymd-to-ymd",
        r"(\d\d\d\d)\s*.\s*(\d\d?)\s*.\s*(\d\d?)\s*-\s*(\d\d\d\d)\s*.\s*(\d\d?)\s*.\s*(\d\d?)",
        _ymd_to_ymd,
    ),
    _family("compact-ymd-to-ymd", r"(\d\d\d\d)(\d\d?)(\d\d?)\s*-\s*(\d\d\d\d)(\d\d?)(\d\d?)", _ymd_to_ymd),
    _family("compact-ym-to-ym", r"(\d\d\d\d)(\d\d?)\s*-\s*(\d\d\d\d)(\d\d?)", _ym_to_ym),
    _family("iso-date", r"(\d\d\d\d)-(\d\d?)-(\d\d?)", _single_ymd),
    _family(
        "range-late-decade",
        r"(\d\d\d\d)\s*-\s*(\d\d\d\d)\s*(-luvun|-l)\s+(loppupuoli|loppu)",
        _year_to_year_endish,
    ),
    _family(
        "range-decade",
        _Y + r"(?:'?s)?\s*(-|~)\s*" + _Y + r"\s*(-luku|-l|'?s\b)?\s*(\(?\?\)?)?",
        _year_to_year_decade,
    ),
    _family(
        "year-text-month",
        r"(?:(?P<year>\d?\d?\d\d)\s+(?P<month>" + _MONTH_ALT + r"))"
        r"|(?:(?P<month_first>" + _MONTH_ALT + r")\s+(?P<year_last>\d\d\d\d))",
        _year_text_month,
    ),
    _family("compact-ymd", r"(\d\d\d\d)(\d\d)(\d\d)", _single_ymd),
    _family("compact-ym", r"(\d\d\d\d)(\d\d)", _single_ym),
    _family("dmy", r"(\d\d?)\s*\.\s*(\d\d?)\s*\.\s*(\d\d\d\d)", _single_dmy),
    _family("my", r"(\d\d?)\s*\.\s*(\d\d\d\d)", _single_my),
    _family(
        "early",
        r"(?P<year>\d?\d?\d\d)\s*-(?:luvun|luku)\s+(?:alkupuolelta|alkupuoli|alku|alusta)"
        r"|(?:early|beginning of(?: the)?)\s*-?\s*(?P<year_en>\d?\d?\d\d)" + _DEC,
        _qualified(((0, 29), (0, 3))),
    ),
    _family(
        "mid",
        r"(?P<year>\d?\d?\d\d)\s*-(?:luvun|luku)\s+puoliväli"
        r"|(?:mid|middle of(?: the)?)\s*-?\s*(?P<year_en>\d?\d?\d\d)" + _DEC,
        _qualified(((29, 70), (3, 7))),
    ),
    _family(
        "late",
        r"(?P<year>\d?\d?\d\d)\s*(?:-luvun|-l)\s+(?:loppupuoli|loppu|lopulta|loppupuolelta)"
        r"|(?:late|end of(?: the)?)\s*-?\s*(?P<year_en>\d?\d?\d\d)" + _DEC,
        _qualified(((70, 99), (7, 9))),
    ),
    _family(
        "decade",
        r"(?P<year>-?\d?\d?\d\d)\s*-(?:luku|luvulta|l)|(?P<year_en>-?\d?\d?\d\d)" + _DEC,
        _from_decade,
    ),
    _family("bce-to-bce", _Y + r"\s*" + _BC + r"\s*-\s*" + _Y + r"\s*" + _BC, _bce_to_bce),
    _family("bce-to-ce", _Y + r"\s*" + _BC + r"\s*-\s*" + _Y + r"\s*" + _AD, _bce_to_ce),
    _family("bce-year", _Y + r"\s*" + _BC + r"(?!\w)", _bce_year),
    _family(
        "after",
        r"(?P<year>-?\d?\d?\d\d) jälkeen|after\s+(?P<year_en>-?\d?\d?\d\d)",
        _after_year,
    ),
    _family("year-to-year", r"(-?\d\d\d\d)\s*-\s*(-?\d\d\d\d)", _year_to_year),
    _family("uncertain-year", _SY + r"\s*\?", _single_year),
    _family("year", _SY + r"\b", _single_year),
)


FAMILY_NAMES: tuple[str, ...] = tuple(name for name, _, _ in _FAMILIES)


# ---------------------------------------------------------------------------
# Instant helpers
# ---------------------------------------------------------------------------

_INSTANT_RE = re.compile(r"^(-?)(\d{4,})-(\d\d)-(\d\d)T(\d\d):(\d\d):(\d\d)Z$")
_PARTIAL_RE = re.compile(r"^(-?)(\d{1,4})(?:-(\d{1,2}))?(?:-(\d{1,2}))?")


def _instant_key(instant: str) -> tuple[int, int, int, int, int, int] | None:
    match = _INSTANT_RE.match(instant)
    if match is None:
        return None
    sign, year, month, day, hour, minute, second = match.groups()
    signed_year = -int(year) if sign else int(year)
    return signed_year, int(month), int(day), int(hour), int(minute), int(second)


def validate_instant(instant: str) -> tuple[int, int, int, int, int, int] | None:
    """Return a sortable key for a calendar-valid instant, else ``None``."""

    key = _instant_key(instant)
    if key is None:
        return None
    year, month, day, hour, minute, second = key
    if not 1 <= month <= 12:
        return None
    if not 1 <= day <= _days_in_month(year, month):
        return None
    if hour > 23 or minute > 59 or second > 59:
        return None
    return key


def _year_part(instant: str) -> str:
    match = re.match(r"-?\d+", instant)
    return match.group(0) if match else instant[:4]


def _partial_key(value: str) -> tuple[int, int, int] | None:
    match = _PARTIAL_RE.match(value.strip())
    if match is None:
        return None
    sign, year, month, day = match.groups()
    signed_year = -int(year) if sign else int(year)
    return signed_year, int(month or 0), int(day or 0)


def _pad_signed(value: str) -> str:
    if value.startswith("-"):
        number = value[1:]
        return "0000" if int(number or 0) == 0 else "-" + number.zfill(4)
    if int(value) == 0:
        return "0000"
    return value


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DateRangeResolver:
    """Resolve explicit, display and period dates into a validated ``DateRange``."""

    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or _utc_now

    def resolve(
        self,
        start: str | None,
        end: str | None,
        display: str | None = None,
        period: str | None = None,
        *,
        warn: WarningSink | None = None,
    ) -> DateRange | None:
        sink = warn or _discard
        start_text = (start or "").strip()
        end_text = (end or "").strip()
        if start_text:
            return self.resolve_explicit(start_text, end_text, warn=sink)
        if display and display.strip():
            return self.parse_text(display, warn=sink)
        if period and period.strip():
            return self.parse_text(period, warn=sink)
        return None

    def resolve_explicit(self, start: str, end: str, *, warn: WarningSink | None = None) -> DateRange | None:
        """Complete a (possibly partial) earliest/latest date pair."""

        sink = warn or _discard
        if not end:
            end = start
        elif self._ends_before(start, end):
            logger.debug("Invalid date range %s - %s, using start as end", start, end)
            sink("invalid date range")
            end = start

        completed_start = self.complete_date(start, end=False, warn=sink)
        completed_end = self.complete_date(end, end=True, warn=sink)
        if completed_start is None or completed_end is None:
            return None
        if validate_instant(completed_start) is None or validate_instant(completed_end) is None:
            logger.debug("Invalid date %s - %s", completed_start, completed_end)
            sink("invalid date")
            return None
        return DateRange(completed_start, completed_end)

    def complete_date(self, date: str, *, end: bool = False, warn: WarningSink | None = None) -> str | None:
        """Expand year, year-month or date precision to a full instant."""

        negative = date.startswith("-")
        body = date[1:] if negative else date

        if len(body) <= 4 and body.isdigit():
            body = body.zfill(4) + (END_OF_YEAR if end else START_OF_YEAR)
        elif len(body) == 7:
            if end:
                try:
                    body = _month_end(body[:4], body[5:7])
                except (_InvalidDate, ValueError):
                    logger.debug("Failed to parse date %s", date)
                    (warn or _discard)("invalid date")
                    return None
            else:
                body = body + "-01T00:00:00Z"
        elif len(body) == 10:
            body = body + ("T23:59:59Z" if end else "T00:00:00Z")

        return f"-{body}" if negative else body

    def parse_text(self, text: str, *, warn: WarningSink | None = None) -> DateRange | None:
        """Run the pattern cascade over a free-text date."""

        sink = warn or _discard
        lowered = text.strip().lower()
        for needle, mapped in _ERA_MAPPINGS:
            if needle in lowered:
                return mapped

        segment = lowered.split(",", 1)[0]
        parsed = None
        for name, pattern, handler in _FAMILIES:
            match = pattern.search(segment)
            if match is None:
                continue
            try:
                parsed = handler(match)
            except _InvalidDate:
                logger.debug("Failed to parse date from '%s' (%s)", text, name)
                sink("invalid end date")
                return None
            break
        if parsed is None:
            return None

        start, end = self._expand(parsed)

        now_key = _instant_key(self._now().strftime("%Y-%m-%dT%H:%M:%SZ"))
        for instant in (start, end):
            key = _instant_key(instant)
            if key is not None and now_key is not None and key > now_key:
                return None

        start_key = validate_instant(start)
        end_key = validate_instant(end)
        if start_key is None or end_key is None:
            logger.debug("Invalid date range %s - %s parsed from '%s'", start, end, text)
            sink("invalid date range")
            if start_key is not None:
                end = _year_part(start) + END_OF_YEAR
            elif end_key is not None:
                start = _year_part(end) + START_OF_YEAR
            else:
                return None
        elif start_key > end_key:
            logger.debug("Invalid date range %s - %s parsed from '%s'", start, end, text)
            sink("invalid date range")
            end = _year_part(start) + END_OF_YEAR

        return DateRange(start, end)

    def _expand(self, parsed: _Parsed) -> tuple[str, str]:
        start = str(parsed.start)
        end = str(parsed.end)
        if parsed.complete:
            return start, end

        start = _pad_signed(start)
        end = _pad_signed(end)

        if len(start) == 1:
            start = f"000{start}"
        elif len(start) == 2:
            start = f"19{start}"
        elif len(start) == 3:
            start = f"0{start}"

        if len(end) == 1:
            end = f"000{end}"
        elif len(end) == 2:
            end = start[:-2] + end
        elif len(end) == 3:
            end = f"0{end}"

        return start + START_OF_YEAR, end + END_OF_YEAR

    @staticmethod
    def _ends_before(start: str, end: str) -> bool:
        start_key = _partial_key(start)
        end_key = _partial_key(end)
        if start_key is None:
            return end < start
        if end_key is None:
            return True
        return end_key < start_key


def _discard(message: str) -> None:
    return None
