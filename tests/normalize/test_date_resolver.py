from __future__ import annotations

from datetime import datetime, timezone

import pytest

from metaharvest.normalize.dates import FAMILY_NAMES, DateRangeResolver, validate_instant
from metaharvest.normalize.models import DateRange


def _resolver() -> DateRangeResolver:
    return DateRangeResolver(now=lambda: datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


def _collecting() -> tuple[list[str], object]:
    warnings: list[str] = []
    return warnings, warnings.append


@pytest.mark.parametrize(
    ("start", "end", "expected_end"),
    [
        ("1950", "1940", "1950-12-31T23:59:59Z"),
        ("1950-06", "1950-05", "1950-06-30T23:59:59Z"),
        ("1950-06-15", "1950-06-14", "1950-06-15T23:59:59Z"),
        ("-0200", "-0300", "-0200-12-31T23:59:59Z"),
    ],
)
def test_explicit_end_before_start_is_clamped_to_start_with_warning(
    start: str, end: str, expected_end: str
) -> None:
    warnings, warn = _collecting()

    resolved = _resolver().resolve(start, end, warn=warn)

    assert resolved is not None
    assert resolved.end == expected_end
    assert "invalid date range" in warnings


def test_explicit_canonical_range_is_returned_unchanged() -> None:
    canonical = DateRange("1920-01-01T00:00:00Z", "1930-12-31T23:59:59Z")
    resolver = _resolver()

    first = resolver.resolve(canonical.start, canonical.end)
    second = resolver.resolve(first.start, first.end)

    assert first == canonical
    assert second == canonical


def test_explicit_partial_precision_is_expanded() -> None:
    resolver = _resolver()

    assert resolver.resolve("1920", "") == DateRange("1920-01-01T00:00:00Z", "1920-12-31T23:59:59Z")
    assert resolver.resolve("1920-02", "1924-02") == DateRange("1920-02-01T00:00:00Z", "1924-02-29T23:59:59Z")
    assert resolver.resolve("1920-05-03", "1920-05-04") == DateRange(
        "1920-05-03T00:00:00Z", "1920-05-04T23:59:59Z"
    )


def test_explicit_bce_year_keeps_its_sign() -> None:
    assert _resolver().resolve("-0500", "-0400") == DateRange("-0500-01-01T00:00:00Z", "-0400-12-31T23:59:59Z")


def test_explicit_invalid_calendar_date_is_rejected_with_warning() -> None:
    warnings, warn = _collecting()

    assert _resolver().resolve("1950-02-30", "1950-03-01", warn=warn) is None
    assert "invalid date" in warnings


def test_explicit_dates_take_precedence_over_display_text() -> None:
    resolved = _resolver().resolve("1901", "1902", "1930-luku")

    assert resolved == DateRange("1901-01-01T00:00:00Z", "1902-12-31T23:59:59Z")


@pytest.mark.parametrize(
    ("text", "start", "end"),
    [
        ("1930s", "1930-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("late 1930s", "1937-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("early 1930s", "1930-01-01T00:00:00Z", "1933-12-31T23:59:59Z"),
        ("mid 1930s", "1933-01-01T00:00:00Z", "1937-12-31T23:59:59Z"),
        ("1920-1930", "1920-01-01T00:00:00Z", "1930-12-31T23:59:59Z"),
        ("1920-30", "1920-01-01T00:00:00Z", "1930-12-31T23:59:59Z"),
        ("1930-luku", "1930-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("1900-luku", "1900-01-01T00:00:00Z", "1999-12-31T23:59:59Z"),
        ("1930-luvun loppu", "1937-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("1900-luvun alku", "1900-01-01T00:00:00Z", "1929-12-31T23:59:59Z"),
        ("1900-luvun puoliväli", "1929-01-01T00:00:00Z", "1970-12-31T23:59:59Z"),
        ("1930-1940-luvun loppupuoli", "1930-01-01T00:00:00Z", "1949-12-31T23:59:59Z"),
        ("12.5.1930", "1930-05-12T00:00:00Z", "1930-05-12T23:59:59Z"),
        ("5.1930", "1930-05-01T00:00:00Z", "1930-05-31T23:59:59Z"),
        ("1.2.1930-3.4.1931", "1930-02-01T00:00:00Z", "1931-04-03T23:59:59Z"),
        ("1930-3.4.1931", "1930-01-01T00:00:00Z", "1931-04-03T23:59:59Z"),
        ("1930-04-05", "1930-04-05T00:00:00Z", "1930-04-05T23:59:59Z"),
        ("19300405", "1930-04-05T00:00:00Z", "1930-04-05T23:59:59Z"),
        ("193002", "1930-02-01T00:00:00Z", "1930-02-28T23:59:59Z"),
        ("1930 toukokuu", "1930-05-01T00:00:00Z", "1930-05-31T23:59:59Z"),
        ("may 1930", "1930-05-01T00:00:00Z", "1930-05-31T23:59:59Z"),
        ("500 ekr - 100 ekr", "-0500-01-01T00:00:00Z", "-0100-12-31T23:59:59Z"),
        ("500 eaa - 100 jaa", "-0500-01-01T00:00:00Z", "0100-12-31T23:59:59Z"),
        ("1930 jälkeen", "1930-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("after 1930", "1930-01-01T00:00:00Z", "1939-12-31T23:59:59Z"),
        ("1930?", "1930-01-01T00:00:00Z", "1930-12-31T23:59:59Z"),
        ("noin 1930", "1930-01-01T00:00:00Z", "1930-12-31T23:59:59Z"),
    ],
)
def test_display_text_families(text: str, start: str, end: str) -> None:
    assert _resolver().resolve(None, None, text) == DateRange(start, end)


def test_named_eras_map_to_fixed_ranges() -> None:
    resolver = _resolver()

    assert resolver.parse_text("Keskiaika") == DateRange("1300-01-01T00:00:00Z", "1550-12-31T23:59:59Z")
    assert resolver.parse_text("Stone Age") == DateRange("-8600-01-01T00:00:00Z", "-1501-12-31T23:59:59Z")
    assert resolver.parse_text("ajoittamaton") is None


def test_only_text_before_first_comma_is_considered() -> None:
    assert _resolver().parse_text("1920, korjattu 1950") == DateRange(
        "1920-01-01T00:00:00Z", "1920-12-31T23:59:59Z"
    )


def test_period_label_is_used_when_display_text_is_missing() -> None:
    assert _resolver().resolve("", "", "", "1930-luku") == DateRange("1930-01-01T00:00:00Z", "1939-12-31T23:59:59Z")


def test_future_display_dates_resolve_to_absent() -> None:
    resolver = _resolver()

    assert resolver.parse_text("2999") is None
    assert resolver.parse_text("2020-2030") is None
    assert resolver.parse_text("2026") is None
    assert resolver.parse_text("2025") == DateRange("2025-01-01T00:00:00Z", "2025-12-31T23:59:59Z")


def test_unparseable_text_resolves_to_absent() -> None:
    assert _resolver().parse_text("ei tiedossa") is None


def test_impossible_calendar_day_is_rejected_with_warning() -> None:
    warnings, warn = _collecting()

    assert _resolver().parse_text("31.2.1950", warn=warn) is None
    assert "invalid date range" in warnings


def test_invalid_month_in_compact_range_warns_about_end_date() -> None:
    warnings, warn = _collecting()

    assert _resolver().parse_text("19301-193113", warn=warn) is None
    assert "invalid end date" in warnings


def test_inverted_display_range_is_clamped_to_start_year() -> None:
    warnings, warn = _collecting()

    resolved = _resolver().parse_text("1950-1940", warn=warn)

    assert resolved == DateRange("1950-01-01T00:00:00Z", "1950-12-31T23:59:59Z")
    assert "invalid date range" in warnings


# Several families structurally match the same text; the earlier one must win.


def test_day_precision_wins_over_month_precision() -> None:
    resolved = _resolver().parse_text("12.5.1930")

    assert resolved.start == "1930-05-12T00:00:00Z"
    assert FAMILY_NAMES.index("dmy") < FAMILY_NAMES.index("my")


def test_qualified_decade_wins_over_plain_decade() -> None:
    resolved = _resolver().parse_text("1930-luvun loppu")

    assert resolved.start == "1937-01-01T00:00:00Z"
    assert FAMILY_NAMES.index("late") < FAMILY_NAMES.index("decade")


def test_year_range_wins_over_single_year() -> None:
    resolved = _resolver().parse_text("1920-1930")

    assert resolved.end == "1930-12-31T23:59:59Z"
    assert FAMILY_NAMES.index("range-decade") < FAMILY_NAMES.index("year")


def test_full_date_range_wins_over_iso_date() -> None:
    resolved = _resolver().parse_text("1930.1.2-1931.3.4")

    assert resolved == DateRange("1930-01-02T00:00:00Z", "1931-03-04T23:59:59Z")
    assert FAMILY_NAMES.index("ymd-to-ymd") < FAMILY_NAMES.index("iso-date")


def test_bce_range_wins_over_bce_to_ce() -> None:
    resolved = _resolver().parse_text("300 bc - 200 bc")

    assert resolved == DateRange("-0300-01-01T00:00:00Z", "-0200-12-31T23:59:59Z")
    assert FAMILY_NAMES.index("bce-to-bce") < FAMILY_NAMES.index("bce-to-ce")


def test_family_order_is_stable() -> None:
    assert FAMILY_NAMES == (
        "dmy-to-dmy",
        "year-to-dmy",
        "dmy-to-year",
        "ymd-to-ymd",
        "compact-ymd-to-ymd",
        "compact-ym-to-ym",
        "iso-date",
        "range-late-decade",
        "range-decade",
        "year-text-month",
        "compact-ymd",
        "compact-ym",
        "dmy",
        "my",
        "early",
        "mid",
        "late",
        "decade",
        "bce-to-bce",
        "bce-to-ce",
        "bce-year",
        "after",
        "year-to-year",
        "uncertain-year",
        "year",
    )


def test_validate_instant_checks_calendar() -> None:
    assert validate_instant("2024-02-29T00:00:00Z") is not None
    assert validate_instant("2023-02-29T00:00:00Z") is None
    assert validate_instant("1930-13-01T00:00:00Z") is None
    assert validate_instant("-0500-01-01T00:00:00Z") == (-500, 1, 1, 0, 0, 0)
    assert validate_instant("1930") is None
