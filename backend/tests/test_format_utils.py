from __future__ import annotations

from datetime import date, datetime

import pytest

from reporting.format_utils import (
    coerce_amount,
    display_money,
    fit_font_size,
    format_date_long,
    format_date_short,
    format_mileage,
    format_money,
    format_percent,
    is_present_amount,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (84500, "$84,500"),
        (84500.4, "$84,500"),
        ("$1,234", "$1,234"),
        ("91000", "$91,000"),
        (0, "$0"),
        (None, "N/A"),
        ("", "N/A"),
        ("call me", "N/A"),
        (float("nan"), "N/A"),
        (True, "N/A"),
    ],
)
def test_display_money(raw, expected):
    assert display_money(raw) == expected


def test_format_money_keeps_sign_outside_symbol():
    assert format_money(-1234.6) == "-$1,235"
    assert format_money(1_000_000) == "$1,000,000"


def test_amount_helpers():
    assert is_present_amount("0")
    assert not is_present_amount("  ")
    assert coerce_amount("12,500.75") == 12500.75
    assert coerce_amount(None) == 0.0
    assert coerce_amount("n/a") == 0.0


def test_mileage_and_percent():
    assert format_mileage(18250) == "18,250"
    assert format_mileage("4,210") == "4,210"
    assert format_mileage(None) == "N/A"
    assert format_percent(0.05) == "5.00%"
    assert format_percent(7.5) == "7.50%"
    assert format_percent("") == "N/A"


def test_dates():
    assert format_date_short(date(2026, 3, 5)) == "3/5/2026"
    assert format_date_short("2026-03-05") == "3/5/2026"
    assert format_date_short("03/05/2026") == "3/5/2026"
    assert format_date_short(datetime(2026, 10, 19, 15, 30)) == "10/19/2026"
    assert format_date_short("next week") == "next week"
    assert format_date_short(None) == "N/A"
    assert format_date_long(date(2026, 10, 19)) == "October 19, 2026"
    assert format_date_long("2026-01-02T09:00:00") == "January 2, 2026"


@pytest.mark.parametrize(
    "field, text, expected",
    [
        ("vin", "WP0AB2A93KS123456", 12),
        ("vin", "WP0AB2A93KS1234567", 10),
        ("vin", "WP0AB2A93KS12345678901", 8),
        ("make", "Porsche", 12),
        ("make", "Mercedes-Benz AMG", 10),
        ("make", "Mercedes-Maybach Pullman", 8),
        ("address", "x" * 41, 10),
        ("address", "x" * 61, 8),
        ("model", "x" * 100, 12),
        ("vin", None, 12),
    ],
)
def test_fit_font_size(field, text, expected):
    assert fit_font_size(field, text) == expected


def test_fit_font_size_respects_base():
    assert fit_font_size("vin", "ABC", base=9) == 9
