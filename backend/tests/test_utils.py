from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from taller.utils.dates import days_between, get_app_timezone, parse_date, parse_local_datetime, to_local_date
from taller.utils.links import build_whatsapp_link
from taller.utils.money import calc_tax, calc_total, items_subtotal, money


def test_money_rounds_half_up():
    assert money(2.675) == Decimal("2.68")
    assert money("10") == Decimal("10.00")


def test_tax_and_total():
    subtotal = items_subtotal([
        {"quantity": 2, "unit_price": 30},
        {"quantity": 1, "unit_price": 40},
    ])
    tax = calc_tax(subtotal, 21)
    assert subtotal == Decimal("100.00")
    assert tax == Decimal("21.00")
    assert calc_total(subtotal, tax) == Decimal("121.00")


def test_late_utc_timestamp_falls_on_previous_local_day():
    tz = get_app_timezone("America/Argentina/Buenos_Aires")
    instant = datetime(2024, 4, 1, 2, 0, tzinfo=timezone.utc)
    assert to_local_date(instant, tz) == date(2024, 3, 31)


def test_naive_datetimes_are_read_as_utc():
    tz = get_app_timezone("UTC")
    assert to_local_date(datetime(2024, 4, 1, 23, 59), tz) == date(2024, 4, 1)
    assert to_local_date("2024-04-01T10:00:00Z", tz) == date(2024, 4, 1)


def test_parse_date_accepts_several_inputs():
    assert parse_date("2024-05-03") == date(2024, 5, 3)
    assert parse_date(datetime(2024, 5, 3, 8)) == date(2024, 5, 3)
    assert parse_date(None) is None


def test_days_between_truncates():
    start = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
    assert days_between(datetime(2024, 1, 3, 11, tzinfo=timezone.utc), start) == 1
    assert days_between(date(2024, 1, 10), date(2024, 1, 1)) == 9


def test_whatsapp_link_keeps_only_digits():
    assert build_whatsapp_link("+54 9 11 1234-5678") == "https://wa.me/5491112345678"


@pytest.mark.parametrize("phone", [None, "", "sin número"])
def test_whatsapp_link_requires_phone(phone):
    with pytest.raises(ValueError):
        build_whatsapp_link(phone)


def test_date_only_strings_are_calendar_dates():
    tz = get_app_timezone("America/Argentina/Buenos_Aires")
    assert to_local_date("2024-03-01", tz) == date(2024, 3, 1)


def test_api_dates_without_zone_are_local_time():
    midnight = parse_local_datetime("2024-03-01")
    assert midnight.tzinfo is not None
    assert to_local_date(midnight) == date(2024, 3, 1)

    late = parse_local_datetime("2024-03-31T23:30:00")
    assert to_local_date(late) == date(2024, 3, 31)

    utc = parse_local_datetime("2024-03-31T23:30:00Z")
    assert to_local_date(utc) == date(2024, 3, 31)
    assert parse_local_datetime(None) is None
