from datetime import date, time

import pytest
from fastapi import HTTPException

from roam_api.shared.formatting import (
    format_display_date,
    format_display_time,
    format_label,
    percent_change,
    render_template,
)
from roam_api.shared.pagination import clamp_limit, offset_meta, page_meta, page_offset, parse_date_param
from roam_api.shared.validators import calculate_age, format_phone_e164, is_valid_email, validate_time_of_day


def test_render_template_leaves_unknown_placeholders():
    rendered = render_template("Hi {{name}}, ref {{ref}} {{missing}}", {"name": "Casey", "ref": None})

    assert rendered == "Hi Casey, ref  {{missing}}"
    assert render_template(None, {"name": "Casey"}) == ""


def test_display_formats():
    assert format_display_date(date(2025, 1, 6)) == "Monday, January 6, 2025"
    assert format_display_date("2025-01-06T10:00:00Z") == "Monday, January 6, 2025"
    assert format_display_date(None) == "Date TBD"
    assert format_display_time(time(0, 5)) == "12:05 AM"
    assert format_display_time("14:30:00") == "2:30 PM"
    assert format_display_time(None) == "Time TBD"
    assert format_label("sole_proprietorship") == "Sole Proprietorship"


def test_percent_change():
    assert percent_change(150, 100) == 50
    assert percent_change(10, 0) == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("(555) 123-4567", "+15551234567"),
        ("1-555-123-4567", "+15551234567"),
        ("+44 20 7946 0958", "+44 20 7946 0958"),
        ("", ""),
    ],
)
def test_format_phone_e164(raw, expected):
    assert format_phone_e164(raw) == expected


def test_validators():
    assert is_valid_email(" casey@example.com ")
    assert not is_valid_email("casey@example")
    assert validate_time_of_day("23:59")
    assert not validate_time_of_day("24:00")
    assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 14)) == 17
    assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 15)) == 18


def test_pagination_helpers():
    assert clamp_limit(0) == 50
    assert clamp_limit(500, maximum=200) == 200
    assert page_offset(3, 20) == 40
    assert page_offset(0, 20) == 0
    assert page_meta(2, 20, 45) == {"page": 2, "limit": 20, "total": 45, "totalPages": 3}
    assert offset_meta(0, 10, 25, 10)["has_more"] is True


def test_parse_date_param():
    assert parse_date_param("2025-03-01", "date_from") == date(2025, 3, 1)
    assert parse_date_param(None, "date_from") is None
    with pytest.raises(HTTPException) as exc:
        parse_date_param("03/01/2025", "date_from")
    assert exc.value.detail == "Invalid date_from. Expected YYYY-MM-DD"
