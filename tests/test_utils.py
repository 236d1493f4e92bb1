from datetime import datetime, timezone

import pytest

from wallbox_bridge.utils import (
    error,
    log_error_and_return_clean_message,
    normalize_membership_id,
    ok,
    parse_timestamp,
    to_iso,
)


def test_result_values():
    assert ok(5) == {"ok": True, "value": 5}
    assert ok() == {"ok": True, "value": None}
    assert error("boom") == {"ok": False, "error": "boom"}


def test_clean_message_hides_details():
    result = log_error_and_return_clean_message("HTTP error", 500, "secret body")

    assert result == {"ok": False, "error": "HTTP error"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-05-01T10:00:00Z", datetime(2024, 5, 1, 10, tzinfo=timezone.utc)),
        ("2024-05-01T12:00:00+02:00", datetime(2024, 5, 1, 10, tzinfo=timezone.utc)),
        ("2024-05-01T10:00:00", datetime(2024, 5, 1, 10, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp(value, expected):
    parsed = parse_timestamp(value)

    assert parsed == expected
    assert parsed.tzinfo is not None


def test_to_iso_uses_z_suffix():
    assert to_iso(datetime(2024, 5, 1, 10, tzinfo=timezone.utc)) == "2024-05-01T10:00:00Z"
    assert to_iso(datetime(2024, 5, 1, 10)) == "2024-05-01T10:00:00Z"


@pytest.mark.parametrize(
    "value, expected",
    [(None, None), ("", None), ("__nobody", None), ("mem-42", "mem-42")],
)
def test_normalize_membership_id(value, expected):
    assert normalize_membership_id(value) == expected
