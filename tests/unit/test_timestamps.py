import pytest

from errors import InvalidTimestamp, RowError
from timestamps import SECONDS_THRESHOLD, normalize


def test_seconds_are_scaled_to_milliseconds():
    assert normalize(1700000000) == 1700000000000


def test_milliseconds_pass_through():
    assert normalize(1700000000000) == 1700000000000


def test_threshold_itself_is_milliseconds():
    assert normalize(SECONDS_THRESHOLD) == SECONDS_THRESHOLD
    assert normalize(SECONDS_THRESHOLD - 1) == (SECONDS_THRESHOLD - 1) * 1000


def test_fractional_seconds_round_to_nearest_ms():
    assert normalize(1700000000.25) == 1700000000250


def test_iso_string_with_offset():
    assert normalize("2023-11-14T22:13:20Z") == 1700000000000
    assert normalize("2023-11-15T00:13:20+02:00") == 1700000000000


def test_offsetless_string_is_utc():
    assert normalize("2023-11-14T22:13:20") == 1700000000000
    assert normalize("2024-01-01") == 1704067200000


def test_apple_health_layout():
    assert normalize("2023-11-14 17:13:20 -0500") == 1700000000000


@pytest.mark.parametrize("raw", ["not-a-date", "", "   ", None, True, float("nan"), float("inf"), [1]])
def test_unparseable_values_fail(raw):
    with pytest.raises(InvalidTimestamp):
        normalize(raw)


def test_invalid_timestamp_is_a_row_error():
    with pytest.raises(RowError):
        normalize("yesterday-ish")
