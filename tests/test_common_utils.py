import math
from datetime import date, datetime, timezone

import pytest

from segment_stability.utils.common import (
    as_key,
    average,
    day_start_ms,
    lookback_cutoff_ms,
    median,
    ms_to_datetime,
    parse_report_date,
    quantile,
    resolve_field,
    round_number,
    timestamp_to_ms,
    to_finite_number,
    variance,
)


NOISE = [None, "x", float("nan"), float("inf"), True]


def test_average_and_median_ignore_non_finite():
    assert average([1, 2, 3, *NOISE]) == 2
    assert median([5, 1, 3, *NOISE]) == 3
    assert median([1, 2, 3, 4]) == 2.5


def test_empty_inputs_give_none():
    assert average([]) is None
    assert median([None, "a"]) is None
    assert quantile([], 0.5) is None
    assert variance([]) is None


def test_variance_is_population_and_needs_two_values():
    assert variance([4.0]) is None
    assert variance([4.0, None]) is None
    assert variance([1.0, 3.0]) == pytest.approx(1.0)
    assert variance([0.4, 0.9, 1.5]) == pytest.approx(0.2022222, rel=1e-5)


def test_quantile_interpolates():
    vals = [10, 20, 30, 40]
    assert quantile(vals, 0.0) == 10
    assert quantile(vals, 1.0) == 40
    assert quantile(vals, 0.25) == pytest.approx(17.5)
    assert quantile(vals, 0.5) == pytest.approx(25)
    assert quantile([7], 0.75) == 7


def test_statistics_are_order_independent():
    vals = [3.2, 1.1, 9.7, 4.4, 2.0]
    shuffled = [9.7, 2.0, 3.2, 4.4, 1.1]
    assert average(vals) == pytest.approx(average(shuffled))
    assert median(vals) == median(shuffled)
    assert variance(vals) == pytest.approx(variance(shuffled))
    for q in (0.25, 0.5, 0.75):
        assert quantile(vals, q) == pytest.approx(quantile(shuffled, q))


def test_round_number():
    assert round_number(1.234567, 2) == 1.23
    assert round_number(2.5e-6) == 0.0
    assert round_number(3) == 3.0
    for bad in (None, "1.2", float("nan"), float("inf"), False):
        assert round_number(bad) is None


def test_to_finite_number():
    assert to_finite_number("1.5") == 1.5
    assert to_finite_number(" 2 ") == 2.0
    assert to_finite_number(4) == 4.0
    for bad in ("", "abc", None, True, float("nan"), [1]):
        assert to_finite_number(bad) is None


def test_as_key():
    assert as_key(" 8928 ") == "8928"
    assert as_key(42) == "42"
    assert as_key("") is None
    assert as_key(False) is None
    assert as_key(1.5) is None


def test_resolve_field_skips_wrong_types():
    record = {"startTsMs": "later", "startTimeMs": 1000, "endTs": 5}
    assert resolve_field(record, ("startTsMs", "startTimeMs", "endTs"), to_finite_number) == 1000
    assert resolve_field({"a": None, "b": "v"}, ("a", "b")) == "v"
    assert resolve_field({}, ("a",)) is None


def test_timestamp_to_ms():
    dt = datetime(2025, 6, 1, tzinfo=timezone.utc)
    expected = dt.timestamp() * 1000
    assert timestamp_to_ms(dt) == expected
    assert timestamp_to_ms(datetime(2025, 6, 1)) == expected
    assert timestamp_to_ms({"seconds": dt.timestamp(), "nanoseconds": 5_000_000}) == expected + 5
    assert timestamp_to_ms({"_seconds": dt.timestamp(), "_nanoseconds": 0}) == expected
    assert timestamp_to_ms({"nanoseconds": 1}) is None
    assert timestamp_to_ms("2025-06-01") is None


def test_dates():
    day = parse_report_date("2025-06-01")
    assert day == date(2025, 6, 1)
    assert day_start_ms(day) == 1748736000000
    assert lookback_cutoff_ms(day, 30) == 1748736000000 - 30 * 86_400_000
    assert ms_to_datetime(1748736000000) == datetime(2025, 6, 1, tzinfo=timezone.utc)
    for bad in ("2025-13-01", "06/01/2025", "tomorrow"):
        with pytest.raises(ValueError):
            parse_report_date(bad)


def test_rounding_does_not_break_finiteness():
    assert math.isfinite(round_number(1e300, 4))
