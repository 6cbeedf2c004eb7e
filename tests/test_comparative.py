import pytest

from segment_stability.analyzers.comparative import (
    compute_grade_change,
    compute_week_over_week,
    compute_worst_segments,
)
from segment_stability.models import SegmentAggregate


def segs(*rows):
    out = {}
    for row in rows:
        seg = SegmentAggregate.model_validate(row)
        out[seg.h3] = seg
    return out


def test_week_over_week_delta_for_worsened_segment():
    today = segs({"h3": "abc", "normalizedMedian": 0.8})
    prev = segs({"h3": "abc", "normalizedMedian": 0.5})

    worst = compute_worst_segments(today, prev, 10)
    assert worst[0].week_over_week_delta == pytest.approx(0.3)

    wow = compute_week_over_week(today, prev)
    assert wow.overlap == 1
    assert wow.worsened_count == 1
    assert wow.improved_count == 0
    assert wow.median_delta == pytest.approx(0.3)


def test_segment_only_present_today():
    today = segs(
        {"h3": "new", "normalizedMedian": 2.0, "gradeAll": "D"},
        {"h3": "old", "normalizedMedian": 1.0, "gradeAll": "B"},
    )
    prev = segs({"h3": "old", "normalizedMedian": 1.5, "gradeAll": "C"})

    worst = compute_worst_segments(today, prev, 10)
    assert worst[0].h3 == "new"
    assert worst[0].week_over_week_delta is None
    assert worst[0].grade_changed is None
    assert worst[0].previous_grade is None
    assert worst[1].week_over_week_delta == pytest.approx(-0.5)
    assert worst[1].grade_changed is True
    assert worst[1].previous_grade == "C"

    wow = compute_week_over_week(today, prev)
    assert wow.overlap == 1
    assert wow.median_delta == pytest.approx(-0.5)
    assert wow.improved_count == 1
    # averages use each day's full population
    assert wow.average_today == pytest.approx(1.5)
    assert wow.average_prev == pytest.approx(1.5)
    assert wow.average_delta == pytest.approx(0.0)


def test_top_n_limits_and_ranks():
    today = segs(*({"h3": f"s{i}", "normalizedMedian": v} for i, v in enumerate([0.3, 0.9, 0.1, 0.7, 0.5])))
    worst = compute_worst_segments(today, {}, 2)
    assert [w.rank for w in worst] == [1, 2]
    assert [w.h3 for w in worst] == ["s1", "s3"]
    assert worst[0].normalized_median > worst[1].normalized_median


def test_worst_segments_skip_missing_values_and_keep_ties_in_order():
    today = segs(
        {"h3": "a", "normalizedMedian": 1.0},
        {"h3": "none", "normalizedMedian": None},
        {"h3": "b", "normalizedMedian": 1.0},
        {"h3": "c", "normalizedMedian": 2.0},
    )
    first = compute_worst_segments(today, {}, 50)
    again = compute_worst_segments(today, {}, 50)
    assert [w.h3 for w in first] == ["c", "a", "b"]
    assert [(w.rank, w.h3) for w in first] == [(r.rank, r.h3) for r in again]


def test_worst_segment_fields_are_rounded_and_carried():
    today = segs({
        "h3": "a", "normalizedMedian": 1.1234567, "percentileAll": 97.4567, "gradeAll": "E",
        "percentileWithinType": 88.888, "gradeWithinType": "D", "roadType": "primary",
        "sampleCount": 12, "uniqueVehicles": 4, "roadName": "Main St",
    })
    prev = segs({"h3": "a", "normalizedMedian": 1.0, "gradeWithinType": "D"})
    (w,) = compute_worst_segments(today, prev, 5)
    assert w.normalized_median == 1.12346
    assert w.percentile_all == 97.46
    assert w.percentile_within_type == 88.89
    assert w.week_over_week_delta == 0.12346
    assert w.grade_changed is False
    assert w.previous_grade == "D"
    assert w.sample_count == 12
    assert w.road_name == "Main St"


def test_previous_grade_reported_without_prev_value():
    today = segs({"h3": "a", "normalizedMedian": 1.0, "gradeAll": "B"})
    prev = segs({"h3": "a", "normalizedMedian": None, "gradeAll": "A"})
    (w,) = compute_worst_segments(today, prev, 5)
    assert w.week_over_week_delta is None
    assert w.grade_changed is None
    assert w.previous_grade == "A"


def test_unchanged_values_count_in_overlap_only():
    today = segs({"h3": "a", "normalizedMedian": 1.0}, {"h3": "b", "normalizedMedian": 2.0})
    prev = segs({"h3": "a", "normalizedMedian": 1.0}, {"h3": "b", "normalizedMedian": 2.5})
    wow = compute_week_over_week(today, prev)
    assert wow.overlap == 2
    assert wow.improved_count + wow.worsened_count < wow.overlap


def test_week_over_week_with_no_data():
    wow = compute_week_over_week({}, {})
    assert wow.overlap == 0
    assert wow.average_today is None
    assert wow.average_delta is None
    assert wow.median_delta is None


def test_grade_changes():
    today = segs(
        {"h3": "a", "gradeAll": "A"},
        {"h3": "b", "gradeAll": "C"},
        {"h3": "c", "gradeWithinType": "B", "gradeAll": "E"},
        {"h3": "d", "gradeAll": "B"},
        {"h3": "e"},
    )
    prev = segs(
        {"h3": "a", "gradeAll": "B"},
        {"h3": "b", "gradeAll": "B"},
        {"h3": "c", "gradeWithinType": "B"},
        {"h3": "e", "gradeAll": "A"},
    )
    stats = compute_grade_change(today, prev)
    assert stats.overlap == 3
    assert stats.changed == 2
    assert stats.improved == 1
    assert stats.worsened == 1
    assert stats.percent_changed == pytest.approx(66.67)
    assert stats.changed <= stats.overlap


def test_grade_changes_without_overlap():
    stats = compute_grade_change(segs({"h3": "a", "gradeAll": "A"}), {})
    assert stats.overlap == 0
    assert stats.percent_changed is None
