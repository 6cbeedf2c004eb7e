"""Compare today's segment aggregates against the comparison day.

Inputs are insertion-ordered ``h3 -> SegmentAggregate`` maps; iteration order
of ``today`` is the tie-break for every ordering produced here.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from ..models import GradeChangeStats, SegmentAggregate, WeekOverWeekStats, WorstSegment
from ..utils.common import average, median, round_number

SegmentMap = Dict[str, SegmentAggregate]


def _prev_value(prev: Optional[SegmentAggregate]) -> Optional[float]:
    return prev.normalized_median if prev is not None else None


def compute_worst_segments(today: SegmentMap, prev: SegmentMap, limit: int) -> List[WorstSegment]:
    """Top ``limit`` segments by normalizedMedian (higher is worse), ranked from 1."""
    scored = [seg for seg in today.values() if seg.normalized_median is not None]
    # sort is stable, so equal values keep map order
    scored.sort(key=lambda s: s.normalized_median, reverse=True)

    out: List[WorstSegment] = []
    for idx, seg in enumerate(scored[: max(0, limit)]):
        before = prev.get(seg.h3)
        before_value = _prev_value(before)
        previous_grade = before.grade if before is not None else None

        delta = None
        grade_changed = None
        if before_value is not None:
            delta = seg.normalized_median - before_value
            if previous_grade and seg.grade:
                grade_changed = seg.grade != previous_grade

        out.append(
            WorstSegment(
                rank=idx + 1,
                h3=seg.h3,
                normalized_median=round_number(seg.normalized_median, 5),
                percentile_all=round_number(seg.percentile_all, 2),
                grade_all=seg.grade_all,
                percentile_within_type=round_number(seg.percentile_within_type, 2),
                grade_within_type=seg.grade_within_type,
                road_type=seg.road_type,
                sample_count=seg.sample_count,
                unique_vehicles=seg.unique_vehicles,
                week_over_week_delta=round_number(delta, 5),
                grade_changed=grade_changed,
                previous_grade=previous_grade,
                road_name=seg.road_name,
            )
        )
    return out


def compute_week_over_week(today: SegmentMap, prev: SegmentMap) -> WeekOverWeekStats:
    """Averages use each day's full population; deltas use only the overlap."""
    today_vals = [s.normalized_median for s in today.values() if s.normalized_median is not None]
    prev_vals = [s.normalized_median for s in prev.values() if s.normalized_median is not None]

    paired_diffs: List[float] = []
    for seg in today.values():
        if seg.normalized_median is None:
            continue
        before_value = _prev_value(prev.get(seg.h3))
        if before_value is not None:
            paired_diffs.append(seg.normalized_median - before_value)

    avg_today = average(today_vals)
    avg_prev = average(prev_vals)
    avg_delta = avg_today - avg_prev if avg_today is not None and avg_prev is not None else None

    return WeekOverWeekStats(
        overlap=len(paired_diffs),
        average_today=round_number(avg_today, 5),
        average_prev=round_number(avg_prev, 5),
        average_delta=round_number(avg_delta, 5),
        median_delta=round_number(median(paired_diffs), 5),
        improved_count=sum(1 for d in paired_diffs if d < 0),
        worsened_count=sum(1 for d in paired_diffs if d > 0),
    )


def compute_grade_change(today: SegmentMap, prev: SegmentMap) -> GradeChangeStats:
    """Share of overlapping segments whose grade label changed.

    Precondition: grades are single-letter codes where an alphabetically
    earlier letter is better ("A" beats "B"). Labels are compared as raw
    strings; any other grading alphabet will be misclassified.
    """
    overlap = changed = improved = worsened = 0
    for seg in today.values():
        before = prev.get(seg.h3)
        if before is None:
            continue
        current_grade = seg.grade
        previous_grade = before.grade
        if not current_grade or not previous_grade:
            continue
        overlap += 1
        if current_grade != previous_grade:
            changed += 1
            if current_grade < previous_grade:
                improved += 1
            else:
                worsened += 1

    return GradeChangeStats(
        overlap=overlap,
        changed=changed,
        percent_changed=round_number(changed / overlap * 100, 2) if overlap else None,
        improved=improved,
        worsened=worsened,
    )
