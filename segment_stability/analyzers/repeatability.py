"""Repeatability: how closely different vehicles agree on a segment's roughness.

Each vehicle is represented by the median of its per-pass metrics. The
population variance of those medians maps to a score in (0, 1]:

    score = 1 / (1 + variance)

so perfect agreement scores 1 and the score falls as vehicles disagree.
Segments seen by fewer than two vehicles are not scored.
"""
from __future__ import annotations

from typing import List, Mapping, Sequence, Tuple

from ..models import RepeatabilityResult, RepeatabilitySample, RepeatabilitySummary
from ..utils.common import average, median, quantile, round_number, variance

SAMPLE_SIZE = 5


def score_from_variance(var: float) -> float:
    return 1.0 / (1.0 + var)


def vehicle_medians(vehicles: Mapping[str, Sequence[float]]) -> List[float]:
    medians = []
    for metrics in vehicles.values():
        med = median(metrics)
        if med is not None:
            medians.append(med)
    return medians


def score_segment(vehicles: Mapping[str, Sequence[float]]) -> Tuple[int, float, float] | None:
    """``(vehicle_count, variance, score)`` or None when fewer than two vehicles report."""
    medians = vehicle_medians(vehicles)
    if len(medians) < 2:
        return None
    var = variance(medians)
    if var is None:
        return None
    return len(medians), var, score_from_variance(var)


def compute_repeatability_scores(
    segment_vehicles: Mapping[str, Mapping[str, Sequence[float]]],
    sample_size: int = SAMPLE_SIZE,
) -> RepeatabilityResult:
    scored: List[Tuple[str, int, float, float]] = []
    for h3, vehicles in segment_vehicles.items():
        result = score_segment(vehicles)
        if result is None:
            continue
        scored.append((h3, *result))

    scores = [s[3] for s in scored]
    summary = RepeatabilitySummary(
        segment_count=len(scored),
        mean=round_number(average(scores), 6),
        median=round_number(median(scores), 6),
        p25=round_number(quantile(scores, 0.25), 6),
        p75=round_number(quantile(scores, 0.75), 6),
    )

    ranked = sorted(scored, key=lambda s: s[3], reverse=True)
    samples = [
        RepeatabilitySample(
            h3=h3,
            vehicle_count=count,
            variance=round_number(var, 6),
            score=round_number(score, 6),
        )
        for h3, count, var, score in ranked
    ]
    n = max(0, sample_size)
    return RepeatabilityResult(
        summary=summary,
        best=samples[:n],
        # least repeatable first; samples[-0:] would be the whole list
        worst=list(reversed(samples[-n:])) if n else [],
    )

