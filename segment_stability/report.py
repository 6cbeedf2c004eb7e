"""
report.py
Assemble, generate and persist the stability report for one city and date.

- build_report: pure combination of already computed blocks.
- generate_report: runs the reads (concurrently) and the analytics.
- write_report: merge-upserts the report document.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, Tuple

from .analyzers.comparative import (
    SegmentMap,
    compute_grade_change,
    compute_week_over_week,
    compute_worst_segments,
)
from .analyzers.repeatability import compute_repeatability_scores
from .client import FirestoreAPIError
from .config import ReportConfig
from .errors import PersistenceError, ReportGenerationError
from .models import (
    GradeChangeStats,
    RepeatabilityResult,
    RepeatabilitySamples,
    ReportSources,
    ReportStats,
    StabilityReport,
    TelemetryLoadStats,
    WeekOverWeekStats,
    WorstSegment,
)
from .processors.segments import fetch_normalized_segments
from .processors.telemetry import SegmentVehicleMetrics, load_segment_vehicle_metrics

logger = logging.getLogger(__name__)

SERVER_TIMESTAMP_FIELDS = ("generatedAt",)


def build_report(
    config: ReportConfig,
    *,
    today_count: int,
    compare_count: int,
    worst_segments: List[WorstSegment],
    week_over_week: WeekOverWeekStats,
    grade_changes: GradeChangeStats,
    repeatability: RepeatabilityResult,
    sources: ReportSources,
    telemetry: Optional[TelemetryLoadStats] = None,
) -> StabilityReport:
    return StabilityReport(
        city_id=config.city_id,
        date=config.date_str,
        compare_date=config.compare_date_str,
        window_days=config.lookback_days,
        stats=ReportStats(
            total_segments_today=today_count,
            total_segments_compare=compare_count,
            overlap_segments=week_over_week.overlap,
            week_over_week=week_over_week,
            grade_changes=grade_changes,
            repeatability=repeatability.summary,
        ),
        worst_segments=worst_segments,
        repeatability_samples=RepeatabilitySamples(best=repeatability.best, worst=repeatability.worst),
        sources=sources,
        telemetry=telemetry.model_copy() if telemetry is not None else None,
    )


def _today_branch(client, config: ReportConfig) -> Tuple[SegmentMap, str, SegmentVehicleMetrics, TelemetryLoadStats]:
    # telemetry is scoped to today's segment set, so it follows today's read
    today, today_path = fetch_normalized_segments(
        client, config.city_id, config.date_str, config.segment_path_shapes
    )
    grouped, load_stats = load_segment_vehicle_metrics(
        client,
        config.city_id,
        config.cutoff_ms,
        allowed_h3=set(today),
        collection=config.telemetry_collection,
    )
    return today, today_path, grouped, load_stats


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


class _ReadThread(threading.Thread):
    """Daemon worker holding one read's result or error; never keeps the process alive."""

    def __init__(self, name: str, fn: Callable[..., Any], *args: Any):
        super().__init__(name=name, daemon=True)
        self._fn = fn
        self._args = args
        self.result: Any = None
        self.error: Optional[Exception] = None

    def run(self) -> None:
        try:
            self.result = self._fn(*self._args)
        except Exception as e:
            self.error = e

    def outcome(self, deadline: Optional[float], config: ReportConfig) -> Any:
        self.join(_remaining(deadline))
        if self.is_alive():
            raise ReportGenerationError(
                f"Unable to generate report for {config.city_id} on {config.date_str}: "
                f"reads did not finish within {config.timeout_seconds}s"
            )
        if self.error is not None:
            raise self.error
        return self.result


def generate_report(client, config: ReportConfig) -> StabilityReport:
    """Read both days and the telemetry window, then compute the report.

    The compare-day read runs alongside today's read and the telemetry
    stream. Read failures other than the best-effort segment reads propagate.
    """
    logger.info(
        "Generating report for city=%s, date=%s, compare=%s, topN=%d, lookbackDays=%d",
        config.city_id, config.date_str, config.compare_date_str, config.top_n, config.lookback_days,
    )
    deadline = time.monotonic() + config.timeout_seconds if config.timeout_seconds else None

    compare_read = _ReadThread(
        "stability-read-compare",
        fetch_normalized_segments,
        client, config.city_id, config.compare_date_str, config.segment_path_shapes,
    )
    today_read = _ReadThread("stability-read-today", _today_branch, client, config)
    compare_read.start()
    today_read.start()

    today, today_path, grouped, load_stats = today_read.outcome(deadline, config)
    prev, prev_path = compare_read.outcome(deadline, config)

    worst = compute_worst_segments(today, prev, config.top_n)
    wow = compute_week_over_week(today, prev)
    grades = compute_grade_change(today, prev)
    repeatability = compute_repeatability_scores(grouped)

    return build_report(
        config,
        today_count=len(today),
        compare_count=len(prev),
        worst_segments=worst,
        week_over_week=wow,
        grade_changes=grades,
        repeatability=repeatability,
        sources=ReportSources(today=today_path, compare=prev_path),
        telemetry=load_stats,
    )


def write_report(client, report: StabilityReport, config: ReportConfig) -> str:
    """Merge-upsert the report; ``generatedAt`` is stamped by the store."""
    path = config.report_path
    try:
        client.set_document(
            path,
            report.to_payload(),
            merge=True,
            server_timestamp_fields=SERVER_TIMESTAMP_FIELDS,
        )
    except FirestoreAPIError as e:
        raise PersistenceError(f"Failed to write report to {path}: {e}", path=path) from e
    logger.info("Report written to %s", path)
    return path
