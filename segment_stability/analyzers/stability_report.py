#!/usr/bin/env python3
"""Generate the road-segment stability report for one city and date.

Reads the normalized daily segment aggregates for the date and for seven days
earlier, plus the raw telemetry passes of the lookback window, and writes:
- Top N worst segments by normalized roughness, with week-over-week deltas.
- Week-over-week summary and the share of segments that changed grade.
- Repeatability (lower variance across vehicles => higher trust).

The report is merged into ``municipalReports/{cityId}/days/{date}``.

Run example:
    python -m segment_stability.analyzers.stability_report --cityId=metro --date=2025-06-01 --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..client import FirestoreClient
from ..config import DEFAULT_LOOKBACK_DAYS, DEFAULT_TOP_N, ReportConfig, Settings
from ..errors import ConfigurationError, PersistenceError, StabilityReportError
from ..models import StabilityReport
from ..report import generate_report, write_report
from ..utils.common import parse_report_date
from ..utils.export_utils import dumps_json, write_json

logger = logging.getLogger(__name__)


def build_client(settings: Settings) -> FirestoreClient:
    return FirestoreClient.from_settings(settings)


def _positive_int(raw: Optional[str], default: int, flag: str) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        logger.warning("Ignoring invalid %s=%r, using %d", flag, raw, default)
        return default
    return value


def config_from_args(args: argparse.Namespace, today: Optional[str] = None) -> ReportConfig:
    """Resolve CLI flags (and the current UTC date) into an explicit ReportConfig."""
    city_id = (args.city_id or "").strip()
    if not city_id:
        raise ConfigurationError("--cityId is required")

    date_raw = args.date or today or datetime.now(timezone.utc).date().isoformat()
    try:
        report_date = parse_report_date(date_raw)
    except ValueError as e:
        raise ConfigurationError(f"--date must be YYYY-MM-DD, got {date_raw!r}") from e

    try:
        return ReportConfig(
            city_id=city_id,
            report_date=report_date,
            top_n=_positive_int(args.top_n, DEFAULT_TOP_N, "--topN"),
            lookback_days=_positive_int(args.lookback_days, DEFAULT_LOOKBACK_DAYS, "--lookbackDays"),
            timeout_seconds=args.timeout,
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def summarize(report: StabilityReport) -> str:
    stats = report.stats
    wow = stats.week_over_week
    grades = stats.grade_changes
    rep = stats.repeatability
    lines = [
        f"Stability report {report.city_id} {report.date} (compare {report.compare_date})",
        f"  segments: today={stats.total_segments_today} compare={stats.total_segments_compare} overlap={stats.overlap_segments}",
        f"  week-over-week: avgToday={wow.average_today} avgPrev={wow.average_prev} "
        f"avgDelta={wow.average_delta} medianDelta={wow.median_delta} "
        f"improved={wow.improved_count} worsened={wow.worsened_count}",
        f"  grades: overlap={grades.overlap} changed={grades.changed} ({grades.percent_changed}%) "
        f"improved={grades.improved} worsened={grades.worsened}",
        f"  repeatability: segments={rep.segment_count} mean={rep.mean} median={rep.median} p25={rep.p25} p75={rep.p75}",
        f"  worst segments listed: {len(report.worst_segments)}",
        f"  sources: today={report.sources.today} compare={report.sources.compare}",
    ]
    return "\n".join(lines)


def register_subparser(parser: argparse.ArgumentParser) -> None:
    """Register argparse options (shared by this module and the top-level CLI)."""
    # cityId is validated by the program so a missing value exits 1, not 2
    parser.add_argument("--cityId", "--city-id", dest="city_id", default=None, help="City identifier (required)")
    parser.add_argument("--date", default=None, help="Report date YYYY-MM-DD (default: current UTC date)")
    parser.add_argument("--topN", "--top-n", dest="top_n", default=None, help=f"Worst segments to list (default {DEFAULT_TOP_N})")
    parser.add_argument(
        "--lookbackDays", "--lookback-days", dest="lookback_days", default=None,
        help=f"Telemetry window in days (default {DEFAULT_LOOKBACK_DAYS})",
    )
    parser.add_argument("--dry-run", "--dryRun", dest="dry_run", action="store_true", help="Compute and print without writing")
    parser.add_argument("--project", dest="project_id", default=None, help="Firestore project id (overrides environment)")
    parser.add_argument("--out", type=Path, default=None, help="Also write the report JSON to this path")
    parser.add_argument("--timeout", type=float, default=None, help="Give up if reads take longer than this many seconds")
    parser.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Generate the segment stability report for a city")
    register_subparser(p)
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        settings = Settings()
        if args.project_id:
            settings = settings.model_copy(update={"project_id": args.project_id})
        client = build_client(settings)
        report = generate_report(client, config)
    except StabilityReportError as e:
        logger.error("Unable to generate report: %s", e)
        return 1
    except Exception:
        logger.exception("Unable to generate report")
        return 1

    payload = report.to_payload()
    if args.out:
        write_json(payload, args.out)
        logger.info("Report JSON written to %s", args.out)

    if args.dry_run:
        print(dumps_json(payload))
        return 0

    try:
        path = write_report(client, report, config)
    except PersistenceError as e:
        logger.error("%s", e)
        logger.error("Undelivered report payload: %s", dumps_json(payload, indent=None))
        return 1

    print(summarize(report))
    print(f"Report written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
