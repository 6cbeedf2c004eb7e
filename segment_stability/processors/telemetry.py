"""Stream raw telemetry passes and group per-pass roughness by segment and vehicle.

Query strategies, in order:
  1. cityId == X and startTsMs >= cutoff (numeric epoch-millis)
  2. cityId == X and createdAt >= cutoff (structured timestamp)
  3. cityId == X, time filtered client-side

Unlike the segment reader this load is strict: if every strategy fails the
error propagates, since an empty stream would yield a falsely confident
repeatability score.
"""
from __future__ import annotations

import logging
from typing import AbstractSet, Dict, Iterable, List, Optional, Tuple

from ..client import FirestoreAPIError
from ..config import DEFAULT_TELEMETRY_COLLECTION
from ..errors import MalformedRecordError, SourceUnavailableError
from ..models import StoredDocument, TelemetryLoadStats, TelemetryPass
from ..utils.common import ms_to_datetime
from ..utils.fallback import first_success, primed

logger = logging.getLogger(__name__)

# h3 -> vehicleHash -> per-pass metrics
SegmentVehicleMetrics = Dict[str, Dict[str, List[float]]]


def telemetry_strategies(client, city_id: str, cutoff_ms: int, collection: str = DEFAULT_TELEMETRY_COLLECTION):
    by_city = ("cityId", "==", city_id)
    return [
        ("startTsMs", lambda: primed(client.stream_query(collection, [by_city, ("startTsMs", ">=", cutoff_ms)]))),
        ("createdAt", lambda: primed(client.stream_query(collection, [by_city, ("createdAt", ">=", ms_to_datetime(cutoff_ms))]))),
        ("cityId", lambda: primed(client.stream_query(collection, [by_city]))),
    ]


def fold_passes(
    docs: Iterable[StoredDocument],
    cutoff_ms: float,
    allowed_h3: Optional[AbstractSet[str]] = None,
    stats: Optional[TelemetryLoadStats] = None,
) -> Tuple[SegmentVehicleMetrics, TelemetryLoadStats]:
    """Fold passes one at a time into the grouped metric map."""
    if stats is None:
        stats = TelemetryLoadStats()
    grouped: SegmentVehicleMetrics = {}
    for doc in docs:
        stats.seen += 1
        try:
            p = TelemetryPass.from_document(doc)
        except MalformedRecordError:
            stats.malformed += 1
            continue

        # unresolvable timestamps are kept
        if p.event_ms is not None and p.event_ms < cutoff_ms:
            stats.too_old += 1
            continue
        if allowed_h3 and p.h3 not in allowed_h3:
            stats.out_of_scope += 1
            continue

        metric = p.metric
        if metric is None:
            stats.no_metric += 1
            continue

        grouped.setdefault(p.h3, {}).setdefault(p.vehicle_hash, []).append(metric)
        stats.accepted += 1
    return grouped, stats


def load_segment_vehicle_metrics(
    client,
    city_id: str,
    cutoff_ms: int,
    allowed_h3: Optional[AbstractSet[str]] = None,
    collection: str = DEFAULT_TELEMETRY_COLLECTION,
) -> Tuple[SegmentVehicleMetrics, TelemetryLoadStats]:
    """Group valid per-pass metrics by h3 then vehicle for passes since ``cutoff_ms``.

    Raises SourceUnavailableError when no query strategy can be executed or
    the stream breaks part way.
    """
    strategy, docs = first_success(
        telemetry_strategies(client, city_id, cutoff_ms, collection),
        strict=True,
        what=f"telemetry query {collection} cityId={city_id}",
    )

    stats = TelemetryLoadStats(strategy=strategy)
    try:
        grouped, stats = fold_passes(docs, cutoff_ms, allowed_h3, stats)
    except FirestoreAPIError as e:
        raise SourceUnavailableError(
            f"Telemetry stream for {city_id} failed after {stats.seen} records: {e}"
        ) from e

    logger.info(
        "Telemetry via %s: %d passes seen, %d accepted across %d segments "
        "(malformed=%d, too_old=%d, out_of_scope=%d, no_metric=%d)",
        strategy, stats.seen, stats.accepted, len(grouped),
        stats.malformed, stats.too_old, stats.out_of_scope, stats.no_metric,
    )
    return grouped, stats
