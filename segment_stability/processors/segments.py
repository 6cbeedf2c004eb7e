"""Read the normalized per-segment aggregates for one city and date.

The aggregates have lived under more than one collection layout; every known
layout is probed in order and the first that yields data wins. This read is
best-effort: when no layout has data the day is reported as empty.
"""
from __future__ import annotations

import logging
from typing import Dict, Sequence, Tuple

from ..config import DEFAULT_SEGMENT_PATH_SHAPES
from ..models import SegmentAggregate
from ..utils.fallback import first_success

logger = logging.getLogger(__name__)

SegmentMap = Dict[str, SegmentAggregate]


def segment_paths(city_id: str, date_str: str, path_shapes: Sequence[str] = DEFAULT_SEGMENT_PATH_SHAPES) -> list:
    return [shape.format(city_id=city_id, date=date_str) for shape in path_shapes]


def read_segment_collection(client, path: str) -> SegmentMap:
    """Fold one collection into an insertion-ordered h3 -> SegmentAggregate map."""
    segments: SegmentMap = {}
    for doc in client.stream_collection(path):
        seg = SegmentAggregate.from_document(doc)
        if seg is None:
            continue
        segments[seg.h3] = seg
    return segments


def fetch_normalized_segments(
    client,
    city_id: str,
    date_str: str,
    path_shapes: Sequence[str] = DEFAULT_SEGMENT_PATH_SHAPES,
) -> Tuple[SegmentMap, str]:
    """Return ``(segments, source_path)`` from the first layout with data.

    Falls back to ``({}, <first candidate path>)`` when every layout fails
    or is empty.
    """
    paths = segment_paths(city_id, date_str, path_shapes)
    if not paths:
        raise ValueError("at least one segment path shape is required")

    found = first_success(
        [(p, lambda p=p: read_segment_collection(client, p)) for p in paths],
        accept=bool,
        what=f"segments {city_id}/{date_str}",
    )
    if found is None:
        logger.warning("No segment aggregates found for %s on %s (tried %s)", city_id, date_str, ", ".join(paths))
        return {}, paths[0]

    path, segments = found
    logger.info("Loaded %d segments for %s (%s)", len(segments), date_str, path)
    return segments, path
