"""
Shared fixtures: an in-memory document store with the same surface as
FirestoreClient (stream_collection / stream_query / set_document).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from segment_stability.client import FirestoreAPIError
from segment_stability.models import StoredDocument


def make_doc(doc_id: str, collection: str = "c", **data: Any) -> StoredDocument:
    return StoredDocument(id=doc_id, path=f"{collection}/{doc_id}", data=data)


def seg_doc(h3: str, value: Any, **extra: Any) -> StoredDocument:
    return make_doc(h3, "cells", h3=h3, normalizedMedian=value, **extra)


def pass_doc(doc_id: str, h3: str, vehicle: str, energy: float, samples: float = 1, **extra: Any) -> StoredDocument:
    data: Dict[str, Any] = {
        "cityId": "metro",
        "h3": h3,
        "vehicleHash": vehicle,
        "roughnessEnergySum": energy,
        "sampleCount": samples,
    }
    data.update(extra)
    return StoredDocument(id=doc_id, path=f"telemetrySegmentPasses/{doc_id}", data=data)


def _matches(data: Dict[str, Any], filters) -> bool:
    for field, op, value in filters:
        actual = data.get(field)
        if op == "==":
            if actual != value:
                return False
        elif op == ">=":
            try:
                if actual is None or not actual >= value:
                    return False
            except TypeError:
                return False
        else:
            raise ValueError(f"FakeStore does not support {op!r}")
    return True


class FakeStore:
    def __init__(self):
        self.collections: Dict[str, List[StoredDocument]] = {}
        self.passes: List[StoredDocument] = []
        self.failing_collections: Dict[str, Exception] = {}
        # filter field name -> error raised by any query filtering on it
        self.failing_query_fields: Dict[str, Exception] = {}
        # raise after yielding this many query results
        self.break_stream_after: Optional[int] = None
        self.collection_reads: List[str] = []
        self.queries: List[list] = []
        self.writes: List[dict] = []
        self.write_error: Optional[Exception] = None

    def add_segments(self, path: str, *docs: StoredDocument) -> None:
        self.collections.setdefault(path, []).extend(docs)

    def stream_collection(self, path: str):
        self.collection_reads.append(path)
        if path in self.failing_collections:
            raise self.failing_collections[path]
        yield from self.collections.get(path, [])

    def stream_query(self, collection: str, filters=()):
        filters = list(filters)
        self.queries.append(filters)
        for field, _, _ in filters:
            if field in self.failing_query_fields:
                raise self.failing_query_fields[field]
        for n, doc in enumerate(d for d in self.passes if _matches(d.data, filters)):
            if self.break_stream_after is not None and n >= self.break_stream_after:
                raise FirestoreAPIError("stream interrupted", status=503)
            yield doc

    def set_document(self, path, data, *, merge=True, server_timestamp_fields=()):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(
            {"path": path, "data": data, "merge": merge, "server_timestamp_fields": tuple(server_timestamp_fields)}
        )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
