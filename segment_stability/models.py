"""
models.py
Typed data models for the stability report job.

Input records (read from the document store):
- SegmentAggregate: one h3 cell's normalized roughness aggregate for a city+date
  (segmentNormalizedDaily/...).
- TelemetryPass: one vehicle's traversal of a segment (telemetrySegmentPasses).

Output value (written to municipalReports/{cityId}/days/{date}):
- StabilityReport and its nested statistics blocks.

Design:
- Pydantic v2 models with camelCase aliases matching the stored documents.
- Input models coerce loosely typed stored values (numeric strings, empty labels).
- Output models are frozen; ``StabilityReport.to_payload()`` gives the document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import MalformedRecordError
from .utils.common import as_key, resolve_field, timestamp_to_ms, to_finite_number

Number = Union[int, float]


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _finite_or_none(v: Any) -> Optional[Number]:
    num = to_finite_number(v)
    if num is None:
        return None
    return int(num) if isinstance(v, int) and not isinstance(v, bool) else num


def _label_or_none(v: Any) -> Optional[str]:
    if v is None or isinstance(v, bool):
        return None
    s = str(v).strip()
    return s or None


# ------------------------------------------------------------------------------
# Stored documents
# ------------------------------------------------------------------------------

@dataclass
class StoredDocument:
    """A read document: id, path from the database root, and its fields."""
    id: str
    path: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snap) -> "StoredDocument":
        return cls(id=snap.id, path=snap.reference.path, data=snap.to_dict() or {})


# Ordered candidate field names; the first present, well-typed value wins.
SEGMENT_KEY_FIELDS = ("h3", "segmentId")
VEHICLE_KEY_FIELDS = ("vehicleHash", "vehicleId")
NUMERIC_TIMESTAMP_FIELDS = ("startTsMs", "startTimeMs", "startTs", "endTsMs", "endTimeMs", "endTs")
STRUCTURED_TIMESTAMP_FIELDS = ("createdAt",)
ENERGY_FIELDS = ("roughnessEnergySum", "sumEnergyWeighted", "sumEnergy")


# ------------------------------------------------------------------------------
# Input records
# ------------------------------------------------------------------------------

class SegmentAggregate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    h3: str
    normalized_median: Optional[float] = Field(default=None, alias="normalizedMedian")
    percentile_all: Optional[float] = Field(default=None, alias="percentileAll")
    grade_all: Optional[str] = Field(default=None, alias="gradeAll")
    percentile_within_type: Optional[float] = Field(default=None, alias="percentileWithinType")
    grade_within_type: Optional[str] = Field(default=None, alias="gradeWithinType")
    road_type: Optional[str] = Field(default=None, alias="roadType")
    sample_count: Optional[Number] = Field(default=None, alias="sampleCount")
    unique_vehicles: Optional[Number] = Field(default=None, alias="uniqueVehicles")
    road_name: Optional[str] = Field(default=None, alias="roadName")

    @field_validator(
        "normalized_median", "percentile_all", "percentile_within_type", mode="before"
    )
    @classmethod
    def _coerce_float(cls, v: Any) -> Optional[float]:
        return to_finite_number(v)

    @field_validator("sample_count", "unique_vehicles", mode="before")
    @classmethod
    def _coerce_count(cls, v: Any) -> Optional[Number]:
        return _finite_or_none(v)

    @field_validator("grade_all", "grade_within_type", "road_type", "road_name", mode="before")
    @classmethod
    def _coerce_label(cls, v: Any) -> Optional[str]:
        return _label_or_none(v)

    @property
    def grade(self) -> Optional[str]:
        """Road-type grade when present, else the city-wide grade."""
        return self.grade_within_type or self.grade_all

    @classmethod
    def from_document(cls, doc: StoredDocument) -> Optional["SegmentAggregate"]:
        data = doc.data or {}
        h3 = as_key(data.get("h3")) or as_key(doc.id)
        if not h3:
            return None
        # stored field names only; snake_case lookalikes are not read
        known = {f.alias or name for name, f in cls.model_fields.items()}
        payload = {k: v for k, v in data.items() if k in known}
        payload["h3"] = h3
        return cls.model_validate(payload)


class TelemetryPass(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    city_id: Optional[str] = Field(default=None, alias="cityId")
    h3: str
    vehicle_hash: str = Field(alias="vehicleHash")
    event_ms: Optional[float] = Field(default=None, alias="eventMs")
    energy: Optional[float] = Field(default=None, alias="energy")
    sample_count: Optional[float] = Field(default=None, alias="sampleCount")

    @property
    def metric(self) -> Optional[float]:
        """Per-pass roughness: energy per sample."""
        if self.energy is None or self.sample_count is None or self.sample_count <= 0:
            return None
        return self.energy / self.sample_count

    @staticmethod
    def resolve_event_ms(data: Dict[str, Any]) -> Optional[float]:
        ms = resolve_field(data, NUMERIC_TIMESTAMP_FIELDS, to_finite_number)
        if ms is not None:
            return ms
        return resolve_field(data, STRUCTURED_TIMESTAMP_FIELDS, timestamp_to_ms)

    @classmethod
    def from_document(cls, doc: StoredDocument) -> "TelemetryPass":
        data = doc.data or {}
        h3 = resolve_field(data, SEGMENT_KEY_FIELDS, as_key)
        vehicle = resolve_field(data, VEHICLE_KEY_FIELDS, as_key)
        if not h3 or not vehicle:
            raise MalformedRecordError(f"pass {doc.id} has no segment or vehicle id", doc_id=doc.id)
        return cls(
            city_id=as_key(data.get("cityId")),
            h3=h3,
            vehicle_hash=vehicle,
            event_ms=cls.resolve_event_ms(data),
            energy=resolve_field(data, ENERGY_FIELDS, to_finite_number),
            sample_count=to_finite_number(data.get("sampleCount")),
        )


# ------------------------------------------------------------------------------
# Report blocks
# ------------------------------------------------------------------------------

class ReportModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WorstSegment(ReportModel):
    rank: int
    h3: str
    normalized_median: Optional[float] = Field(default=None, alias="normalizedMedian")
    percentile_all: Optional[float] = Field(default=None, alias="percentileAll")
    grade_all: Optional[str] = Field(default=None, alias="gradeAll")
    percentile_within_type: Optional[float] = Field(default=None, alias="percentileWithinType")
    grade_within_type: Optional[str] = Field(default=None, alias="gradeWithinType")
    road_type: Optional[str] = Field(default=None, alias="roadType")
    sample_count: Optional[Number] = Field(default=None, alias="sampleCount")
    unique_vehicles: Optional[Number] = Field(default=None, alias="uniqueVehicles")
    week_over_week_delta: Optional[float] = Field(default=None, alias="weekOverWeekDelta")
    grade_changed: Optional[bool] = Field(default=None, alias="gradeChanged")
    previous_grade: Optional[str] = Field(default=None, alias="previousGrade")
    road_name: Optional[str] = Field(default=None, alias="roadName")


class WeekOverWeekStats(ReportModel):
    overlap: int = 0
    average_today: Optional[float] = Field(default=None, alias="averageToday")
    average_prev: Optional[float] = Field(default=None, alias="averagePrev")
    average_delta: Optional[float] = Field(default=None, alias="averageDelta")
    median_delta: Optional[float] = Field(default=None, alias="medianDelta")
    improved_count: int = Field(default=0, alias="improvedCount")
    worsened_count: int = Field(default=0, alias="worsenedCount")


class GradeChangeStats(ReportModel):
    overlap: int = 0
    changed: int = 0
    percent_changed: Optional[float] = Field(default=None, alias="percentChanged")
    improved: int = 0
    worsened: int = 0


class RepeatabilitySample(ReportModel):
    h3: str
    vehicle_count: int = Field(alias="vehicleCount")
    variance: float
    score: float


class RepeatabilitySummary(ReportModel):
    segment_count: int = Field(default=0, alias="segmentCount")
    mean: Optional[float] = None
    median: Optional[float] = None
    p25: Optional[float] = None
    p75: Optional[float] = None


class RepeatabilityResult(ReportModel):
    summary: RepeatabilitySummary = Field(default_factory=RepeatabilitySummary)
    best: List[RepeatabilitySample] = Field(default_factory=list)
    worst: List[RepeatabilitySample] = Field(default_factory=list)


class TelemetryLoadStats(BaseModel):
    """Counters kept while folding the raw pass stream."""
    model_config = ConfigDict(populate_by_name=True)

    strategy: Optional[str] = None
    seen: int = 0
    malformed: int = 0
    too_old: int = Field(default=0, alias="tooOld")
    out_of_scope: int = Field(default=0, alias="outOfScope")
    no_metric: int = Field(default=0, alias="noMetric")
    accepted: int = 0


class ReportStats(ReportModel):
    total_segments_today: int = Field(alias="totalSegmentsToday")
    total_segments_compare: int = Field(alias="totalSegmentsCompare")
    overlap_segments: int = Field(alias="overlapSegments")
    week_over_week: WeekOverWeekStats = Field(alias="weekOverWeek")
    grade_changes: GradeChangeStats = Field(alias="gradeChanges")
    repeatability: RepeatabilitySummary


class RepeatabilitySamples(ReportModel):
    best: List[RepeatabilitySample] = Field(default_factory=list)
    worst: List[RepeatabilitySample] = Field(default_factory=list)


class ReportSources(ReportModel):
    today: str
    compare: str


class StabilityReport(ReportModel):
    city_id: str = Field(alias="cityId")
    date: str
    compare_date: str = Field(alias="compareDate")
    window_days: int = Field(alias="windowDays")
    stats: ReportStats
    worst_segments: List[WorstSegment] = Field(default_factory=list, alias="worstSegments")
    repeatability_samples: RepeatabilitySamples = Field(alias="repeatabilitySamples")
    sources: ReportSources
    telemetry: Optional[TelemetryLoadStats] = None

    def to_payload(self) -> Dict[str, Any]:
        """The document body written to the report store (camelCase keys)."""
        return self.model_dump(by_alias=True, mode="json")


__all__ = [
    "StoredDocument",
    "SegmentAggregate",
    "TelemetryPass",
    "WorstSegment",
    "WeekOverWeekStats",
    "GradeChangeStats",
    "RepeatabilitySample",
    "RepeatabilitySummary",
    "RepeatabilityResult",
    "TelemetryLoadStats",
    "ReportStats",
    "RepeatabilitySamples",
    "ReportSources",
    "StabilityReport",
]
