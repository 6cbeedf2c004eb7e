# segment_stability/config.py
from __future__ import annotations

import os
from datetime import date
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils.common import lookback_cutoff_ms, shift_days

DEFAULT_TOP_N = 50
DEFAULT_LOOKBACK_DAYS = 30
COMPARISON_DAYS = 7

# Known layouts of the normalized daily aggregates, newest first.
DEFAULT_SEGMENT_PATH_SHAPES: Tuple[str, ...] = (
    "segmentNormalizedDaily/{city_id}/days/{date}/cells",
    "segmentNormalizedDaily/{city_id}/{date}",
)
DEFAULT_TELEMETRY_COLLECTION = "telemetrySegmentPasses"
DEFAULT_REPORT_PATH = "municipalReports/{city_id}/days/{date}"


def _env_project_id() -> Optional[str]:
    for name in ("FIREBASE_PROJECT_ID", "GCLOUD_PROJECT", "GOOGLE_CLOUD_PROJECT"):
        v = os.getenv(name)
        if v:
            return v
    return None


class Settings(BaseModel):
    """Firestore connection settings, defaulted from the environment.

    Credentials come from FIREBASE_SERVICE_ACCOUNT_JSON when set, else from
    application default credentials (GOOGLE_APPLICATION_CREDENTIALS, gcloud).
    FIRESTORE_EMULATOR_HOST is honoured by the Firestore library itself.
    """

    project_id: Optional[str] = Field(default_factory=_env_project_id)
    database: str = Field(default_factory=lambda: os.getenv("FIRESTORE_DATABASE", "(default)"))
    service_account_json: Optional[str] = Field(
        default_factory=lambda: os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")
    )


class ReportConfig(BaseModel):
    """Everything one report run needs, resolved up front by the caller."""

    model_config = ConfigDict(frozen=True)

    city_id: str
    report_date: date
    top_n: int = Field(default=DEFAULT_TOP_N, gt=0)
    lookback_days: int = Field(default=DEFAULT_LOOKBACK_DAYS, gt=0)
    compare_days: int = Field(default=COMPARISON_DAYS, gt=0)
    segment_path_shapes: Tuple[str, ...] = DEFAULT_SEGMENT_PATH_SHAPES
    telemetry_collection: str = DEFAULT_TELEMETRY_COLLECTION
    report_path_template: str = DEFAULT_REPORT_PATH
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("city_id")
    @classmethod
    def _city_id_present(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("cityId is required")
        return v

    @property
    def date_str(self) -> str:
        return self.report_date.isoformat()

    @property
    def compare_date(self) -> date:
        return shift_days(self.report_date, self.compare_days)

    @property
    def compare_date_str(self) -> str:
        return self.compare_date.isoformat()

    @property
    def cutoff_ms(self) -> int:
        return lookback_cutoff_ms(self.report_date, self.lookback_days)

    @property
    def report_path(self) -> str:
        return self.report_path_template.format(city_id=self.city_id, date=self.date_str)
