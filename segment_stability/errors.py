"""
errors.py
Exception hierarchy for the stability report job.

Transport failures surface from the client as ``FirestoreAPIError``; the
classes below describe what those failures mean for a report run.
"""

from __future__ import annotations


class StabilityReportError(Exception):
    """Base class for every failure the report job knows how to describe."""


class ConfigurationError(StabilityReportError):
    """Run configuration is missing or invalid (e.g. no cityId). Nothing is read."""


class SourceUnavailableError(StabilityReportError):
    """Every read strategy for a required source failed."""


class MalformedRecordError(StabilityReportError):
    """A single stored record lacks a required field; callers skip it."""

    def __init__(self, message: str, doc_id: str | None = None):
        super().__init__(message)
        self.doc_id = doc_id


class PersistenceError(StabilityReportError):
    """Writing the finished report failed; the run was not delivered."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ReportGenerationError(StabilityReportError):
    """The run was cancelled or timed out before all reads completed."""


__all__ = [
    "StabilityReportError",
    "ConfigurationError",
    "SourceUnavailableError",
    "MalformedRecordError",
    "PersistenceError",
    "ReportGenerationError",
]
