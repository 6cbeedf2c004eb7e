"""
segment_stability
Public package entry point for the segment-stability report job.

Exposes:
- FirestoreClient
- FirestoreAPIError
- generate_report / write_report
- __version__
"""


from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__ = _pkg_version("segment-stability")
except PackageNotFoundError:  # not installed (editable or local usage)
    __version__ = "0.0.0"

from .client import FirestoreAPIError, FirestoreClient
from .report import build_report, generate_report, write_report

__all__ = [
    "FirestoreClient",
    "FirestoreAPIError",
    "build_report",
    "generate_report",
    "write_report",
    "__version__",
]
