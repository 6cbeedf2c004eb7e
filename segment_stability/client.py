# segment_stability/client.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError
from google.cloud.firestore_v1.base_query import FieldFilter

from .auth import init_app
from .config import Settings
from .errors import ConfigurationError
from .models import StoredDocument


class FirestoreAPIError(Exception):
    """Raised when a Firestore read or write fails."""
    def __init__(self, message: str, status: int | None = None, path: str | None = None):
        super().__init__(message)
        self.status = status
        self.path = path


# (field, op, value) filters, same spelling as FieldFilter.
Filter = Tuple[str, str, Any]

_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains", "array-contains-any"}


def _api_error(e: GoogleAPIError, action: str, path: str) -> FirestoreAPIError:
    code = getattr(e, "code", None)
    return FirestoreAPIError(
        f"Firestore {action} {path} failed: {e}",
        status=code if isinstance(code, int) else None,
        path=path,
    )


class FirestoreClient:
    """Thin streaming facade over a ``google.cloud.firestore.Client``.

    Reads yield ``StoredDocument`` values one snapshot at a time; library
    errors surface as ``FirestoreAPIError``.
    """

    def __init__(self, db):
        self.db = db

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "FirestoreClient":
        s = settings or Settings()
        try:
            app = init_app(s.project_id, s.service_account_json)
            if s.database and s.database != "(default)":
                db = firestore.client(app, database_id=s.database)
            else:
                db = firestore.client(app)
        except (DefaultCredentialsError, ValueError) as e:
            raise ConfigurationError(
                f"Unable to initialise Firestore (--project or FIREBASE_PROJECT_ID, credentials): {e}"
            ) from e
        return cls(db)

    # ------------------------ Streaming reads ------------------------

    def stream_collection(self, collection_path: str) -> Iterator[StoredDocument]:
        """Yield every document of a collection."""
        try:
            for snap in self.db.collection(collection_path).stream():
                yield StoredDocument.from_snapshot(snap)
        except GoogleAPIError as e:
            raise _api_error(e, "listing", collection_path) from e

    def stream_query(
        self,
        collection_path: str,
        filters: Sequence[Filter] = (),
    ) -> Iterator[StoredDocument]:
        """Yield documents of ``collection_path`` matching all ``filters``."""
        query = self.db.collection(collection_path)
        for fld, op, value in filters:
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op!r}")
            query = query.where(filter=FieldFilter(fld, op, value))
        try:
            for snap in query.stream():
                yield StoredDocument.from_snapshot(snap)
        except GoogleAPIError as e:
            raise _api_error(e, "query on", collection_path) from e

    # ------------------------ Writes ------------------------

    def set_document(
        self,
        path: str,
        data: dict,
        *,
        merge: bool = True,
        server_timestamp_fields: Iterable[str] = (),
    ) -> Optional[datetime]:
        """Create or update one document.

        Fields named in ``server_timestamp_fields`` are stamped by the server
        at write time. Returns the write's update time when reported.
        """
        payload = dict(data)
        for name in server_timestamp_fields:
            payload[name] = firestore.SERVER_TIMESTAMP
        try:
            result = self.db.document(path).set(payload, merge=merge)
        except GoogleAPIError as e:
            raise _api_error(e, "write to", path) from e
        return getattr(result, "update_time", None)


__all__ = ["FirestoreClient", "FirestoreAPIError", "Filter"]
