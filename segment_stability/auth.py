"""
auth.py
Credential and app bootstrap for firebase_admin.

A service account JSON document (FIREBASE_SERVICE_ACCOUNT_JSON) wins; when it
is absent or unparseable, application default credentials are used.
"""

import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def build_credential(service_account_json: Optional[str] = None) -> credentials.Base:
    """
    Certificate credential from a JSON string, else ApplicationDefault.
    """
    if service_account_json:
        try:
            return credentials.Certificate(json.loads(service_account_json))
        except ValueError as e:
            logger.warning(
                "Failed to parse FIREBASE_SERVICE_ACCOUNT_JSON; falling back to application default: %s", e
            )
    return credentials.ApplicationDefault()


def init_app(project_id: Optional[str] = None, service_account_json: Optional[str] = None) -> firebase_admin.App:
    """
    Return the default firebase app, initializing it on first use.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    options = {"projectId": project_id} if project_id else None
    return firebase_admin.initialize_app(build_credential(service_account_json), options)
