# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Firestore backing store (firebase-admin SDK)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore import FieldFilter

from attview.core.errors import BackingStoreUnavailable

logger = logging.getLogger(__name__)

APP_NAME = "attview"

# API failures, exhausted retries, and credential refresh or transport errors.
_API_ERRORS = (GoogleAPIError, GoogleAuthError)


def _load_credentials(source: str):
    """Service-account JSON (inline or file path), else application default credentials."""
    src = (source or "").strip()
    if not src:
        return credentials.ApplicationDefault()
    if src.startswith("{"):
        return credentials.Certificate(json.loads(src))
    return credentials.Certificate(str(Path(src).expanduser()))


class FirestoreRepo:
    def __init__(self, *, credentials_source: str = "", project_id: str = "", app_name: str = APP_NAME):
        self.credentials_source = credentials_source
        self.project_id = project_id
        self.app_name = app_name
        self._db = None

    def bootstrap(self) -> None:
        """Initialise the Firebase app and client once; required before any query."""
        if self._db is not None:
            return
        try:
            try:
                app = firebase_admin.get_app(self.app_name)
            except ValueError:
                options = {"projectId": self.project_id} if self.project_id else None
                app = firebase_admin.initialize_app(
                    _load_credentials(self.credentials_source), options, name=self.app_name
                )
            self._db = firestore.client(app)
        except (ValueError, OSError, GoogleAuthError) as e:
            logger.error("Firebase bootstrap failed: %s", e)
            raise BackingStoreUnavailable(f"Firebase bootstrap failed: {e}") from e

    def _collection(self, name: str):
        self.bootstrap()
        return self._db.collection(name)

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        query = self._collection(collection).where(filter=FieldFilter(field, "==", value)).limit(1)
        try:
            docs = list(query.stream())
        except _API_ERRORS as e:
            raise BackingStoreUnavailable(f"Lookup on '{collection}' failed: {e}") from e
        if not docs:
            return None
        return {"id": docs[0].id, **(docs[0].to_dict() or {})}

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        try:
            return [{"id": d.id, **(d.to_dict() or {})} for d in self._collection(collection).stream()]
        except _API_ERRORS as e:
            raise BackingStoreUnavailable(f"Reading '{collection}' failed: {e}") from e

    def has_documents(self, collection: str) -> bool:
        try:
            return bool(list(self._collection(collection).limit(1).stream()))
        except _API_ERRORS as e:
            raise BackingStoreUnavailable(f"Probing '{collection}' failed: {e}") from e

    def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        try:
            _, ref = self._collection(collection).add(data)
        except _API_ERRORS as e:
            raise BackingStoreUnavailable(f"Writing to '{collection}' failed: {e}") from e
        return ref.id
