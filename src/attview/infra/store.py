# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from attview.core.config import Settings

Document = Dict[str, Any]


class DocumentStore(Protocol):
    """Read-mostly document database. Every document dict carries its ``id``."""

    def bootstrap(self) -> None: ...

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Document]: ...

    def list_documents(self, collection: str) -> List[Document]: ...

    def has_documents(self, collection: str) -> bool: ...

    def add_document(self, collection: str, data: Dict[str, Any]) -> str: ...


def get_store(settings: Settings) -> DocumentStore:
    if settings.backend == "yaml":
        from attview.infra.yaml_repo import YamlRepo

        return YamlRepo(settings.data_path)

    from attview.infra.firestore_repo import FirestoreRepo

    return FirestoreRepo(
        credentials_source=settings.firebase_credentials,
        project_id=settings.firebase_project,
    )
