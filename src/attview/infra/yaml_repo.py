# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Local YAML document store.

File layout::

    collections:
      users:
        <doc_id>: {ucId: ..., passwordHash: ..., role: admin, isActive: true}
      attendance:
        <doc_id>: {...}
"""

from __future__ import annotations

import copy
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from attview.core.errors import BackingStoreUnavailable

Collections = Dict[str, Dict[str, Dict[str, Any]]]


def _load_file(path: Path) -> Collections:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise BackingStoreUnavailable(f"Cannot read {path}: {e}") from e
    cols = (raw.get("collections") or {}) if isinstance(raw, dict) else {}
    out: Collections = {}
    for name, docs in cols.items():
        if not isinstance(docs, dict):
            continue
        out[str(name)] = {str(k): v for k, v in docs.items() if isinstance(v, dict)}
    return out


class YamlRepo:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._cache: Tuple[float, Collections] = (0.0, {})

    def bootstrap(self) -> None:
        return None

    def _collections(self) -> Collections:
        mtime = self.path.stat().st_mtime if self.path.exists() else 0.0
        cached_mtime, cached = self._cache
        if mtime and mtime == cached_mtime:
            return cached
        cols = _load_file(self.path)
        self._cache = (mtime, cols)
        return cols

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        docs = self._collections().get(collection, {})
        return [{"id": doc_id, **copy.deepcopy(data)} for doc_id, data in docs.items()]

    def find_one(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        for doc in self._docs(collection):
            if doc.get(field) == value:
                return doc
        return None

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        return self._docs(collection)

    def has_documents(self, collection: str) -> bool:
        return bool(self._collections().get(collection))

    def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        cols = copy.deepcopy(self._collections())
        doc_id = uuid.uuid4().hex[:20]
        cols.setdefault(collection, {})[doc_id] = dict(data)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump({"collections": cols}, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        self._cache = (0.0, {})
        return doc_id
