# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Collection discovery, document frames and user filters."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
import pandas as pd

from attview.auth.users import DEFAULT_ROLE, ROLES, normalize_role
from attview.core.errors import BackingStoreUnavailable
from attview.infra.store import DocumentStore

logger = logging.getLogger(__name__)

COMMON_COLLECTIONS = ("users", "attendance", "classes", "courses", "records", "sessions")

PROBE_COLLECTIONS = COMMON_COLLECTIONS + (
    "admins",
    "moderators",
    "students",
    "teachers",
    "events",
    "schedules",
    "departments",
    "subjects",
    "logs",
    "notifications",
    "settings",
)

STATUS_FILTERS = ("active", "inactive")

# Never rendered or exported.
CREDENTIAL_FIELDS = ("passwordHash",)

# Per-session collection list kept in a cookie.
MAX_REMEMBERED = 20
MAX_REMEMBERED_NAME = 100


def _flag_is(value: Any, wanted: bool) -> bool:
    return isinstance(value, (bool, np.bool_)) and bool(value) is wanted


def validate_collection_name(name: str) -> str:
    n = (name or "").strip()
    if not n:
        raise ValueError("Collection name is empty.")
    if "/" in n:
        raise ValueError(f"Invalid collection name '{n}': '/' is not allowed.")
    if n.startswith("__") and n.endswith("__"):
        raise ValueError(f"Invalid collection name '{n}': reserved name.")
    return n


def discover_collections(store: DocumentStore, names: Iterable[str] = PROBE_COLLECTIONS) -> List[str]:
    """Probe a fixed list of names and return the non-empty ones, in probe order."""
    store.bootstrap()
    found: List[str] = []
    for name in names:
        try:
            if store.has_documents(name):
                found.append(name)
        except BackingStoreUnavailable as e:
            # Missing collection or no read permission.
            logger.debug("Skipping collection %r: %s", name, e)
    return found


def collection_label(name: str, discovered: bool) -> str:
    return name[:1].upper() + name[1:] + (" ✓" if discovered else "")


def load_collection_names(raw: Optional[str]) -> Set[str]:
    """Collection names stored for one session; anything unreadable is ignored."""
    if not raw:
        return set()
    try:
        names = json.loads(raw)
    except ValueError:
        return set()
    if not isinstance(names, list):
        return set()
    out: Set[str] = set()
    for n in names[:MAX_REMEMBERED]:
        if not isinstance(n, str):
            continue
        try:
            out.add(validate_collection_name(n))
        except ValueError:
            continue
    return out


def dump_collection_names(names: Iterable[str]) -> str:
    kept = sorted(n for n in set(names) if len(n) <= MAX_REMEMBERED_NAME)
    return json.dumps(kept[:MAX_REMEMBERED], ensure_ascii=False)


def collection_options(discovered: Set[str]) -> List[Tuple[str, str]]:
    """(value, label) pairs: common and discovered names, sorted."""
    names = sorted(set(COMMON_COLLECTIONS) | set(discovered))
    return [(n, collection_label(n, n in discovered)) for n in names]


def documents_frame(docs: List[Dict[str, Any]]) -> pd.DataFrame:
    """One row per document; ``id`` first, remaining fields in first-seen order."""
    if not docs:
        return pd.DataFrame(columns=["id"])
    df = pd.DataFrame(docs, dtype=object)
    cols = ["id"] + [c for c in df.columns if c != "id"]
    return df.reindex(columns=cols)


def frame_fields(df: pd.DataFrame) -> List[str]:
    return [str(c) for c in df.columns]


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as dicts with missing cells as None."""
    if df.empty:
        return []
    obj = df.astype(object)
    return obj.where(obj.notna(), None).to_dict(orient="records")


def effective_roles(df: pd.DataFrame) -> pd.Series:
    if "role" not in df.columns:
        return pd.Series(DEFAULT_ROLE, index=df.index)
    return df["role"].map(normalize_role)


def filter_users(docs: List[Dict[str, Any]], role: str = "", status: str = "") -> List[Dict[str, Any]]:
    """Filter user documents by role and active status.

    Documents without a role count as students. Status matches ``isActive``
    strictly: a document without the flag is neither active nor inactive.
    """
    df = documents_frame(docs)
    if df.empty:
        return []

    r = (role or "").strip().lower()
    if r:
        if r not in ROLES:
            raise ValueError(f"Unknown role '{role}'.")
        df = df[effective_roles(df) == r]

    s = (status or "").strip().lower()
    if s:
        if s not in STATUS_FILTERS:
            raise ValueError(f"Unknown status '{status}'.")
        flags = df["isActive"] if "isActive" in df.columns else pd.Series(None, index=df.index, dtype=object)
        wanted = s == "active"
        df = df[flags.map(lambda v: _flag_is(v, wanted))]

    keep = set(df.index)
    return [d for i, d in enumerate(docs) if i in keep]


def user_counts(docs: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    """Counts of users per effective role, split by active flag."""
    out = {r: {"active": 0, "inactive": 0, "total": 0} for r in ROLES}
    df = documents_frame(docs)
    if df.empty:
        return out
    flags = df["isActive"] if "isActive" in df.columns else pd.Series(False, index=df.index)
    summary = pd.DataFrame({"role": effective_roles(df), "active": flags.map(lambda v: _flag_is(v, True))})
    for (r, active), n in summary.groupby(["role", "active"]).size().items():
        key = "active" if active else "inactive"
        out[r][key] += int(n)
        out[r]["total"] += int(n)
    return out


def strip_credentials(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{k: v for k, v in d.items() if k not in CREDENTIAL_FIELDS} for d in docs]


def _export_cell(value: Any) -> Any:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def export_frame(docs: List[Dict[str, Any]]) -> pd.DataFrame:
    """Frame without credential fields, nested values JSON-encoded and dates as ISO strings."""
    rows = [{k: _export_cell(v) for k, v in d.items()} for d in strip_credentials(docs)]
    return documents_frame(rows)
