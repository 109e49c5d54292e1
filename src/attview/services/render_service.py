# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Display helpers used by the Jinja templates (registered as filters)."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List

from markupsafe import Markup

from attview.auth.users import normalize_role

TABLE_MAX_FIELDS = 6

ROLE_EMOJI = {"admin": "👑", "moderator": "🛡️"}
DEFAULT_EMOJI = "👤"


def role_emoji(role: Any) -> str:
    return ROLE_EMOJI.get(normalize_role(role), DEFAULT_EMOJI)


def _local(dt: datetime) -> datetime:
    return dt.astimezone() if dt.tzinfo is not None else dt


def _parse_datetime(value: Any):
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def format_date(value: Any) -> str:
    if not value:
        return "N/A"
    dt = _parse_datetime(value)
    if dt is None:
        return str(value)
    return _local(dt).strftime("%Y-%m-%d %H:%M")


def format_value(value: Any):
    if value is None:
        return Markup("<em>null</em>")
    if isinstance(value, datetime):
        return _local(value).strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (dict, list, tuple)):
        return Markup("<pre>{}</pre>").format(json.dumps(value, indent=2, default=str, ensure_ascii=False))
    if isinstance(value, bool):
        return "✓ true" if value else "✗ false"
    return str(value)


def user_card(doc: Dict[str, Any]) -> Dict[str, Any]:
    role = normalize_role(doc.get("role"))
    active = bool(doc.get("isActive"))
    return {
        "id": doc.get("id", ""),
        "name": f"{doc.get('firstName') or ''} {doc.get('lastName') or ''}".strip(),
        "role": role,
        "emoji": role_emoji(role),
        "status_class": "status-active" if active else "status-inactive",
        "status_text": "Active" if active else "Deactivated",
        "uc_id": doc.get("ucId", ""),
        "imei": doc.get("imei") or "",
        "created": format_date(doc.get("createdAt")),
        "last_login": format_date(doc["lastLogin"]) if doc.get("lastLogin") else "",
        "deactivated": format_date(doc["deactivatedAt"]) if doc.get("deactivatedAt") else "",
    }


def choose_layout(
    collection: str, fields: List[str], docs: List[Dict[str, Any]], users_collection: str = "users"
) -> str:
    if collection == users_collection:
        return "users"
    if len(fields) <= TABLE_MAX_FIELDS and docs:
        return "table"
    return "cards"


def plural(n: int, word: str) -> str:
    return f"{n} {word}" + ("" if n == 1 else "s")
