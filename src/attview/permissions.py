# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Any, FrozenSet, Optional
from urllib.parse import quote

from fastapi import HTTPException, Request

from attview.auth.users import DEFAULT_ROLE, Identity, normalize_role

ROLE_ORDER = {"student": 0, "moderator": 1, "admin": 2}

# Capability -> minimum role. Single source for routes and templates.
CAPABILITIES = {
    "view_data": "student",
    "navigation": "moderator",
    "export": "moderator",
    "admin_panel": "admin",
    "create_account": "admin",
}


def _rank(role: Any) -> int:
    return ROLE_ORDER.get(normalize_role(role), ROLE_ORDER[DEFAULT_ROLE])


def capabilities_for(role: Any) -> FrozenSet[str]:
    r = _rank(role)
    return frozenset(cap for cap, min_role in CAPABILITIES.items() if r >= ROLE_ORDER[min_role])


def can(user: Optional[Identity], capability: str) -> bool:
    if user is None or capability not in CAPABILITIES:
        return False
    return _rank(user.role) >= ROLE_ORDER[CAPABILITIES[capability]]


def current_user_optional(request: Request) -> Optional[Identity]:
    return getattr(request.state, "user", None)


def require_user(request: Request) -> Identity:
    u = current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    raise HTTPException(status_code=303, headers={"Location": f"/login?next={quote(next_url, safe='/')}"})


def require_capability(capability: str):
    def _dep(request: Request) -> Identity:
        u = require_user(request)
        if not can(u, capability):
            raise HTTPException(status_code=403, detail="Forbidden")
        return u

    return _dep
