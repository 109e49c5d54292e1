# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from attview.auth.passwords import check_password, make_fingerprint
from attview.core.errors import InactiveAccount, InvalidCredentials, MalformedSessionError
from attview.infra.store import DocumentStore

logger = logging.getLogger(__name__)

IDENTITY_COLLECTION = "users"
EXTERNAL_ID_FIELD = "ucId"

ROLES = ("student", "moderator", "admin")
DEFAULT_ROLE = "student"


def normalize_role(role: Any) -> str:
    r = str(role or "").strip().lower()
    return r if r in ROLES else DEFAULT_ROLE


@dataclass(frozen=True)
class Identity:
    id: str
    external_id: str
    role: str = DEFAULT_ROLE
    is_active: bool = False
    first_name: str = ""
    last_name: str = ""
    created_at: Any = None
    last_login: Any = None
    deactivated_at: Any = None
    imei: str = ""
    fingerprint: str = field(default="", repr=False)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Identity":
        return cls(
            id=str(doc.get("id") or ""),
            external_id=str(doc.get(EXTERNAL_ID_FIELD) or "").strip(),
            role=normalize_role(doc.get("role")),
            is_active=bool(doc.get("isActive")),
            first_name=str(doc.get("firstName") or ""),
            last_name=str(doc.get("lastName") or ""),
            created_at=doc.get("createdAt"),
            last_login=doc.get("lastLogin"),
            deactivated_at=doc.get("deactivatedAt"),
            imei=str(doc.get("imei") or ""),
            fingerprint=str(doc.get("passwordHash") or ""),
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.external_id

    def to_session_json(self) -> str:
        """Serialise the identity for local storage, without the credential."""
        return json.dumps(
            {
                "id": self.id,
                EXTERNAL_ID_FIELD: self.external_id,
                "role": self.role,
                "isActive": self.is_active,
                "firstName": self.first_name,
                "lastName": self.last_name,
            }
        )


def parse_session_blob(raw: str) -> str:
    """Return the external id held by a stored identity blob."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedSessionError() from e
    if not isinstance(data, dict):
        raise MalformedSessionError("Stored session is not an object")
    ext = data.get(EXTERNAL_ID_FIELD)
    if not isinstance(ext, str) or not ext.strip():
        raise MalformedSessionError("Stored session has no UC ID")
    return ext.strip()


def get_identity(
    store: DocumentStore,
    external_id: str,
    *,
    collection: str = IDENTITY_COLLECTION,
) -> Optional[Identity]:
    u = (external_id or "").strip()
    if not u:
        return None
    store.bootstrap()
    doc = store.find_one(collection, EXTERNAL_ID_FIELD, u)
    if doc is None:
        return None
    return Identity.from_document(doc)


def authenticate(
    store: DocumentStore,
    external_id: str,
    password: str,
    static_secret: str,
    *,
    collection: str = IDENTITY_COLLECTION,
) -> Identity:
    """Resolve and check a login. Raises InvalidCredentials or InactiveAccount.

    The password is checked before the active flag, so a deactivated account
    is only reported to someone who knows its password.
    """
    if not (external_id or "").strip() or not password:
        raise InvalidCredentials()
    u = get_identity(store, external_id, collection=collection)
    if u is None or not check_password(u.fingerprint, password, static_secret):
        logger.info("Login rejected for %r", external_id)
        raise InvalidCredentials()
    if not u.is_active:
        logger.info("Login rejected for inactive account %r", u.external_id)
        raise InactiveAccount()
    return u


def create_account(
    store: DocumentStore,
    *,
    external_id: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = DEFAULT_ROLE,
    active: bool = True,
    scheme: str = "argon2",
    static_secret: str = "",
    collection: str = IDENTITY_COLLECTION,
) -> Identity:
    ext = (external_id or "").strip()
    if not ext:
        raise ValueError("UC ID is required")
    r = (role or DEFAULT_ROLE).strip().lower()
    if r not in ROLES:
        raise ValueError(f"Unknown role '{role}'. Use one of: {', '.join(ROLES)}")
    if get_identity(store, ext, collection=collection) is not None:
        raise ValueError(f"UC ID '{ext}' already exists")

    data = {
        EXTERNAL_ID_FIELD: ext,
        "firstName": (first_name or "").strip(),
        "lastName": (last_name or "").strip(),
        "role": r,
        "isActive": bool(active),
        "passwordHash": make_fingerprint(password, scheme=scheme, static_secret=static_secret),
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    doc_id = store.add_document(collection, data)
    logger.info("Created %s account %r", r, ext)
    return Identity.from_document({"id": doc_id, **data})
