# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hashlib
import logging
import random
import secrets
import time
from typing import Callable, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from attview.auth.storage import KeyValueStorage
from attview.auth.users import Identity, parse_session_blob
from attview.core.errors import BackingStoreUnavailable, MalformedSessionError

logger = logging.getLogger(__name__)

USER_KEY = "attendance_user"
TOKEN_KEY = "attendance_token"

DEFAULT_MAX_AGE_SECONDS = 28800  # 8 hours
DEFAULT_SALT = "attview.session.v1"


def legacy_token(external_id: str, static_secret: str) -> str:
    """Presence-only token from id, wall clock and a non-cryptographic random.

    Predictable given the login time; it is never checked on restore.
    """
    raw = f"{external_id}_{int(time.time() * 1000)}_{random.random()}{static_secret}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:64]


def _serializer(secret: str, salt: str) -> URLSafeTimedSerializer:
    if not secret:
        raise RuntimeError("Missing ATTVIEW_SESSION_SECRET (or ATTVIEW_SECRET_KEY) in environment")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def sign_token(external_id: str, secret: str, *, salt: str = DEFAULT_SALT) -> str:
    return _serializer(secret, salt).dumps({"u": external_id, "n": secrets.token_hex(8)})


def verify_token(
    token: str,
    external_id: str,
    secret: str,
    *,
    salt: str = DEFAULT_SALT,
    max_age: int = DEFAULT_MAX_AGE_SECONDS,
) -> bool:
    if not token:
        return False
    try:
        data = _serializer(secret, salt).loads(token, max_age=max_age)
    except (BadSignature, BadTimeSignature):
        return False
    u = str((data or {}).get("u") or "").strip() if isinstance(data, dict) else ""
    return bool(u) and u == external_id


Resolver = Callable[[str], Optional[Identity]]


class SessionStore:
    """Persist, restore and drop the authenticated identity in local storage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        resolve: Resolver,
        static_secret: str,
        *,
        token_scheme: str = "signed",
        session_secret: str = "",
        salt: str = DEFAULT_SALT,
        max_age: int = DEFAULT_MAX_AGE_SECONDS,
    ):
        self.storage = storage
        self.resolve = resolve
        self.static_secret = static_secret
        self.token_scheme = token_scheme
        self.session_secret = session_secret or static_secret
        self.salt = salt
        self.max_age = max_age

    def _new_token(self, external_id: str) -> str:
        if self.token_scheme == "legacy":
            return legacy_token(external_id, self.static_secret)
        return sign_token(external_id, self.session_secret, salt=self.salt)

    def _token_ok(self, token: str, external_id: str) -> bool:
        if self.token_scheme == "legacy":
            return True
        return verify_token(token, external_id, self.session_secret, salt=self.salt, max_age=self.max_age)

    def create(self, identity: Identity) -> None:
        token = self._new_token(identity.external_id)
        self.storage.set(USER_KEY, identity.to_session_json())
        self.storage.set(TOKEN_KEY, token)

    def restore(self) -> Optional[Identity]:
        """Return the current backing-store identity for the stored session.

        Liveness is re-checked on every call; any failure drops the session.
        """
        raw = self.storage.get(USER_KEY)
        token = self.storage.get(TOKEN_KEY)
        if not raw or not token:
            return None

        try:
            external_id = parse_session_blob(raw)
            if not self._token_ok(token, external_id):
                logger.info("Session token rejected for %r", external_id)
                self.destroy()
                return None
            identity = self.resolve(external_id)
        except MalformedSessionError:
            logger.warning("Dropping malformed stored session")
            self.destroy()
            return None
        except BackingStoreUnavailable:
            logger.exception("Session check failed")
            self.destroy()
            return None

        if identity is None or not identity.is_active:
            self.destroy()
            return None
        return identity

    def destroy(self) -> None:
        self.storage.remove(USER_KEY)
        self.storage.remove(TOKEN_KEY)
        self.storage.clear()
