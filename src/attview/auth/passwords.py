# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from attview.core.errors import EncodingError

_PH = PasswordHasher()

ARGON2_PREFIX = "$argon2"


def _utf8(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError() from e


def fingerprint(secret: str, static_secret: str) -> str:
    """Legacy credential fingerprint: hex SHA-256 of password + shared secret.

    Shared by every account and unsalted, so equal passwords give equal
    fingerprints. Kept for records written by the mobile app.
    """
    return hashlib.sha256(_utf8(secret + static_secret)).hexdigest()


def verify(submitted: str, stored_fingerprint: str, static_secret: str) -> bool:
    if not stored_fingerprint:
        return False
    computed = fingerprint(submitted, static_secret)
    return hmac.compare_digest(computed.encode("ascii"), _utf8(stored_fingerprint))


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


def check_password(stored: str, submitted: str, static_secret: str) -> bool:
    """Verify against either an argon2 hash or a legacy fingerprint."""
    if (stored or "").startswith(ARGON2_PREFIX):
        return verify_password(stored, submitted)
    return verify(submitted, stored, static_secret)


def make_fingerprint(plain: str, *, scheme: str, static_secret: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    if scheme == "legacy":
        if not static_secret:
            raise ValueError("Legacy fingerprints need the shared secret")
        return fingerprint(plain, static_secret)
    return hash_password(plain)
