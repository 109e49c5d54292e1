# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parents[3]

TOKEN_SCHEMES = {"signed", "legacy"}
PASSWORD_SCHEMES = {"argon2", "legacy"}
BACKENDS = {"firestore", "yaml"}


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _choice(name: str, default: str, allowed: set) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got '{value}'")
    return value


@dataclass(frozen=True)
class Settings:
    secret_key: str
    session_secret: str
    session_salt: str
    session_max_age: int
    token_scheme: str
    password_scheme: str
    backend: str
    firebase_credentials: str
    firebase_project: str
    data_path: Path
    identity_collection: str
    storage_namespace: str
    cookie_secure: bool

    def require_secret(self) -> str:
        if not self.secret_key:
            raise RuntimeError("Missing ATTVIEW_SECRET_KEY in environment")
        return self.secret_key


def load_settings() -> Settings:
    """Read settings from the environment. Called on import of the app module."""
    secret = os.getenv("ATTVIEW_SECRET_KEY", "")
    return Settings(
        secret_key=secret,
        session_secret=os.getenv("ATTVIEW_SESSION_SECRET") or secret,
        session_salt=os.getenv("ATTVIEW_SESSION_SALT", "attview.session.v1"),
        session_max_age=int(os.getenv("ATTVIEW_SESSION_MAX_AGE", "28800")),  # 8 hours
        token_scheme=_choice("ATTVIEW_TOKEN_SCHEME", "signed", TOKEN_SCHEMES),
        password_scheme=_choice("ATTVIEW_PASSWORD_SCHEME", "argon2", PASSWORD_SCHEMES),
        backend=_choice("ATTVIEW_BACKEND", "firestore", BACKENDS),
        firebase_credentials=os.getenv("ATTVIEW_FIREBASE_CREDENTIALS", ""),
        firebase_project=os.getenv("ATTVIEW_FIREBASE_PROJECT", ""),
        data_path=Path(
            os.getenv("ATTVIEW_DATA_PATH", str(BASE_DIR / "data" / "attendance.yml"))
        ).resolve(),
        identity_collection=os.getenv("ATTVIEW_IDENTITY_COLLECTION", "users"),
        storage_namespace=os.getenv("ATTVIEW_STORAGE_NAMESPACE", "attendance_"),
        cookie_secure=_get_bool(os.getenv("ATTVIEW_COOKIE_SECURE"), default=False),
    )
