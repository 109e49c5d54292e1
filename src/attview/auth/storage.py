# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Durable key-value storage backing the session store.

`clear()` only touches keys inside the storage namespace (e.g. ``attendance_``).
"""

from __future__ import annotations

import base64
import binascii
from typing import Dict, Mapping, Optional, Protocol

from starlette.responses import Response

DEFAULT_NAMESPACE = "attendance_"


class KeyValueStorage(Protocol):
    namespace: str

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[Mapping[str, str]] = None, *, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = namespace
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        for key in [k for k in self.data if k.startswith(self.namespace)]:
            del self.data[key]


def _encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def _decode(value: str) -> str:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        # Unreadable values surface as-is and fail session parsing.
        return value


class CookieStorage:
    """Cookie-backed storage: reads from the request, stages writes for the response."""

    def __init__(
        self,
        cookies: Mapping[str, str],
        *,
        namespace: str = DEFAULT_NAMESPACE,
        max_age: Optional[int] = None,
        secure: bool = False,
    ):
        self.namespace = namespace
        self.max_age = max_age
        self.secure = secure
        self._cookies = dict(cookies)
        self._staged: Dict[str, Optional[str]] = {}

    def get(self, key: str) -> Optional[str]:
        if key in self._staged:
            return self._staged[key]
        raw = self._cookies.get(key)
        if not raw:
            return None
        return _decode(raw)

    def set(self, key: str, value: str) -> None:
        self._staged[key] = value

    def remove(self, key: str) -> None:
        self._staged[key] = None

    def clear(self) -> None:
        for key in set(self._cookies) | set(self._staged):
            if key.startswith(self.namespace):
                self._staged[key] = None

    def apply(self, response: Response) -> None:
        for key, value in self._staged.items():
            if value is None:
                if self._cookies.pop(key, None) is not None:
                    response.delete_cookie(key)
                continue
            encoded = _encode(value)
            response.set_cookie(
                key,
                encoded,
                max_age=self.max_age,
                httponly=True,
                samesite="lax",
                secure=self.secure,
            )
            self._cookies[key] = encoded
        self._staged.clear()
