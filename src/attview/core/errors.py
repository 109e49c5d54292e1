# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by auth, session and store code.

Every failure here is recoverable: routes turn them into the login form or a
logged-out state.
"""

from __future__ import annotations


class AttviewError(Exception):
    message = "Unexpected error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.message)


class InvalidCredentials(AttviewError):
    # Unknown identifier and wrong password share one message.
    message = "Invalid UC ID or password"


class InactiveAccount(AttviewError):
    message = "Account is deactivated"


class MalformedSessionError(AttviewError):
    message = "Stored session is not readable"


class BackingStoreUnavailable(AttviewError):
    message = "Backing store unavailable"


class EncodingError(AttviewError, ValueError):
    message = "Text could not be encoded as UTF-8"
