# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Credential fingerprints (legacy SHA-256 + shared secret) and argon2 hashes
- Identity lookup and login against the backing store
- Durable key-value storage (memory, cookies)
- Session create/restore/destroy with signed session tokens (itsdangerous)
"""
