#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from attview.auth.users import ROLES, create_account
from attview.core.config import load_settings
from attview.infra.store import get_store


def main() -> None:
    settings = load_settings()
    store = get_store(settings)

    uc_id = input("UC ID: ").strip()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    role = (input(f"Role [{'/'.join(ROLES)}]: ").strip().lower() or "student")
    active_in = input("Active? [Y/n]: ").strip().lower()
    active = (active_in != "n")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        created = create_account(
            store,
            external_id=uc_id,
            password=pw1,
            first_name=first_name,
            last_name=last_name,
            role=role,
            active=active,
            scheme=settings.password_scheme,
            static_secret=settings.secret_key,
            collection=settings.identity_collection,
        )
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"OK -> {created.external_id} ({created.role}) document {created.id}")


if __name__ == "__main__":
    main()
