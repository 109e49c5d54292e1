# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
from functools import partial
from pathlib import Path
from urllib.parse import quote

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from attview.auth.session import SessionStore
from attview.auth.storage import CookieStorage
from attview.auth.users import ROLES, authenticate, create_account, get_identity
from attview.core.config import load_settings
from attview.core.errors import AttviewError, BackingStoreUnavailable
from attview.core.utils import canon, df_to_csv_stream, df_to_xlsx_stream, safe_next
from attview.infra.store import DocumentStore, get_store
from attview.permissions import capabilities_for, require_capability, require_user
from attview.services.collection_service import (
    COMMON_COLLECTIONS,
    STATUS_FILTERS,
    collection_options,
    discover_collections,
    documents_frame,
    dump_collection_names,
    export_frame,
    filter_users,
    frame_fields,
    frame_records,
    load_collection_names,
    strip_credentials,
    user_counts,
    validate_collection_name,
)
from attview.services.render_service import (
    choose_layout,
    format_date,
    format_value,
    plural,
    role_emoji,
    user_card,
)

logger = logging.getLogger(__name__)

SETTINGS = load_settings()

app = FastAPI()

BASE_DIR = Path(__file__).resolve().parent

app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.filters["format_value"] = format_value
templates.env.filters["format_date"] = format_date
templates.env.filters["role_emoji"] = role_emoji

STATE = {
    "store": None,
}

# Per-session UI state, kept in the storage namespace so logout clears it.
COLLECTIONS_KEY = f"{SETTINGS.storage_namespace}collections"
FLASH_KEY = f"{SETTINGS.storage_namespace}flash"


def _store() -> DocumentStore:
    if STATE["store"] is None:
        STATE["store"] = get_store(SETTINGS)
    return STATE["store"]


def _session_store(storage: CookieStorage) -> SessionStore:
    return SessionStore(
        storage,
        resolve=partial(get_identity, _store(), collection=SETTINGS.identity_collection),
        static_secret=SETTINGS.secret_key,
        token_scheme=SETTINGS.token_scheme,
        session_secret=SETTINGS.session_secret,
        salt=SETTINGS.session_salt,
        max_age=SETTINGS.session_max_age,
    )


@app.middleware("http")
async def _session_middleware(request: Request, call_next):
    if request.url.path.startswith("/static/"):
        return await call_next(request)
    storage = CookieStorage(
        request.cookies,
        namespace=SETTINGS.storage_namespace,
        max_age=SETTINGS.session_max_age,
        secure=SETTINGS.cookie_secure,
    )
    sessions = _session_store(storage)
    request.state.session = sessions
    # Re-validated against the backing store on every request.
    request.state.user = await run_in_threadpool(sessions.restore)
    response = await call_next(request)
    storage.apply(response)
    return response


def _session_collections(request: Request) -> set:
    return load_collection_names(request.state.session.storage.get(COLLECTIONS_KEY))


def _save_collections(request: Request, names) -> None:
    request.state.session.storage.set(COLLECTIONS_KEY, dump_collection_names(names))


def _flash(request: Request, *, error: str = "", status: str = "") -> None:
    request.state.session.storage.set(FLASH_KEY, json.dumps({"error": error, "status": status}))


def _pop_flash(request: Request) -> dict:
    storage = request.state.session.storage
    raw = storage.get(FLASH_KEY)
    if not raw:
        return {}
    storage.remove(FLASH_KEY)
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _render(request: Request, template_name: str, ctx: dict, status_code: int = 200):
    """TemplateResponse wrapper injecting the session's UI state."""
    user = getattr(request.state, "user", None)
    discovered = _session_collections(request) if user else set()
    base_ctx = {
        "current_user": user,
        "capabilities": capabilities_for(user.role) if user else frozenset(),
        "options": collection_options(discovered),
        "discovered": discovered,
        "users_collection": SETTINGS.identity_collection,
        "status": "",
    }
    merged = {**base_ctx, **(ctx or {})}
    return templates.TemplateResponse(request, template_name, merged, status_code=status_code)


# ------------------ Login / logout ------------------


@app.get("/login", response_class=HTMLResponse)
def login_get(request: Request, next: str = "/"):
    if getattr(request.state, "user", None):
        return RedirectResponse(url=safe_next(next), status_code=303)
    return _render(request, "login.html", {"next": next, "error": "", "uc_id": ""})


@app.post("/login")
def login_post(
    request: Request,
    ucId: str = Form(""),
    password: str = Form(""),
    next: str = Form("/"),
):
    uc_id = canon(ucId)
    ctx = {"next": next, "uc_id": uc_id}
    if not uc_id or not password:
        return _render(request, "login.html", {**ctx, "error": "Please enter both UC ID and password"})

    try:
        u = authenticate(
            _store(),
            uc_id,
            password,
            SETTINGS.require_secret(),
            collection=SETTINGS.identity_collection,
        )
    except BackingStoreUnavailable as e:
        logger.error("Login failed for %r: %s", uc_id, e)
        return _render(request, "login.html", {**ctx, "error": f"Login failed: {e}"}, status_code=503)
    except AttviewError as e:
        return _render(request, "login.html", {**ctx, "error": str(e)}, status_code=401)

    request.state.session.create(u)
    logger.info("User %r logged in as %s", u.external_id, u.role)
    return RedirectResponse(url=safe_next(next), status_code=303)


@app.post("/logout")
def logout_post(request: Request):
    request.state.session.destroy()
    return RedirectResponse(url="/login", status_code=303)


# ------------------ Collections ------------------


@app.get("/", response_class=HTMLResponse)
def home(request: Request, user=Depends(require_user)):
    flash = _pop_flash(request)
    return _render(request, "index.html", {"error": flash.get("error", ""), "status": flash.get("status", "")})


@app.post("/collections/discover")
def discover(request: Request, user=Depends(require_user)):
    try:
        found = discover_collections(_store())
    except BackingStoreUnavailable as e:
        _save_collections(request, [])
        _flash(request, error=str(e))
        return RedirectResponse(url="/", status_code=303)
    _save_collections(request, found)
    _flash(request, status=f"Found {plural(len(found), 'collection')}" if found else "No collections found")
    return RedirectResponse(url="/", status_code=303)


@app.get("/collections")
def open_collection(request: Request, name: str = "", user=Depends(require_user)):
    """Open a listed or custom collection by name."""
    if not name.strip():
        return RedirectResponse(url="/", status_code=303)
    try:
        n = validate_collection_name(name)
    except ValueError as e:
        _flash(request, error=str(e))
        return RedirectResponse(url="/", status_code=303)
    if n not in COMMON_COLLECTIONS:
        _save_collections(request, _session_collections(request) | {n})
    return RedirectResponse(url=f"/collections/{quote(n, safe='')}", status_code=303)


@app.get("/collections/{name}", response_class=HTMLResponse)
def view_collection(
    request: Request,
    name: str,
    role: str = "",
    status: str = "",
    user=Depends(require_capability("view_data")),
):
    ctx = {"collection": name, "role": role, "status_filter": status, "roles": ROLES, "statuses": STATUS_FILTERS}
    try:
        n = validate_collection_name(name)
        docs = strip_credentials(_store().list_documents(n))
        total = len(docs)
        if n == SETTINGS.identity_collection:
            docs = filter_users(docs, role=role, status=status)
    except ValueError as e:
        return _render(request, "collection.html", {**ctx, "error": str(e)}, status_code=400)
    except BackingStoreUnavailable as e:
        logger.error("Reading collection %r failed: %s", name, e)
        return _render(request, "collection.html", {**ctx, "error": f"Error fetching data: {e}"}, status_code=503)

    df = documents_frame(docs)
    fields = frame_fields(df)
    layout = choose_layout(n, fields, docs, users_collection=SETTINGS.identity_collection)
    return _render(
        request,
        "collection.html",
        {
            **ctx,
            "collection": n,
            "title": n[:1].upper() + n[1:],
            "count_label": plural(len(docs), "document"),
            "total": total,
            "layout": layout,
            "fields": fields,
            "rows": frame_records(df) if layout == "table" else [],
            "docs": docs if layout == "cards" else [],
            "users": [user_card(d) for d in docs] if layout == "users" else [],
        },
    )


def _export_docs(name: str):
    try:
        n = validate_collection_name(name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        return n, export_frame(_store().list_documents(n))
    except BackingStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/export/{name}.csv")
def export_csv(name: str, user=Depends(require_capability("export"))):
    n, df = _export_docs(name)
    return df_to_csv_stream(df, filename=f"{n}.csv")


@app.get("/export/{name}.xlsx")
def export_xlsx(name: str, user=Depends(require_capability("export"))):
    n, df = _export_docs(name)
    return df_to_xlsx_stream(df, filename=f"{n}.xlsx", sheet_name=n)


# ------------------ Admin ------------------


@app.get("/admin", response_class=HTMLResponse)
def admin_panel(request: Request, user=Depends(require_capability("admin_panel"))):
    try:
        counts = user_counts(_store().list_documents(SETTINGS.identity_collection))
        error = ""
    except BackingStoreUnavailable as e:
        counts, error = user_counts([]), str(e)
    return _render(request, "admin.html", {"counts": counts, "error": error})


@app.get("/accounts/new", response_class=HTMLResponse)
def account_form(request: Request, user=Depends(require_capability("create_account"))):
    return _render(request, "account_new.html", {"roles": ROLES, "form": {}, "error": "", "created": None})


@app.post("/accounts/new", response_class=HTMLResponse)
def account_create(
    request: Request,
    ucId: str = Form(""),
    firstName: str = Form(""),
    lastName: str = Form(""),
    role: str = Form("student"),
    active: bool = Form(False),
    password: str = Form(""),
    password2: str = Form(""),
    user=Depends(require_capability("create_account")),
):
    form = {"ucId": ucId, "firstName": firstName, "lastName": lastName, "role": role, "active": active}
    ctx = {"roles": ROLES, "form": form, "created": None}
    if password != password2:
        return _render(request, "account_new.html", {**ctx, "error": "Passwords do not match"}, status_code=400)
    try:
        created = create_account(
            _store(),
            external_id=ucId,
            password=password,
            first_name=firstName,
            last_name=lastName,
            role=role,
            active=active,
            scheme=SETTINGS.password_scheme,
            static_secret=SETTINGS.secret_key,
            collection=SETTINGS.identity_collection,
        )
    except ValueError as e:
        return _render(request, "account_new.html", {**ctx, "error": str(e)}, status_code=400)
    except BackingStoreUnavailable as e:
        return _render(request, "account_new.html", {**ctx, "error": str(e)}, status_code=503)
    logger.info("%r created account %r", user.external_id, created.external_id)
    return _render(request, "account_new.html", {**ctx, "form": {}, "error": "", "created": created})
