import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import copy
import importlib
from pathlib import Path

import pytest
import yaml

from attview.auth.passwords import fingerprint, hash_password
from attview.core.errors import BackingStoreUnavailable

STATIC_SECRET = "test-static-secret"


class FakeStore:
    """In-memory document store with switchable failures."""

    def __init__(self, collections=None):
        self.collections = copy.deepcopy(collections or {})
        self.fail = False
        self.fail_collections = set()
        self.bootstraps = 0

    def _check(self, collection=""):
        if self.fail or collection in self.fail_collections:
            raise BackingStoreUnavailable("store down")

    def bootstrap(self):
        self.bootstraps += 1
        self._check()

    def find_one(self, collection, field, value):
        self._check(collection)
        for doc_id, data in self.collections.get(collection, {}).items():
            if data.get(field) == value:
                return {"id": doc_id, **copy.deepcopy(data)}
        return None

    def list_documents(self, collection):
        self._check(collection)
        return [{"id": k, **copy.deepcopy(v)} for k, v in self.collections.get(collection, {}).items()]

    def has_documents(self, collection):
        self._check(collection)
        return bool(self.collections.get(collection))

    def add_document(self, collection, data):
        self._check(collection)
        docs = self.collections.setdefault(collection, {})
        doc_id = f"doc{len(docs) + 1}"
        docs[doc_id] = copy.deepcopy(data)
        return doc_id


def seed_collections():
    return {
        "users": {
            "u-admin": {
                "ucId": "UC100",
                "passwordHash": fingerprint("p@ss", STATIC_SECRET),
                "role": "admin",
                "isActive": True,
                "firstName": "Ada",
                "lastName": "Admin",
                "createdAt": "2024-01-10T09:30:00",
            },
            "u-mod": {
                "ucId": "UC200",
                "passwordHash": fingerprint("mod-pass", STATIC_SECRET),
                "role": "moderator",
                "isActive": True,
                "firstName": "Mo",
                "lastName": "Derator",
                "createdAt": "2024-02-01T08:00:00",
            },
            "u-student": {
                "ucId": "UC300",
                "passwordHash": hash_password("student-pass"),
                "isActive": True,
                "firstName": "Sam",
                "lastName": "Student",
                "imei": "356938035643809",
                "createdAt": "2024-03-05T10:00:00",
                "lastLogin": "2024-03-06T11:15:00",
            },
            "u-gone": {
                "ucId": "UC400",
                "passwordHash": fingerprint("gone-pass", STATIC_SECRET),
                "role": "student",
                "isActive": False,
                "firstName": "Gina",
                "lastName": "Gone",
                "createdAt": "2023-09-01T10:00:00",
                "deactivatedAt": "2024-01-01T00:00:00",
            },
        },
        "attendance": {
            "a1": {"ucId": "UC300", "classId": "C1", "present": True},
            "a2": {"ucId": "UC400", "classId": "C1", "present": False},
        },
        "events": {
            "e1": {
                "title": "Orientation",
                "room": "A1",
                "meta": {"capacity": 40},
                "tags": ["intro"],
                "start": "2024-09-01T09:00:00",
                "end": "2024-09-01T11:00:00",
                "owner": "UC100",
            },
        },
    }


@pytest.fixture()
def static_secret() -> str:
    return STATIC_SECRET


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore(seed_collections())


@pytest.fixture()
def yaml_path(tmp_path: Path) -> Path:
    path = tmp_path / "attendance.yml"
    path.write_text(
        yaml.safe_dump({"collections": seed_collections()}, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def app_module(store, tmp_path, monkeypatch):
    monkeypatch.setenv("ATTVIEW_SECRET_KEY", STATIC_SECRET)
    monkeypatch.setenv("ATTVIEW_BACKEND", "yaml")
    monkeypatch.setenv("ATTVIEW_DATA_PATH", str(tmp_path / "unused.yml"))
    monkeypatch.delenv("ATTVIEW_TOKEN_SCHEME", raising=False)
    monkeypatch.delenv("ATTVIEW_PASSWORD_SCHEME", raising=False)
    monkeypatch.delenv("ATTVIEW_IDENTITY_COLLECTION", raising=False)

    import attview.app as module
    importlib.reload(module)
    module.STATE["store"] = store
    return module


@pytest.fixture()
def client(app_module):
    from fastapi.testclient import TestClient

    return TestClient(app_module.app)


def login(client, uc_id="UC100", password="p@ss", next="/"):
    return client.post(
        "/login",
        data={"ucId": uc_id, "password": password, "next": next},
        follow_redirects=False,
    )
