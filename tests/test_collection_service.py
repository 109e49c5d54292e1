from datetime import datetime, timezone

import pytest

from attview.services.collection_service import (
    COMMON_COLLECTIONS,
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


def test_discover_skips_failing_and_empty_collections(store):
    store.fail_collections = {"events"}
    found = discover_collections(store)
    assert found == ["users", "attendance"]


def test_collection_options_merge_sort_and_mark():
    options = collection_options({"events", "users"})
    values = [v for v, _ in options]
    assert values == sorted(set(COMMON_COLLECTIONS) | {"events"})
    labels = dict(options)
    assert labels["events"] == "Events ✓"
    assert labels["users"] == "Users ✓"
    assert labels["courses"] == "Courses"


@pytest.mark.parametrize("name", ["", "   ", "a/b", "__meta__"])
def test_validate_collection_name_rejects(name):
    with pytest.raises(ValueError):
        validate_collection_name(name)


def test_validate_collection_name_trims():
    assert validate_collection_name("  events ") == "events"


def test_documents_frame_puts_id_first_and_keeps_field_order():
    docs = [{"id": "1", "b": 1, "a": 2}, {"id": "2", "c": 3, "a": 4}]
    df = documents_frame(docs)
    assert frame_fields(df) == ["id", "b", "a", "c"]
    records = frame_records(df)
    assert records[0]["c"] is None
    assert records[1]["b"] is None
    assert records[1]["c"] == 3


def test_documents_frame_empty():
    assert frame_fields(documents_frame([])) == ["id"]
    assert frame_records(documents_frame([])) == []


def test_filter_users_by_role_uses_student_default(store):
    docs = store.list_documents("users")
    students = filter_users(docs, role="student")
    assert sorted(d["ucId"] for d in students) == ["UC300", "UC400"]
    assert [d["ucId"] for d in filter_users(docs, role="admin")] == ["UC100"]


def test_filter_users_by_status_is_strict():
    docs = [
        {"id": "1", "isActive": True},
        {"id": "2", "isActive": False},
        {"id": "3"},
    ]
    assert [d["id"] for d in filter_users(docs, status="active")] == ["1"]
    assert [d["id"] for d in filter_users(docs, status="inactive")] == ["2"]
    assert len(filter_users(docs)) == 3


def test_filter_users_combined(store):
    docs = store.list_documents("users")
    res = filter_users(docs, role="student", status="inactive")
    assert [d["ucId"] for d in res] == ["UC400"]
    # Original documents are returned untouched.
    assert res[0] is docs[3]


def test_filter_users_rejects_unknown_values(store):
    docs = store.list_documents("users")
    with pytest.raises(ValueError):
        filter_users(docs, role="root")
    with pytest.raises(ValueError):
        filter_users(docs, status="sleeping")


def test_user_counts(store):
    counts = user_counts(store.list_documents("users"))
    assert counts["admin"] == {"active": 1, "inactive": 0, "total": 1}
    assert counts["moderator"]["total"] == 1
    assert counts["student"] == {"active": 1, "inactive": 1, "total": 2}


def test_export_frame_serialises_nested_values():
    when = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)
    df = export_frame([{"id": "1", "meta": {"a": 1}, "tags": ["x"], "at": when}])
    row = df.iloc[0]
    assert row["meta"] == '{"a": 1}'
    assert row["tags"] == '["x"]'
    assert row["at"] == "2024-01-02T03:04:00+00:00"


def test_export_frame_drops_password_hash(store):
    docs = [{"id": k, **v} for k, v in store.collections["users"].items()]
    df = export_frame(docs)
    assert "passwordHash" not in df.columns
    assert list(df["ucId"]) == ["UC100", "UC200", "UC300", "UC400"]


def test_strip_credentials_leaves_input_untouched():
    docs = [{"id": "1", "ucId": "UC1", "passwordHash": "x"}]
    assert strip_credentials(docs) == [{"id": "1", "ucId": "UC1"}]
    assert docs[0]["passwordHash"] == "x"


def test_remembered_collection_names():
    raw = dump_collection_names({"grades", "events", "x" * 101})
    assert load_collection_names(raw) == {"events", "grades"}


@pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', '["a/b", 3, "__x__"]'])
def test_load_collection_names_ignores_bad_values(raw):
    assert load_collection_names(raw) == set()


def test_remembered_collection_names_are_capped():
    names = {f"c{i:02d}" for i in range(40)}
    assert len(load_collection_names(dump_collection_names(names))) == 20
