from datetime import datetime

from markupsafe import Markup

from attview.services.render_service import (
    choose_layout,
    format_date,
    format_value,
    plural,
    role_emoji,
    user_card,
)


def test_format_value():
    assert format_value(None) == Markup("<em>null</em>")
    assert format_value(True) == "✓ true"
    assert format_value(False) == "✗ false"
    assert format_value(3) == "3"
    assert format_value(datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06 07:08:09"


def test_format_value_escapes_nested_json():
    out = format_value({"html": "<b>"})
    assert isinstance(out, Markup)
    assert out.startswith("<pre>")
    assert "&lt;b&gt;" in out


def test_format_date():
    assert format_date(None) == "N/A"
    assert format_date("") == "N/A"
    assert format_date("2024-03-05T10:00:00") == "2024-03-05 10:00"
    assert format_date(datetime(2024, 3, 5, 10, 0)) == "2024-03-05 10:00"
    assert format_date("yesterday") == "yesterday"


def test_choose_layout():
    assert choose_layout("users", ["id"], []) == "users"
    assert choose_layout("attendance", ["id", "a", "b"], [{"id": "1"}]) == "table"
    assert choose_layout("attendance", ["id", "a"], []) == "cards"
    assert choose_layout("events", list("abcdefg"), [{"id": "1"}]) == "cards"
    assert choose_layout("identities", ["id"], [], users_collection="identities") == "users"
    assert choose_layout("users", ["id", "a"], [{"id": "1"}], users_collection="identities") == "table"


def test_user_card():
    card = user_card({"id": "d1", "ucId": "UC1", "firstName": "A", "lastName": "B", "isActive": False})
    assert card["role"] == "student"
    assert card["emoji"] == role_emoji("student") == "👤"
    assert card["status_text"] == "Deactivated"
    assert card["status_class"] == "status-inactive"
    assert card["created"] == "N/A"
    assert card["last_login"] == ""
    assert card["name"] == "A B"


def test_role_emoji_and_plural():
    assert role_emoji("admin") == "👑"
    assert role_emoji("moderator") == "🛡️"
    assert plural(1, "document") == "1 document"
    assert plural(2, "document") == "2 documents"
