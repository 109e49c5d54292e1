from attview.auth.users import Identity
from attview.permissions import CAPABILITIES, can, capabilities_for


def _user(role):
    return Identity.from_document({"id": "x", "ucId": "UC1", "role": role, "isActive": True})


def test_role_tiers_are_strict_supersets():
    student = capabilities_for("student")
    moderator = capabilities_for("moderator")
    admin = capabilities_for("admin")
    assert student < moderator < admin
    assert admin == frozenset(CAPABILITIES)


def test_admin_unlocks_admin_navigation_and_account_creation():
    admin = _user("admin")
    assert can(admin, "admin_panel")
    assert can(admin, "create_account")
    assert can(admin, "navigation")


def test_moderator_gets_navigation_only():
    mod = _user("moderator")
    assert can(mod, "navigation")
    assert not can(mod, "admin_panel")
    assert not can(mod, "create_account")


def test_missing_role_defaults_to_student():
    u = _user(None)
    assert u.role == "student"
    assert capabilities_for(u.role) == frozenset({"view_data"})
    assert capabilities_for(None) == capabilities_for("student")


def test_anonymous_and_unknown_capability():
    assert not can(None, "view_data")
    assert not can(_user("admin"), "launch_rockets")
