"""Tests for the permission catalog and preset roles."""

import pytest

from src.backoffice.core.permissions import (
    PRESET_ROLES,
    SYSTEM_MODULES,
    all_permission_names,
    list_modules,
    list_preset_roles,
    normalize_permission_name,
    split_permission_name,
)


def test_catalog_has_ten_modules_with_three_actions():
    assert len(SYSTEM_MODULES) == 10
    for key, module in SYSTEM_MODULES.items():
        assert module["permissions"] == [f"{key}.read", f"{key}.write", f"{key}.delete"]
    assert len(all_permission_names()) == 30


def test_super_admin_preset_holds_every_permission():
    assert set(PRESET_ROLES["SUPER_ADMIN"]["permissions"]) == all_permission_names()


def test_presets_only_reference_catalog_permissions():
    known = all_permission_names()
    assert len(PRESET_ROLES) == 10
    for preset in PRESET_ROLES.values():
        assert set(preset["permissions"]) <= known


def test_preset_names_are_unique():
    names = [preset["name"] for preset in PRESET_ROLES.values()]
    assert len(names) == len(set(names))


def test_listings_are_copies():
    modules = list_modules()
    modules["users"]["permissions"].append("users.admin")
    assert "users.admin" not in SYSTEM_MODULES["users"]["permissions"]

    presets = list_preset_roles()
    presets["PRO"]["permissions"].clear()
    assert PRESET_ROLES["PRO"]["permissions"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("riders.read", "riders.read"),
        ("riders:read", "riders.read"),
        ("  Users:Write ", "users.write"),
    ],
)
def test_normalize_permission_name(raw, expected):
    assert normalize_permission_name(raw) == expected


def test_split_permission_name():
    assert split_permission_name("finance:delete") == ("finance", "delete")


@pytest.mark.parametrize("bad", ["riders", ".read", "riders.", "a.b.c"])
def test_split_permission_name_rejects_malformed(bad):
    with pytest.raises(ValueError):
        split_permission_name(bad)
