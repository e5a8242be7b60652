"""Permission catalog.

Static definition of the system modules, the read/write/delete permissions
each one exposes, and the preset roles offered to administrators.

Permission names are canonically ``resource.action``. The colon spelling
(``resource:action``) used by older clients is accepted on input and
normalized by :func:`normalize_permission_name`.
"""
from __future__ import annotations

import copy
from typing import Any

PERMISSION_ACTIONS = ("read", "write", "delete")

_SEPARATORS = (".", ":")


def _module(display_name: str, key: str) -> dict[str, Any]:
    return {
        "name": display_name,
        "permissions": [f"{key}.{action}" for action in PERMISSION_ACTIONS],
    }


SYSTEM_MODULES: dict[str, dict[str, Any]] = {
    "users": _module("User Management", "users"),
    "riders": _module("Rider Management", "riders"),
    "vehicles": _module("Vehicle Management", "vehicles"),
    "garage": _module("Garage Management", "garage"),
    "jobs": _module("Job Management", "jobs"),
    "reports": _module("Reports & Analytics", "reports"),
    "finance": _module("Financial Management", "finance"),
    "legal": _module("Legal & Compliance", "legal"),
    "hr": _module("Human Resources", "hr"),
    "settings": _module("System Settings", "settings"),
}


def all_permission_names() -> set[str]:
    """Every permission exposed by the module catalog."""
    return {name for module in SYSTEM_MODULES.values() for name in module["permissions"]}


PRESET_ROLES: dict[str, dict[str, Any]] = {
    "SUPER_ADMIN": {
        "name": "Super Admin",
        "description": "Full system access with all permissions",
        "permissions": sorted(all_permission_names()),
    },
    "GENERAL_ADMIN": {
        "name": "General Admin",
        "description": "General administrative access",
        "permissions": [
            "users.read", "users.write",
            "riders.read", "riders.write",
            "vehicles.read", "vehicles.write",
            "jobs.read", "jobs.write",
            "reports.read",
        ],
    },
    "PRO": {
        "name": "PRO",
        "description": "Professional operations role",
        "permissions": [
            "riders.read", "riders.write",
            "vehicles.read", "vehicles.write",
            "jobs.read", "jobs.write",
            "reports.read",
        ],
    },
    "PRO_MANAGER": {
        "name": "PRO Manager",
        "description": "Professional operations manager",
        "permissions": [
            "riders.read", "riders.write", "riders.delete",
            "vehicles.read", "vehicles.write",
            "jobs.read", "jobs.write", "jobs.delete",
            "reports.read", "reports.write",
        ],
    },
    "OPERATIONS_SUPERVISOR": {
        "name": "Operations Supervisor",
        "description": "Supervises daily operations",
        "permissions": [
            "riders.read", "riders.write",
            "vehicles.read",
            "jobs.read", "jobs.write",
            "reports.read",
        ],
    },
    "ACCOUNTANT_MANAGER": {
        "name": "Accountant Manager",
        "description": "Financial management and oversight",
        "permissions": [
            "finance.read", "finance.write", "finance.delete",
            "reports.read", "reports.write",
            "users.read",
        ],
    },
    "ACCOUNTANT": {
        "name": "Accountant",
        "description": "Financial data entry and basic reporting",
        "permissions": ["finance.read", "finance.write", "reports.read"],
    },
    "LEGAL_OFFICER": {
        "name": "Legal Officer",
        "description": "Legal and compliance management",
        "permissions": [
            "legal.read", "legal.write", "legal.delete",
            "reports.read",
            "users.read",
            "riders.read",
        ],
    },
    "HR_MANAGER": {
        "name": "HR Manager",
        "description": "Human resources management",
        "permissions": [
            "hr.read", "hr.write", "hr.delete",
            "users.read", "users.write",
            "reports.read",
        ],
    },
    "GARAGE": {
        "name": "Garage",
        "description": "Vehicle maintenance and garage operations",
        "permissions": [
            "garage.read", "garage.write", "garage.delete",
            "vehicles.read", "vehicles.write",
            "reports.read",
        ],
    },
}


def list_modules() -> dict[str, dict[str, Any]]:
    """Return a copy of the module catalog."""
    return copy.deepcopy(SYSTEM_MODULES)


def list_preset_roles() -> dict[str, dict[str, Any]]:
    """Return a copy of the preset role definitions keyed by role key."""
    return copy.deepcopy(PRESET_ROLES)


def normalize_permission_name(name: str) -> str:
    """Return the canonical ``resource.action`` spelling of ``name``."""
    return name.strip().lower().replace(":", ".")


def split_permission_name(name: str) -> tuple[str, str]:
    """Split a permission name into ``(resource, action)``.

    Raises:
        ValueError: ``name`` is not of the form ``resource.action``.
    """
    canonical = normalize_permission_name(name)
    resource, sep, action = canonical.partition(".")
    if not sep or not resource or not action or any(s in action for s in _SEPARATORS):
        raise ValueError(f"Invalid permission name '{name}': expected 'resource.action'")
    return resource, action
