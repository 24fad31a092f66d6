"""Tests for the role -> permission YAML mapping."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from itsm.security.config import load_permission_config
from itsm.settings import get_settings


def test_repo_config_loads_and_indexes_by_role():
    config = load_permission_config(get_settings().resolved_permissions_config_path())

    admin = config.permissions_for_role("ADMIN")
    assert "tickets.view_all" in admin
    assert "audit.view_all" in admin
    assert "tickets.view_own" in config.permissions_for_role("USER")
    assert "tickets.view_all" not in config.permissions_for_role("USER")
    assert "ADMIN" in config.permission_roles("reports.view_global")


def test_unknown_role_has_no_permissions(tmp_path):
    path = tmp_path / "perms.yaml"
    path.write_text("security:\n  permissions:\n    tickets.view_own:\n      roles: [USER]\n", encoding="utf-8")

    config = load_permission_config(path)

    assert config.permissions_for_role("GHOST") == frozenset()
    assert config.permissions_for_role(None) == frozenset()
    assert config.permission_roles("tickets.view_all") == frozenset()
    assert config.roles == frozenset({"USER"})


def test_missing_security_key_raises(tmp_path):
    path = tmp_path / "perms.yaml"
    path.write_text("permissions: {}\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Missing top-level 'security' key"):
        load_permission_config(path)


def test_malformed_rule_is_rejected(tmp_path):
    path = tmp_path / "perms.yaml"
    path.write_text("security:\n  permissions:\n    tickets.view_own:\n      roles: USER_ONLY_NOT_A_LIST\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_permission_config(path)
