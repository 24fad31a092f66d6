from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class PermissionRule(BaseModel):
    roles: list[str] = Field(default_factory=list)


class PermissionConfigModel(BaseModel):
    permissions: dict[str, PermissionRule] = Field(default_factory=dict)


class PermissionConfig:
    """
    Role -> permission lookup over the validated YAML mapping.

    The file is keyed by permission (who may do X), scopes need the inverse
    (what may role R do), so the index is built once here.
    """

    def __init__(self, model: PermissionConfigModel):
        self.model = model

        by_role: dict[str, set[str]] = {}
        for permission, rule in self.model.permissions.items():
            for role in rule.roles:
                by_role.setdefault(role, set()).add(permission)
        self._by_role = {role: frozenset(perms) for role, perms in by_role.items()}

    def permission_roles(self, permission_name: str) -> frozenset[str]:
        perm = self.model.permissions.get(permission_name)
        if not perm:
            return frozenset()
        return frozenset(perm.roles)

    def permissions_for_role(self, role: str | None) -> frozenset[str]:
        if not role:
            return frozenset()
        return self._by_role.get(role, frozenset())

    @property
    def roles(self) -> frozenset[str]:
        return frozenset(self._by_role)


def load_permission_config(path: Path) -> PermissionConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = PermissionConfigModel.model_validate(raw["security"] or {})
    return PermissionConfig(model)
