from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal

from itsm.models.organization import User
from itsm.security.config import PermissionConfig

logger = logging.getLogger(__name__)

DashboardHint = Literal["department", "filiale", "global"]


@dataclass(frozen=True)
class QueryScope:
    """
    Per-request visibility context handed to repositories.

    Built once from the authenticated user (see `scope_from_user`) and never
    mutated; `narrowed` returns a copy carrying report/dashboard filters.
    """

    user_id: int
    role: str | None = None
    permissions: frozenset[str] = frozenset()
    department_id: int | None = None
    filiale_id: int | None = None

    # IT department of the software-provider filiale.
    is_resolver: bool = False
    department_is_it: bool = False

    # Optional narrowing requested by the caller.
    filter_user_id: int | None = None
    filter_filiale_id: int | None = None
    dashboard_hint: DashboardHint | None = None

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def has_any_permission(self, *permissions: str) -> bool:
        return any(p in self.permissions for p in permissions)

    def has_all_permissions(self, *permissions: str) -> bool:
        return all(p in self.permissions for p in permissions)

    def narrowed(
        self,
        *,
        filter_user_id: int | None = None,
        filter_filiale_id: int | None = None,
        dashboard_hint: DashboardHint | None = None,
    ) -> QueryScope:
        return replace(
            self,
            filter_user_id=filter_user_id,
            filter_filiale_id=filter_filiale_id,
            dashboard_hint=dashboard_hint,
        )


def scope_from_user(user: User, config: PermissionConfig) -> QueryScope:
    """
    Build the scope for `user`.

    `user.role`, `user.department` and `user.filiale` should already be loaded
    (see `UserRepository.load_for_scope`).

    Filiale resolution order: the user's own filiale, then the role's, then
    the department's.
    """

    department = user.department
    filiale = user.filiale
    role = user.role

    filiale_id = user.filiale_id
    source = "user"
    if filiale_id is None and role is not None and role.filiale_id is not None:
        filiale_id, source = role.filiale_id, "role"
    elif filiale_id is None and department is not None and department.filiale_id is not None:
        filiale_id, source = department.filiale_id, "department"

    if filiale_id is None:
        logger.debug("Scope for user_id=%s has no filiale; filiale-scoped listings will be empty", user.id)
    else:
        logger.debug("Scope for user_id=%s filiale_id=%s (source=%s)", user.id, filiale_id, source)

    department_is_it = bool(department is not None and department.is_it_department)
    is_resolver = department_is_it and bool(filiale is not None and filiale.is_software_provider)

    role_name = role.name if role is not None else None
    return QueryScope(
        user_id=user.id,
        role=role_name,
        permissions=config.permissions_for_role(role_name),
        department_id=user.department_id,
        filiale_id=filiale_id,
        is_resolver=is_resolver,
        department_is_it=department_is_it,
    )
