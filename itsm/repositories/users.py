from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from itsm.db.query import PageResult
from itsm.errors import NotFoundError
from itsm.models.organization import Role, User
from itsm.repositories.base import Repository
from itsm.schemas.filters import UserFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind


class UserRepository(Repository[User]):
    model = User
    kind = EntityKind.USERS
    filters_model = UserFilters
    list_options = (selectinload(User.role), selectinload(User.department))

    def _filter_search(self, value: str):
        pattern = f"%{value}%"
        return or_(
            User.username.ilike(pattern),
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        )

    def get_by_username(self, username: str) -> User | None:
        with self._op("get_by_username"):
            return self.db.scalars(select(User).where(User.username == username)).first()

    def get_by_email(self, email: str) -> User | None:
        with self._op("get_by_email"):
            return self.db.scalars(select(User).where(User.email == email)).first()

    def load_for_scope(self, user_id: int) -> User:
        """
        Active user with everything `scope_from_user` reads.

        Inactive users are reported as not found.
        """

        stmt = (
            select(User)
            .where(User.id == user_id, User.is_active.is_(True))
            .options(
                selectinload(User.role),
                selectinload(User.department),
                selectinload(User.filiale),
            )
        )
        with self._op("load_for_scope"):
            user = self.db.scalars(stmt).first()
        if user is None:
            raise NotFoundError(self.entity_name, user_id)
        return user

    def list_by_department(
        self,
        department_id: int,
        scope: QueryScope | None = None,
        page: Any = 1,
        page_size: Any = None,
    ) -> PageResult[User]:
        return self.list(scope, page, page_size, filters={"department_id": department_id})

    def list_by_role(self, role_name: str, scope: QueryScope | None = None) -> list[User]:
        spec = self.query(scope).where(User.role_id.in_(select(Role.id).where(Role.name == role_name)))
        with self._op("list_by_role"):
            return list(self.db.scalars(spec.select_statement(*self.list_options)).all())
