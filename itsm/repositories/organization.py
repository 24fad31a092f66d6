from __future__ import annotations

from sqlalchemy import or_, select

from itsm.models.organization import Department, Filiale, Role, User
from itsm.repositories.base import Repository
from itsm.schemas.filters import DepartmentFilters, FilialeFilters, RoleFilters


class FilialeRepository(Repository[Filiale]):
    model = Filiale
    filters_model = FilialeFilters

    def default_order(self):
        return (Filiale.name, Filiale.id)

    def get_by_code(self, code: str) -> Filiale | None:
        with self._op("get_by_code"):
            return self.db.scalars(select(Filiale).where(Filiale.code == code)).first()

    def list_active(self) -> list[Filiale]:
        return self.all(filters={"is_active": True})

    def software_provider(self) -> Filiale | None:
        """The filiale whose IT department serves the whole group."""

        stmt = self.query(filters={"is_software_provider": True}).select_statement()
        with self._op("software_provider"):
            return self.db.scalars(stmt).first()


class DepartmentRepository(Repository[Department]):
    model = Department
    filters_model = DepartmentFilters

    def default_order(self):
        return (Department.name, Department.id)

    def get_by_code(self, code: str) -> Department | None:
        with self._op("get_by_code"):
            return self.db.scalars(select(Department).where(Department.code == code)).first()

    def list_active(self) -> list[Department]:
        return self.all(filters={"is_active": True})

    def list_for_filiale(self, filiale_id: int) -> list[Department]:
        """Active departments of one filiale."""

        return self.all(filters={"filiale_id": filiale_id, "is_active": True})

    def list_it_departments(self, filiale_id: int | None = None) -> list[Department]:
        return self.all(filters={"filiale_id": filiale_id, "is_it_department": True, "is_active": True})


class RoleRepository(Repository[Role]):
    model = Role
    filters_model = RoleFilters

    def default_order(self):
        return (Role.name, Role.id)

    def get_by_name(self, name: str) -> Role | None:
        with self._op("get_by_name"):
            return self.db.scalars(select(Role).where(Role.name == name)).first()

    def list_for_filiale(self, filiale_id: int | None) -> list[Role]:
        """
        Group-wide roles, plus the roles owned by `filiale_id`.

        With no filiale only the group-wide roles come back.
        """

        owned = Role.filiale_id.is_(None)
        if filiale_id is not None:
            owned = or_(owned, Role.filiale_id == filiale_id)
        stmt = self.query().where(owned).select_statement()
        with self._op("list_for_filiale"):
            return list(self.db.scalars(stmt).all())

    def list_used_in_department(self, department_id: int) -> list[Role]:
        return self._used_by(User.department_id == department_id, "list_used_in_department")

    def list_used_in_filiale(self, filiale_id: int) -> list[Role]:
        return self._used_by(User.filiale_id == filiale_id, "list_used_in_filiale")

    def _used_by(self, users, name: str) -> list[Role]:
        # Deleted users do not keep a role in use.
        stmt = self.query().where(Role.id.in_(select(User.role_id).where(users))).select_statement()
        with self._op(name):
            return list(self.db.scalars(stmt).all())
