from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from itsm.models.assets import Asset, AssetCategory
from itsm.repositories.base import Repository
from itsm.schemas.filters import AssetCategoryFilters, AssetFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind


def _matches(text: str):
    pattern = f"%{text}%"
    return or_(
        Asset.name.ilike(pattern),
        Asset.serial_number.ilike(pattern),
        Asset.model.ilike(pattern),
        Asset.manufacturer.ilike(pattern),
    )


class AssetRepository(Repository[Asset]):
    model = Asset
    kind = EntityKind.ASSETS
    filters_model = AssetFilters
    list_options = (selectinload(Asset.category), selectinload(Asset.assigned_to))

    def _filter_search(self, value: str):
        return _matches(value)

    def get_by_serial_number(self, serial_number: str, *, scope: QueryScope | None = None) -> Asset | None:
        spec = self.query(scope).where(Asset.serial_number == serial_number)
        with self._op("get_by_serial_number"):
            return self.db.scalars(spec.select_statement(*self.list_options)).first()

    def search(self, text: str, scope: QueryScope | None = None, *, limit: int | None = None) -> list[Asset]:
        stmt = self.query(scope).where(_matches(text)).select_statement(*self.list_options)
        if limit is not None and limit > 0:
            stmt = stmt.limit(limit)
        with self._op("search"):
            return list(self.db.scalars(stmt).all())

    def count_by_category(self, scope: QueryScope | None = None) -> dict[int, int]:
        spec = self.query(scope)
        stmt = (
            select(Asset.category_id, func.count())
            .select_from(Asset)
            .where(*spec.criteria)
            .group_by(Asset.category_id)
        )
        with self._op("count_by_category"):
            return {category_id: int(total) for category_id, total in self.db.execute(stmt).all()}


class AssetCategoryRepository(Repository[AssetCategory]):
    model = AssetCategory
    filters_model = AssetCategoryFilters

    def default_order(self):
        return (AssetCategory.name, AssetCategory.id)

    def list_children(self, parent_id: int | None) -> list[AssetCategory]:
        """Direct children of `parent_id`; `None` lists the root categories."""

        parent = AssetCategory.parent_id.is_(None) if parent_id is None else AssetCategory.parent_id == parent_id
        with self._op("list_children"):
            return list(self.db.scalars(self.query().where(parent).select_statement()).all())

    def count_children(self, parent_id: int) -> int:
        stmt = select(func.count()).select_from(AssetCategory).where(AssetCategory.parent_id == parent_id)
        with self._op("count_children"):
            return int(self.db.scalar(stmt) or 0)
