from __future__ import annotations

from sqlalchemy import or_, update
from sqlalchemy.orm import selectinload

from itsm.models.knowledge import KnowledgeArticle, KnowledgeCategory
from itsm.repositories.base import Repository
from itsm.schemas.filters import KnowledgeArticleFilters, KnowledgeCategoryFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind


def _matches(text: str):
    pattern = f"%{text}%"
    return or_(KnowledgeArticle.title.ilike(pattern), KnowledgeArticle.content.ilike(pattern))


class KnowledgeArticleRepository(Repository[KnowledgeArticle]):
    model = KnowledgeArticle
    kind = EntityKind.KNOWLEDGE_ARTICLES
    filters_model = KnowledgeArticleFilters
    list_options = (selectinload(KnowledgeArticle.category), selectinload(KnowledgeArticle.author))

    def _filter_search(self, value: str):
        return _matches(value)

    def search(self, text: str, scope: QueryScope | None = None, *, limit: int | None = None) -> list[KnowledgeArticle]:
        stmt = self.query(scope).where(_matches(text)).select_statement(*self.list_options)
        if limit is not None and limit > 0:
            stmt = stmt.limit(limit)
        with self._op("search"):
            return list(self.db.scalars(stmt).all())

    def list_published(self, scope: QueryScope | None = None) -> list[KnowledgeArticle]:
        return self.all(scope, {"is_published": True})

    def increment_view_count(self, article_id: int) -> None:
        stmt = (
            update(KnowledgeArticle)
            .where(KnowledgeArticle.id == article_id)
            .values(view_count=KnowledgeArticle.view_count + 1)
            .execution_options(synchronize_session="fetch")
        )
        with self._op("increment_view_count"):
            self.db.execute(stmt)


class KnowledgeCategoryRepository(Repository[KnowledgeCategory]):
    model = KnowledgeCategory
    filters_model = KnowledgeCategoryFilters

    def default_order(self):
        return (KnowledgeCategory.name, KnowledgeCategory.id)

    def list_children(self, parent_id: int | None) -> list[KnowledgeCategory]:
        parent = (
            KnowledgeCategory.parent_id.is_(None) if parent_id is None else KnowledgeCategory.parent_id == parent_id
        )
        with self._op("list_children"):
            return list(self.db.scalars(self.query().where(parent).select_statement()).all())

    def list_active(self) -> list[KnowledgeCategory]:
        return self.all(filters={"is_active": True})
