"""
Immutable query descriptions (`QuerySpec`) and pagination.

A `QuerySpec` is built once (base criteria + scope + filters) and then
rendered twice: as a COUNT and as the paged SELECT. Both renderings read the
same `criteria` tuple, so the total always describes the rows being paged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Generic, NamedTuple, TypeVar

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from itsm.errors import MalformedInputError
from itsm.settings import get_settings

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class QuerySpec(Generic[ModelT]):
    model: type[ModelT]
    criteria: tuple[ColumnElement[bool], ...] = ()
    order_by: tuple[Any, ...] = ()
    include_deleted: bool = False

    def where(self, *criteria: ColumnElement[bool]) -> QuerySpec[ModelT]:
        return replace(self, criteria=self.criteria + tuple(criteria))

    def ordered_by(self, *order_by: Any) -> QuerySpec[ModelT]:
        return replace(self, order_by=tuple(order_by))

    def with_deleted(self) -> QuerySpec[ModelT]:
        return replace(self, include_deleted=True)

    def count_statement(self) -> Select:
        # No loader options and no ORDER BY: the count sees the bare row set.
        stmt = select(func.count()).select_from(self.model).where(*self.criteria)
        return self._finish(stmt)

    def select_statement(self, *options: Any) -> Select:
        order_by = self.order_by or tuple(inspect(self.model).primary_key)
        stmt = select(self.model).where(*self.criteria).order_by(*order_by)
        if options:
            stmt = stmt.options(*options)
        return self._finish(stmt)

    def _finish(self, stmt: Select) -> Select:
        if self.include_deleted:
            stmt = stmt.execution_options(include_deleted=True)
        return stmt


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def normalize(cls, page: Any = 1, page_size: Any = None) -> Pagination:
        """
        Clamp user-supplied paging values.

        - page < 1 becomes 1
        - page_size <= 0 (or None) becomes the configured default
        - anything that is not an integer is rejected
        """

        if page is None:
            page = 1
        if not _is_int(page):
            raise MalformedInputError(f"page must be an integer, got {page!r}")
        if page_size is not None and not _is_int(page_size):
            raise MalformedInputError(f"page_size must be an integer, got {page_size!r}")

        if page_size is None or page_size <= 0:
            page_size = get_settings().default_page_size
        return cls(page=max(page, 1), page_size=page_size)


class PageResult(NamedTuple, Generic[ModelT]):
    items: list[ModelT]
    total: int


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def count(db: Session, spec: QuerySpec[Any]) -> int:
    return int(db.scalar(spec.count_statement()) or 0)


def fetch_all(db: Session, spec: QuerySpec[ModelT], *options: Any, limit: int | None = None) -> list[ModelT]:
    stmt = spec.select_statement(*options)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt).all())


def paginate(db: Session, spec: QuerySpec[ModelT], pagination: Pagination, *options: Any) -> PageResult[ModelT]:
    """
    Run COUNT then the paged SELECT for the same spec.

    `options` should be `selectinload(...)` style loaders: they add queries,
    not rows, so the page never holds more than `page_size` entities.
    """

    total = count(db, spec)
    stmt = spec.select_statement(*options).offset(pagination.offset).limit(pagination.page_size)
    items = list(db.scalars(stmt).all())
    return PageResult(items=items, total=total)
