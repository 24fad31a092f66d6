"""
Generic repository over one ORM model.

A repository composes a `QuerySpec` from three parts, in this order:
validated filters, the caller's scope, and the model's default ordering.
Listings, counts and unbounded fetches all render that same spec.

Filters map onto columns of the same name unless the subclass defines a
`_filter_<name>(value)` method returning the predicate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import ValidationError
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from itsm.db.base import SoftDeleteMixin, utcnow
from itsm.db.codes import current_year, insert_with_code, next_code
from itsm.db.query import PageResult, Pagination, QuerySpec, count as count_rows, fetch_all, paginate
from itsm.errors import MalformedInputError, NotFoundError, storage_operation
from itsm.schemas.filters import FilterModel
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind, apply_scope

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")
LinkT = TypeVar("LinkT")


class Repository(Generic[ModelT]):
    model: ClassVar[type[Any]]
    kind: ClassVar[EntityKind | None] = None
    filters_model: ClassVar[type[FilterModel]] = FilterModel
    # Loader options for SELECTs (selectinload only; never joinedload).
    list_options: ClassVar[tuple[Any, ...]] = ()

    def __init__(self, db: Session):
        self.db = db

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    @property
    def soft_deletes(self) -> bool:
        return issubclass(self.model, SoftDeleteMixin)

    def _op(self, name: str):
        return storage_operation(f"{self.entity_name}.{name}")

    # -- query composition ---------------------------------------------

    def default_order(self) -> tuple[Any, ...]:
        created_at = getattr(self.model, "created_at", None)
        if created_at is None:
            return ()
        return (created_at.desc(), self.model.id.desc())

    def filter_criteria(self, filters: Mapping[str, Any] | FilterModel | None) -> tuple[ColumnElement[bool], ...]:
        if filters is None:
            return ()
        if isinstance(filters, FilterModel):
            parsed = filters
        else:
            try:
                parsed = self.filters_model.model_validate(dict(filters))
            except ValidationError as exc:
                raise MalformedInputError(f"invalid {self.entity_name} filters: {exc}") from exc

        criteria: list[ColumnElement[bool]] = []
        for name, value in parsed.model_dump(exclude_none=True).items():
            if value == "":
                continue
            handler: Callable[[Any], ColumnElement[bool]] | None = getattr(self, f"_filter_{name}", None)
            if handler is not None:
                criteria.append(handler(value))
            else:
                criteria.append(getattr(self.model, name) == value)
        return tuple(criteria)

    def query(
        self,
        scope: QueryScope | None = None,
        filters: Mapping[str, Any] | FilterModel | None = None,
        *,
        include_deleted: bool = False,
        category: str | None = None,
    ) -> QuerySpec[ModelT]:
        spec: QuerySpec[ModelT] = QuerySpec(self.model, order_by=self.default_order())
        spec = spec.where(*self.filter_criteria(filters))
        if self.kind is not None:
            spec = apply_scope(spec, scope, self.kind, category=category)
        if include_deleted:
            spec = spec.with_deleted()
        return spec

    def _pk_criteria(self, entity_id: Any) -> ColumnElement[bool]:
        (pk,) = inspect(self.model).primary_key
        return pk == entity_id

    # -- reads ------------------------------------------------------------

    def find(self, entity_id: Any, *, scope: QueryScope | None = None, include_deleted: bool = False) -> ModelT | None:
        spec = self.query(scope, include_deleted=include_deleted).where(self._pk_criteria(entity_id))
        with self._op("find"):
            return self.db.scalars(spec.select_statement(*self.list_options)).first()

    def get(self, entity_id: Any, *, scope: QueryScope | None = None, include_deleted: bool = False) -> ModelT:
        """Like `find`, but a missing or out-of-scope row raises `NotFoundError`."""

        entity = self.find(entity_id, scope=scope, include_deleted=include_deleted)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def exists(self, entity_id: Any, *, scope: QueryScope | None = None) -> bool:
        spec = self.query(scope).where(self._pk_criteria(entity_id))
        with self._op("exists"):
            return count_rows(self.db, spec) > 0

    def list(
        self,
        scope: QueryScope | None = None,
        page: Any = 1,
        page_size: Any = None,
        filters: Mapping[str, Any] | FilterModel | None = None,
    ) -> PageResult[ModelT]:
        pagination = Pagination.normalize(page, page_size)
        spec = self.query(scope, filters)
        with self._op("list"):
            return paginate(self.db, spec, pagination, *self.list_options)

    def count(self, scope: QueryScope | None = None, filters: Mapping[str, Any] | FilterModel | None = None) -> int:
        with self._op("count"):
            return count_rows(self.db, self.query(scope, filters))

    def all(self, scope: QueryScope | None = None, filters: Mapping[str, Any] | FilterModel | None = None) -> list[ModelT]:
        with self._op("all"):
            return fetch_all(self.db, self.query(scope, filters), *self.list_options)

    def _paged(self, spec: QuerySpec[ModelT], page: Any, page_size: Any, name: str) -> PageResult[ModelT]:
        pagination = Pagination.normalize(page, page_size)
        with self._op(name):
            return paginate(self.db, spec, pagination, *self.list_options)

    # -- writes -----------------------------------------------------------

    def add(self, entity: ModelT) -> ModelT:
        with self._op("add"):
            self.db.add(entity)
            self.db.flush()
        return entity

    def update_fields(self, entity_id: Any, values: Mapping[str, Any], *, scope: QueryScope | None = None) -> ModelT:
        """Set column values on one row; unknown or primary-key columns are rejected."""

        mapper = inspect(self.model)
        writable = set(mapper.column_attrs.keys()) - {c.key for c in mapper.primary_key}
        unknown = sorted(set(values) - writable)
        if unknown:
            raise MalformedInputError(f"cannot update {self.entity_name} fields: {', '.join(unknown)}")

        entity = self.get(entity_id, scope=scope)
        for key, value in values.items():
            setattr(entity, key, value)
        with self._op("update_fields"):
            self.db.flush()
        return entity

    def delete(self, entity_id: Any, *, scope: QueryScope | None = None, hard: bool = False) -> None:
        """Soft delete when the model supports it, otherwise remove the row."""

        entity = self.get(entity_id, scope=scope)
        with self._op("delete"):
            if self.soft_deletes and not hard:
                entity.deleted_at = utcnow()
            else:
                self.db.delete(entity)
            self.db.flush()
        logger.debug("Deleted %s id=%s (soft=%s)", self.entity_name, entity_id, self.soft_deletes and not hard)

    def restore(self, entity_id: Any) -> ModelT:
        if not self.soft_deletes:
            raise TypeError(f"{self.entity_name} does not support soft delete")

        entity = self.get(entity_id, include_deleted=True)
        entity.deleted_at = None
        with self._op("restore"):
            self.db.flush()
        return entity

    def _find_link(self, model: type[LinkT], keys: Mapping[str, Any]) -> LinkT | None:
        return self.db.scalars(select(model).filter_by(**keys)).first()

    def _add_link(self, model: type[LinkT], name: str, keys: Mapping[str, Any], **extra: Any) -> LinkT:
        """
        Insert a join row unless one already exists for `keys`.

        The insert runs in a SAVEPOINT. If a concurrent request inserted the
        same link first, the unique constraint rolls back only this attempt
        and the row already stored is returned.
        """

        with self._op(name):
            existing = self._find_link(model, keys)
            if existing is not None:
                return existing

            link = model(**keys, **extra)
            try:
                with self.db.begin_nested():
                    self.db.add(link)
                    self.db.flush()
            except IntegrityError:
                existing = self._find_link(model, keys)
                if existing is None:
                    raise
                logger.debug("%s %s already linked; returning stored row", model.__name__, dict(keys))
                return existing
        return link


class CodedRepository(Repository[ModelT]):
    """Repository for models carrying a `<PREFIX>-<YEAR>-<NNNN>` code column."""

    code_prefix: ClassVar[str]

    def code_criteria(self, **context: Any) -> tuple[ColumnElement[bool], ...]:
        """Extra predicates bounding the numbering sequence (e.g. per project)."""

        return ()

    def next_code(self, year: int | None = None, **context: Any) -> str:
        with self._op("next_code"):
            return next_code(self.db, self.model.code, self.code_prefix, year, *self.code_criteria(**context))

    def code_exists(self, code: str, **context: Any) -> bool:
        stmt = (
            select(self.model.id)
            .where(self.model.code == code, *self.code_criteria(**context))
            .limit(1)
            .execution_options(include_deleted=True)
        )
        with self._op("code_exists"):
            return self.db.scalar(stmt) is not None

    def create(self, **fields: Any) -> ModelT:
        """
        Insert a new row with a freshly generated code.

        Codes are numbered within the year the row is created in.
        """

        year = current_year()
        context = self._code_context(fields)

        def build(code: str) -> ModelT:
            return self.model(code=code, **fields)

        with self._op("create"):
            entity = insert_with_code(
                self.db,
                build,
                lambda: self.next_code(year, **context),
                lambda code: self.code_exists(code, **context),
            )
        logger.info("Created %s %s", self.entity_name, entity.code)
        return entity

    def _code_context(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {}
