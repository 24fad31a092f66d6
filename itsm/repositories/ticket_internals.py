from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from itsm.db.query import PageResult
from itsm.models.tickets import CLOSED_TICKET_STATUSES, TicketInternal
from itsm.repositories.base import CodedRepository
from itsm.schemas.filters import TicketInternalFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind


class TicketInternalRepository(CodedRepository[TicketInternal]):
    model = TicketInternal
    kind = EntityKind.TICKET_INTERNALS
    filters_model = TicketInternalFilters
    code_prefix = "TKI"
    list_options = (
        selectinload(TicketInternal.department),
        selectinload(TicketInternal.created_by),
        selectinload(TicketInternal.assigned_to),
    )

    def list_basket(self, user_id: int, page: Any = 1, page_size: Any = None) -> PageResult[TicketInternal]:
        spec = self.query().where(
            TicketInternal.assigned_to_id == user_id,
            TicketInternal.status.not_in(CLOSED_TICKET_STATUSES),
        ).ordered_by(TicketInternal.updated_at.desc(), TicketInternal.id.desc())
        return self._paged(spec, page, page_size, "list_basket")

    def status_counts(self, scope: QueryScope | None = None) -> dict[str, int]:
        spec = self.query(scope)
        stmt = (
            select(TicketInternal.status, func.count())
            .select_from(TicketInternal)
            .where(*spec.criteria)
            .group_by(TicketInternal.status)
        )
        with self._op("status_counts"):
            return {status: int(total) for status, total in self.db.execute(stmt).all()}
