from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import selectinload

from itsm.db.query import PageResult
from itsm.errors import MalformedInputError
from itsm.models.tickets import CLOSED_TICKET_STATUSES, Ticket, TicketAssignee
from itsm.repositories.base import CodedRepository
from itsm.schemas.filters import TicketFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind

logger = logging.getLogger(__name__)


def _assigned_to_user(user_id: int):
    return or_(
        Ticket.assigned_to_id == user_id,
        Ticket.id.in_(select(TicketAssignee.ticket_id).where(TicketAssignee.user_id == user_id)),
    )


class TicketRepository(CodedRepository[Ticket]):
    model = Ticket
    kind = EntityKind.TICKETS
    filters_model = TicketFilters
    code_prefix = "TKT"
    list_options = (
        selectinload(Ticket.created_by),
        selectinload(Ticket.assigned_to),
        selectinload(Ticket.requester),
        selectinload(Ticket.filiale),
        selectinload(Ticket.assignees),
    )

    def _filter_assignee_user_id(self, value: int):
        return _assigned_to_user(value)

    def _filter_search(self, value: str):
        return _matches(value)

    def _filter_created_from(self, value):
        return Ticket.created_at >= value

    def _filter_created_to(self, value):
        return Ticket.created_at <= value

    def list_by_category(
        self,
        category: str,
        scope: QueryScope | None = None,
        page: Any = 1,
        page_size: Any = None,
        filters: dict[str, Any] | None = None,
    ) -> PageResult[Ticket]:
        """
        Tickets of one category.

        Visibility also honours the ITIL module permissions of that category
        (e.g. `incidents.view_team` for incidents).
        """

        filters = {**(filters or {}), "category": category}
        spec = self.query(scope, filters, category=category)
        return self._paged(spec, page, page_size, "list_by_category")

    def list_basket(self, user_id: int, page: Any = 1, page_size: Any = None) -> PageResult[Ticket]:
        """Open tickets the user works on, as primary or co-assignee."""

        spec = self.query().where(
            Ticket.status.not_in(CLOSED_TICKET_STATUSES),
            _assigned_to_user(user_id),
        ).ordered_by(Ticket.updated_at.desc(), Ticket.id.desc())
        return self._paged(spec, page, page_size, "list_basket")

    def search(
        self,
        text: str,
        scope: QueryScope | None = None,
        *,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[Ticket]:
        spec = self.query(scope, {"status": status}).where(_matches(text))
        stmt = spec.select_statement(*self.list_options)
        if limit is not None and limit > 0:
            stmt = stmt.limit(limit)
        with self._op("search"):
            return list(self.db.scalars(stmt).all())

    def count_by_status(self, scope: QueryScope | None = None) -> dict[str, int]:
        return self._count_grouped(Ticket.status, scope, "count_by_status")

    def count_by_category(self, scope: QueryScope | None = None) -> dict[str, int]:
        return self._count_grouped(Ticket.category, scope, "count_by_category")

    def _count_grouped(self, column: Any, scope: QueryScope | None, name: str) -> dict[str, int]:
        spec = self.query(scope)
        stmt = select(column, func.count()).select_from(Ticket).where(*spec.criteria).group_by(column)
        with self._op(name):
            return {key: int(total) for key, total in self.db.execute(stmt).all()}

    def add_assignee(self, ticket_id: int, user_id: int, *, is_lead: bool = False) -> TicketAssignee:
        """Add a co-assignee; adding the same user twice returns the existing link."""

        return self._add_link(
            TicketAssignee, "add_assignee", {"ticket_id": ticket_id, "user_id": user_id}, is_lead=is_lead
        )

    def update_requester_name(
        self,
        requester_name: str,
        *,
        requester_id: int | None = None,
        created_by_id: int | None = None,
        old_name: str | None = None,
    ) -> int:
        """
        Propagate a renamed requester onto the denormalized `requester_name`.

        Exactly one selector must be given. Returns the number of rows updated.
        """

        selectors = {
            "requester_id": (requester_id, Ticket.requester_id),
            "created_by_id": (created_by_id, Ticket.created_by_id),
            "old_name": (old_name, Ticket.requester_name),
        }
        given = [(value, column) for value, column in selectors.values() if value is not None]
        if len(given) != 1:
            raise MalformedInputError("exactly one of requester_id, created_by_id or old_name is required")
        ((value, column),) = given

        stmt = (
            update(Ticket)
            .where(column == value)
            .values(requester_name=requester_name)
            .execution_options(synchronize_session="evaluate")
        )
        with self._op("update_requester_name"):
            result = self.db.execute(stmt)
        logger.debug("Updated requester_name on %d ticket(s)", result.rowcount)
        return result.rowcount


def _matches(text: str):
    pattern = f"%{text}%"
    return or_(Ticket.title.ilike(pattern), Ticket.description.ilike(pattern))
