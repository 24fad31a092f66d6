from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from itsm.models.sla import SLA, TicketSLA
from itsm.repositories.base import Repository
from itsm.schemas.filters import SLAFilters, TicketSLAFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind

SLA_VIOLATED = "violated"


class SLARepository(Repository[SLA]):
    model = SLA
    filters_model = SLAFilters

    def list_active(self) -> list[SLA]:
        return self.all(filters={"is_active": True})

    def find_for(self, category: str, priority: str | None = None) -> SLA | None:
        """
        Active SLA for a ticket category and priority.

        Without a priority only the category-wide SLA (no priority) matches.
        """

        by_priority = SLA.priority == priority if priority else SLA.priority.is_(None)
        stmt = (
            select(SLA)
            .where(SLA.ticket_category == category, SLA.is_active.is_(True), by_priority)
            .order_by(SLA.id)
        )
        with self._op("find_for"):
            return self.db.scalars(stmt).first()


class TicketSLARepository(Repository[TicketSLA]):
    model = TicketSLA
    kind = EntityKind.TICKET_SLA
    filters_model = TicketSLAFilters
    list_options = (selectinload(TicketSLA.ticket), selectinload(TicketSLA.sla))

    def get_by_ticket(self, ticket_id: int) -> TicketSLA | None:
        stmt = select(TicketSLA).where(TicketSLA.ticket_id == ticket_id).options(*self.list_options)
        with self._op("get_by_ticket"):
            return self.db.scalars(stmt).first()

    def list_violated(self, scope: QueryScope | None = None) -> list[TicketSLA]:
        return self.all(scope, {"status": SLA_VIOLATED})
