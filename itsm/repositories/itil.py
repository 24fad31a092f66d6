"""Incidents, service requests and changes: ITIL records hanging off a ticket."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from itsm.models.itil import Change, Incident, ServiceRequest, ServiceRequestType
from itsm.repositories.base import ModelT, Repository
from itsm.schemas.filters import ChangeFilters, IncidentFilters, ServiceRequestFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind


class _TicketRecordRepository(Repository[ModelT]):
    def get_by_ticket(self, ticket_id: int, *, scope: QueryScope | None = None) -> ModelT | None:
        spec = self.query(scope).where(self.model.ticket_id == ticket_id)
        with self._op("get_by_ticket"):
            return self.db.scalars(spec.select_statement(*self.list_options)).first()


class IncidentRepository(_TicketRecordRepository[Incident]):
    model = Incident
    kind = EntityKind.INCIDENTS
    filters_model = IncidentFilters
    list_options = (selectinload(Incident.ticket),)

    def _filter_resolved(self, value: bool):
        return Incident.resolved_at.is_not(None) if value else Incident.resolved_at.is_(None)


class ServiceRequestRepository(_TicketRecordRepository[ServiceRequest]):
    model = ServiceRequest
    kind = EntityKind.SERVICE_REQUESTS
    filters_model = ServiceRequestFilters
    list_options = (selectinload(ServiceRequest.ticket), selectinload(ServiceRequest.type))


class ChangeRepository(_TicketRecordRepository[Change]):
    model = Change
    kind = EntityKind.CHANGES
    filters_model = ChangeFilters
    list_options = (selectinload(Change.ticket), selectinload(Change.responsible))


class ServiceRequestTypeRepository(Repository[ServiceRequestType]):
    model = ServiceRequestType

    def list_active(self) -> list[ServiceRequestType]:
        stmt = (
            select(ServiceRequestType)
            .where(ServiceRequestType.is_active.is_(True))
            .order_by(ServiceRequestType.name, ServiceRequestType.id)
        )
        with self._op("list_active"):
            return list(self.db.scalars(stmt).all())
