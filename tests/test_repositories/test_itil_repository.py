"""Tests for incidents, service requests and changes (`itsm.repositories.itil`)."""
from __future__ import annotations

from itsm.db.base import utcnow
from itsm.models.itil import Change, Incident, ServiceRequest, ServiceRequestType
from itsm.repositories.itil import (
    ChangeRepository,
    IncidentRepository,
    ServiceRequestRepository,
    ServiceRequestTypeRepository,
)


def test_incident_by_ticket_respects_scope(db_session, make_ticket, make_scope, org):
    ticket = make_ticket(requester_id=org.carol.id)
    incident = IncidentRepository(db_session).add(Incident(ticket_id=ticket.id, impact="high", urgency="high"))
    repo = IncidentRepository(db_session)

    team = make_scope("incidents.view_team", user_id=org.bob.id, department_id=org.fin.id)
    own = make_scope("incidents.view_own", user_id=org.bob.id)

    assert repo.get_by_ticket(ticket.id) is incident
    assert repo.get_by_ticket(ticket.id, scope=team) is incident
    assert repo.get_by_ticket(ticket.id, scope=own) is None
    assert incident.ticket is ticket


def test_incident_resolved_filter(db_session, make_ticket):
    repo = IncidentRepository(db_session)
    resolved = repo.add(Incident(ticket_id=make_ticket().id, impact="low", urgency="low", resolved_at=utcnow()))
    open_ = repo.add(Incident(ticket_id=make_ticket().id, impact="low", urgency="low"))

    assert [i.id for i in repo.all(filters={"resolved": True})] == [resolved.id]
    assert [i.id for i in repo.all(filters={"resolved": False})] == [open_.id]
    assert repo.count(filters={"impact": "low"}) == 2


def test_service_requests_and_types(db_session, make_ticket, org):
    types = ServiceRequestTypeRepository(db_session)
    laptop = types.add(ServiceRequestType(name="Laptop", default_deadline=48))
    types.add(ServiceRequestType(name="Access", is_active=False))
    badge = types.add(ServiceRequestType(name="Badge"))

    ticket = make_ticket(category="demande")
    repo = ServiceRequestRepository(db_session)
    request = repo.add(ServiceRequest(ticket_id=ticket.id, type_id=laptop.id))

    assert [t.name for t in types.list_active()] == ["Badge", "Laptop"]
    assert badge.default_deadline == 24
    assert repo.get_by_ticket(ticket.id) is request
    assert repo.count(filters={"validated": False}) == 1
    assert repo.list().total == 1


def test_change_filters_and_scope(db_session, make_ticket, make_scope, org):
    repo = ChangeRepository(db_session)
    risky = repo.add(Change(ticket_id=make_ticket(category="changement").id, risk="high", responsible_id=org.alice.id))
    repo.add(Change(ticket_id=make_ticket(category="changement").id, risk="low"))

    assert [c.id for c in repo.all(filters={"risk": "high"})] == [risky.id]
    assert repo.count(make_scope("changes.view", user_id=org.bob.id)) == 2
    assert repo.count(make_scope("incidents.view", user_id=org.bob.id)) == 0
