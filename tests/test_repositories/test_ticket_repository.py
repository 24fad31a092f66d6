"""Tests for ticket data access (`itsm.repositories.tickets`)."""
from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from itsm.db.base import utcnow
from itsm.db.codes import current_year
from itsm.errors import MalformedInputError
from itsm.models.tickets import Ticket, TicketAssignee
from itsm.repositories.tickets import TicketRepository


def test_create_assigns_sequential_codes(db_session, org):
    repo = TicketRepository(db_session)
    year = current_year()

    first = repo.create(title="VPN down", category="incident", created_by_id=org.alice.id, filiale_id=org.ci.id)
    second = repo.create(title="New laptop", category="demande", created_by_id=org.bob.id, filiale_id=org.ci.id)

    assert first.code == f"TKT-{year}-0001"
    assert second.code == f"TKT-{year}-0002"
    assert repo.code_exists(second.code) is True
    assert repo.next_code() == f"TKT-{year}-0003"


def test_create_skips_codes_of_soft_deleted_tickets(db_session, make_ticket, org):
    year = current_year()
    make_ticket(code=f"TKT-{year}-0007", deleted_at=utcnow())

    created = TicketRepository(db_session).create(title="x", category="incident", created_by_id=org.alice.id)

    assert created.code == f"TKT-{year}-0008"


def test_list_by_category_filters_on_category(db_session, make_ticket, make_scope, org):
    incident = make_ticket(category="incident", requester_id=org.carol.id)
    make_ticket(category="incident", requester_id=org.alice.id)
    make_ticket(category="demande", requester_id=org.carol.id)
    scope = make_scope("incidents.view_team", user_id=org.bob.id, department_id=org.fin.id)

    page = TicketRepository(db_session).list_by_category("incident", scope)

    assert page.total == 1
    assert [t.id for t in page.items] == [incident.id]


def test_list_basket_returns_open_tickets_of_user(db_session, make_ticket, org):
    primary = make_ticket(assigned_to_id=org.bob.id, updated_at=datetime(2024, 1, 1))
    co_assigned = make_ticket(updated_at=datetime(2024, 2, 1))
    db_session.add(TicketAssignee(ticket_id=co_assigned.id, user_id=org.bob.id))
    make_ticket(assigned_to_id=org.bob.id, status="cloture")
    make_ticket(assigned_to_id=org.bob.id, status="closed")
    make_ticket(assigned_to_id=org.carol.id)
    db_session.flush()

    page = TicketRepository(db_session).list_basket(org.bob.id)

    assert page.total == 2
    assert [t.id for t in page.items] == [co_assigned.id, primary.id]


def test_assignee_filter_matches_primary_and_co_assignees(db_session, make_ticket, org):
    primary = make_ticket(assigned_to_id=org.bob.id)
    co_assigned = make_ticket()
    db_session.add(TicketAssignee(ticket_id=co_assigned.id, user_id=org.bob.id))
    make_ticket()
    db_session.flush()

    tickets = TicketRepository(db_session).all(filters={"assignee_user_id": org.bob.id})

    assert {t.id for t in tickets} == {primary.id, co_assigned.id}


def test_search_matches_title_and_description(db_session, make_ticket):
    by_title = make_ticket(title="Printer on floor 2")
    by_description = make_ticket(title="Hardware", description="the PRINTER is jammed", status="cloture")
    make_ticket(title="Email bounce")

    repo = TicketRepository(db_session)

    assert {t.id for t in repo.search("printer")} == {by_title.id, by_description.id}
    assert [t.id for t in repo.search("printer", status="cloture")] == [by_description.id]
    assert len(repo.search("printer", limit=1)) == 1


def test_created_range_filters(db_session, make_ticket):
    make_ticket(created_at=datetime(2024, 1, 10))
    in_range = make_ticket(created_at=datetime(2024, 2, 10))
    make_ticket(created_at=datetime(2024, 3, 10))

    tickets = TicketRepository(db_session).all(
        filters={"created_from": "2024-02-01T00:00:00", "created_to": datetime(2024, 2, 28)}
    )

    assert [t.id for t in tickets] == [in_range.id]


def test_count_by_status_and_category(db_session, make_ticket, make_scope, org):
    make_ticket(status="ouvert", category="incident")
    make_ticket(status="ouvert", category="demande")
    make_ticket(status="cloture", category="incident")
    make_ticket(status="ouvert", category="incident", deleted_at=utcnow())
    make_ticket(status="ouvert", category="incident", filiale_id=org.sn.id)
    scope = make_scope("tickets.view_all", user_id=org.alice.id, filiale_id=org.ci.id)

    repo = TicketRepository(db_session)

    assert repo.count_by_status(scope) == {"ouvert": 2, "cloture": 1}
    assert repo.count_by_category(scope) == {"incident": 2, "demande": 1}
    assert repo.count_by_status() == {"ouvert": 3, "cloture": 1}


def test_add_assignee_is_idempotent(db_session, make_ticket, org):
    ticket = make_ticket()
    repo = TicketRepository(db_session)

    first = repo.add_assignee(ticket.id, org.bob.id, is_lead=True)
    again = repo.add_assignee(ticket.id, org.bob.id)

    assert again is first
    rows = db_session.scalars(select(TicketAssignee).where(TicketAssignee.ticket_id == ticket.id)).all()
    assert len(rows) == 1
    assert rows[0].is_lead is True


def test_add_assignee_returns_row_stored_by_a_concurrent_request(db_session, make_ticket, org, monkeypatch):
    ticket = make_ticket()
    repo = TicketRepository(db_session)
    stored = TicketAssignee(ticket_id=ticket.id, user_id=org.bob.id, is_lead=True)
    db_session.add(stored)
    db_session.flush()

    real = repo._find_link
    calls = []

    def miss_first(model, keys):
        calls.append(model)
        return None if len(calls) == 1 else real(model, keys)

    monkeypatch.setattr(repo, "_find_link", miss_first)

    assert repo.add_assignee(ticket.id, org.bob.id) is stored
    assert calls == [TicketAssignee, TicketAssignee]
    assert repo.add_assignee(ticket.id, org.carol.id).is_lead is False


def test_add_assignee_propagates_other_integrity_errors(db_session, org):
    with pytest.raises(IntegrityError) as excinfo:
        TicketRepository(db_session).add_assignee(None, org.bob.id)

    assert "itsm operation: Ticket.add_assignee" in excinfo.value.__notes__


def test_update_requester_name_by_requester(db_session, make_ticket, org):
    t1 = make_ticket(requester_id=org.carol.id, requester_name="Carol")
    t2 = make_ticket(requester_id=org.carol.id, requester_name="Carol")
    other = make_ticket(requester_id=org.bob.id, requester_name="Bob")

    updated = TicketRepository(db_session).update_requester_name("Carol Smith", requester_id=org.carol.id)

    assert updated == 2
    assert t1.requester_name == "Carol Smith"
    assert t2.requester_name == "Carol Smith"
    assert other.requester_name == "Bob"


def test_update_requester_name_by_old_name(db_session, make_ticket):
    make_ticket(requester_name="J. Doe")
    make_ticket(requester_name="Someone else")

    repo = TicketRepository(db_session)

    assert repo.update_requester_name("Jane Doe", old_name="J. Doe") == 1
    assert db_session.scalars(select(Ticket.requester_name).order_by(Ticket.id)).all() == ["Jane Doe", "Someone else"]


@pytest.mark.parametrize(
    "selectors",
    [
        {},
        {"requester_id": 1, "old_name": "x"},
        {"requester_id": 1, "created_by_id": 2},
    ],
)
def test_update_requester_name_needs_exactly_one_selector(db_session, selectors):
    with pytest.raises(MalformedInputError):
        TicketRepository(db_session).update_requester_name("New", **selectors)
