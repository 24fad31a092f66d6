"""Tests for time entries and delays (`itsm.repositories.time_tracking`)."""
from __future__ import annotations

from datetime import date, datetime

from itsm.db.base import utcnow
from itsm.models.time_tracking import Delay, TimeEntry
from itsm.repositories.time_tracking import DelayRepository, TimeEntryRepository


def _entry(repo, ticket, user, minutes, day=date(2024, 3, 1), **fields):
    return repo.add(TimeEntry(ticket_id=ticket.id, user_id=user.id, time_spent=minutes, date=day, **fields))


def test_sums_ignore_soft_deleted_entries(db_session, make_ticket, org):
    repo = TimeEntryRepository(db_session)
    ticket = make_ticket()
    other = make_ticket()
    _entry(repo, ticket, org.bob, 30)
    _entry(repo, ticket, org.carol, 45)
    _entry(repo, other, org.bob, 15)
    _entry(repo, ticket, org.bob, 600, deleted_at=utcnow())

    assert repo.sum_by_ticket(ticket.id) == 75
    assert repo.sum_by_user(org.bob.id) == 45
    assert repo.sum_by_ticket(9999) == 0


def test_listing_order_and_date_filters(db_session, make_ticket, org):
    repo = TimeEntryRepository(db_session)
    ticket = make_ticket()
    march = _entry(repo, ticket, org.bob, 10, day=date(2024, 3, 1))
    april = _entry(repo, ticket, org.bob, 10, day=date(2024, 4, 1))
    may = _entry(repo, ticket, org.bob, 10, day=date(2024, 5, 1))

    assert [e.id for e in repo.all()] == [may.id, april.id, march.id]
    assert [e.id for e in repo.all(filters={"date_from": "2024-03-15", "date_to": date(2024, 4, 30)})] == [april.id]


def test_pending_validation_and_bulk_validate(db_session, make_ticket, make_scope, org):
    repo = TimeEntryRepository(db_session)
    ticket = make_ticket()
    carols = _entry(repo, ticket, org.carol, 20)
    bobs = _entry(repo, ticket, org.bob, 20)
    deleted = _entry(repo, ticket, org.bob, 20, deleted_at=utcnow())
    _entry(repo, make_ticket(), org.dave, 20, validated=True)

    validator = make_scope("timesheet.view_own", "timesheet.validate", user_id=org.bob.id, department_id=org.fin.id)
    own_only = make_scope("timesheet.view_own", user_id=org.bob.id)

    assert {e.id for e in repo.list_pending_validation(validator).items} == {carols.id, bobs.id}
    assert [e.id for e in repo.list_pending_validation(own_only).items] == [bobs.id]

    validated = repo.validate_for_ticket(ticket.id, org.alice.id)

    assert validated == 2
    assert carols.validated is True
    assert carols.validated_by_id == org.alice.id
    assert deleted.validated is False
    assert repo.list_pending_validation(validator).total == 0


def test_delays(db_session, make_ticket, make_scope, org):
    repo = DelayRepository(db_session)

    def delay(user, detected_at, **fields):
        return repo.add(
            Delay(
                ticket_id=make_ticket().id,
                user_id=user.id,
                estimated_time=60,
                actual_time=90,
                delay_time=30,
                delay_percentage=50.0,
                detected_at=detected_at,
                **fields,
            )
        )

    old = delay(org.bob, datetime(2024, 1, 1))
    recent = delay(org.carol, datetime(2024, 6, 1))
    justified = delay(org.bob, datetime(2024, 3, 1), status="justified")

    assert repo.get_by_ticket(recent.ticket_id) is recent
    assert [d.id for d in repo.all()] == [recent.id, justified.id, old.id]
    assert [d.id for d in repo.list_unjustified()] == [recent.id, old.id]
    assert recent.delay_percentage == 50.0

    own = make_scope("delays.view_own", user_id=org.bob.id, filiale_id=org.ci.id)
    assert [d.id for d in repo.list_unjustified(own)] == [old.id]
