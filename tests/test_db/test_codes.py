"""Tests for sequential code generation (`<PREFIX>-<YEAR>-<NNNN>`)."""
from __future__ import annotations

import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from itsm.db.base import utcnow
from itsm.db.codes import EntityCode, current_year, insert_with_code, next_code
from itsm.models.projects import Project, ProjectTask
from itsm.models.tickets import Ticket
from itsm.repositories.tickets import TicketRepository


def test_entity_code_formats_with_four_digit_padding():
    assert str(EntityCode("TKT", 2024, 7)) == "TKT-2024-0007"
    assert str(EntityCode("TKT", 2024, 12345)) == "TKT-2024-12345"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("TKT-2024-0001", EntityCode("TKT", 2024, 1)),
        ("TKI-2025-0420", EntityCode("TKI", 2025, 420)),
        ("TKT-2024-10000", EntityCode("TKT", 2024, 10000)),
        ("TKT-2024-", None),
        ("TKT-24-0001", None),
        ("TKT-2024-00x1", None),
        ("", None),
        (None, None),
    ],
)
def test_entity_code_parse(value, expected):
    assert EntityCode.parse(value) == expected


def test_next_code_on_empty_table_starts_at_one(db_session, org):
    assert next_code(db_session, Ticket.code, "TKT", 2024) == "TKT-2024-0001"


def test_next_code_defaults_to_current_year(db_session, org):
    assert next_code(db_session, Ticket.code, "TKT") == f"TKT-{current_year()}-0001"


def test_next_code_never_reissues_soft_deleted_codes(db_session, make_ticket):
    make_ticket(code="TKT-2024-0001")
    make_ticket(code="TKT-2024-0003")
    make_ticket(code="TKT-2024-0002", deleted_at=utcnow())

    assert next_code(db_session, Ticket.code, "TKT", 2024) == "TKT-2024-0004"


def test_next_code_uses_max_not_count(db_session, make_ticket):
    make_ticket(code="TKT-2024-0001")
    make_ticket(code="TKT-2024-0042")

    assert next_code(db_session, Ticket.code, "TKT", 2024) == "TKT-2024-0043"


def test_next_code_ignores_other_years_and_malformed_codes(db_session, make_ticket):
    make_ticket(code="TKT-2023-0099")
    make_ticket(code="TKT-2024-0002")
    make_ticket(code="TKT-2024-abcd")
    make_ticket(code="TKT-2024-0005-old")

    assert next_code(db_session, Ticket.code, "TKT", 2024) == "TKT-2024-0003"


def test_next_code_is_idempotent_without_insert(db_session, make_ticket):
    make_ticket(code="TKT-2024-0001")

    first = next_code(db_session, Ticket.code, "TKT", 2024)
    second = next_code(db_session, Ticket.code, "TKT", 2024)

    assert first == second == "TKT-2024-0002"


def test_next_code_criteria_bound_the_sequence(db_session, org):
    p1 = Project(name="ERP", created_by_id=org.alice.id)
    p2 = Project(name="CRM", created_by_id=org.alice.id)
    db_session.add_all([p1, p2])
    db_session.flush()
    db_session.add_all(
        [
            ProjectTask(project_id=p1.id, code="TAP-2024-0001", title="a", created_by_id=org.alice.id),
            ProjectTask(project_id=p1.id, code="TAP-2024-0002", title="b", created_by_id=org.alice.id),
        ]
    )
    db_session.flush()

    assert next_code(db_session, ProjectTask.code, "TAP", 2024, ProjectTask.project_id == p1.id) == "TAP-2024-0003"
    assert next_code(db_session, ProjectTask.code, "TAP", 2024, ProjectTask.project_id == p2.id) == "TAP-2024-0001"


def test_insert_with_code_regenerates_after_collision(db_session, make_ticket, org, caplog):
    make_ticket(code="TKT-2024-0001")
    candidates = iter(["TKT-2024-0001", "TKT-2024-0002"])

    def build(code: str) -> Ticket:
        return Ticket(code=code, title="New", category="incident", created_by_id=org.alice.id)

    with caplog.at_level(logging.WARNING, logger="itsm.db.codes"):
        ticket = insert_with_code(db_session, build, lambda: next(candidates), _code_taken(db_session), retries=1)

    assert ticket.id is not None
    assert ticket.code == "TKT-2024-0002"
    assert "collided" in caplog.text
    assert _ticket_count(db_session) == 2


def test_insert_with_code_gives_up_after_configured_retries(db_session, make_ticket, org):
    make_ticket(code="TKT-2024-0001")
    attempts = []

    def generate() -> str:
        attempts.append(1)
        return "TKT-2024-0001"

    def build(code: str) -> Ticket:
        return Ticket(code=code, title="Dup", category="incident", created_by_id=org.alice.id)

    with pytest.raises(IntegrityError) as exc_info:
        insert_with_code(db_session, build, generate, _code_taken(db_session), retries=2)

    assert len(attempts) == 3
    assert any("still collided after 3 attempt(s)" in note for note in exc_info.value.__notes__)
    # The session stays usable: only the failed SAVEPOINTs were rolled back.
    assert _ticket_count(db_session) == 1


def test_insert_with_code_retry_count_comes_from_settings(db_session, make_ticket, org, monkeypatch):
    monkeypatch.setenv("ITSM_CODE_GENERATION_RETRIES", "0")
    make_ticket(code="TKT-2024-0001")
    attempts = []

    def generate() -> str:
        attempts.append(1)
        return "TKT-2024-0001"

    with pytest.raises(IntegrityError):
        insert_with_code(
            db_session,
            lambda code: Ticket(code=code, title="Dup", category="incident", created_by_id=org.alice.id),
            generate,
            _code_taken(db_session),
        )

    assert len(attempts) == 1


def _ticket_count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(Ticket))


def _code_taken(db_session):
    return TicketRepository(db_session).code_exists


def test_insert_with_code_does_not_retry_other_integrity_errors(db_session, org, caplog):
    attempts = []

    def generate() -> str:
        attempts.append(1)
        return "TKT-2024-0001"

    def build(code: str) -> Ticket:
        return Ticket(code=code, title=None, category="incident", created_by_id=org.alice.id)

    with caplog.at_level(logging.WARNING, logger="itsm.db.codes"):
        with pytest.raises(IntegrityError) as exc_info:
            insert_with_code(db_session, build, generate, _code_taken(db_session), retries=2)

    assert len(attempts) == 1
    assert "collided" not in caplog.text
    assert not any("collided" in note for note in getattr(exc_info.value, "__notes__", []))
    assert _ticket_count(db_session) == 0


def test_repository_create_with_missing_title_fails_without_retry(db_session, org, caplog):
    repo = TicketRepository(db_session)

    with caplog.at_level(logging.WARNING, logger="itsm.db.codes"):
        with pytest.raises(IntegrityError) as exc_info:
            repo.create(title=None, category="incident", created_by_id=org.alice.id)

    assert "collided" not in caplog.text
    assert "itsm operation: Ticket.create" in exc_info.value.__notes__
    assert not any("still collided" in note for note in exc_info.value.__notes__)
    # The failed SAVEPOINT leaves the session usable.
    assert repo.create(title="Printer jammed", category="incident", created_by_id=org.alice.id).code
