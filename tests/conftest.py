"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. The engine comes from
`create_db_engine`, so SAVEPOINTs (used by code generation) work on SQLite.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session, sessionmaker

from itsm.db.session import create_db_engine
from itsm.security.context import QueryScope
from itsm.settings import get_settings


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; tests that patch env vars need a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_db_engine(TEST_DB_URL, echo=False, pool_pre_ping=False)


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    import itsm.models  # noqa: F401  (register every mapper)
    from itsm.db.base import Base

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The outer connection-level transaction is rolled back so the next test
    gets a clean state, even when the code under test used SAVEPOINTs.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def org(db_session):
    """
    Two filiales, three departments and a handful of users.

    - ci: software-provider filiale with departments `it` (IT) and `fin`
    - sn: second filiale with department `ops`
    - alice (it), bob + carol (fin), dave (ops); erin is an inactive fin member
    """
    from itsm.models.organization import Department, Filiale, Role, User

    ci = Filiale(code="CI", name="MCI CARE CI", is_software_provider=True)
    sn = Filiale(code="SN", name="MCI CARE SN")
    db_session.add_all([ci, sn])
    db_session.flush()

    it = Department(name="IT", code="IT", filiale_id=ci.id, is_it_department=True)
    fin = Department(name="Finance", code="FIN", filiale_id=ci.id)
    ops = Department(name="Operations", code="OPS", filiale_id=sn.id)
    db_session.add_all([it, fin, ops])
    db_session.flush()

    role = Role(name="USER", description="Requester")
    db_session.add(role)
    db_session.flush()

    def user(username: str, department: Department, filiale: Filiale, *, is_active: bool = True) -> User:
        return User(
            username=username,
            email=f"{username}@example.com",
            role_id=role.id,
            department_id=department.id,
            filiale_id=filiale.id,
            is_active=is_active,
        )

    alice = user("alice", it, ci)
    bob = user("bob", fin, ci)
    carol = user("carol", fin, ci)
    dave = user("dave", ops, sn)
    erin = user("erin", fin, ci, is_active=False)
    db_session.add_all([alice, bob, carol, dave, erin])
    db_session.flush()

    return SimpleNamespace(
        ci=ci, sn=sn, it=it, fin=fin, ops=ops, role=role,
        alice=alice, bob=bob, carol=carol, dave=dave, erin=erin,
    )


@pytest.fixture
def make_ticket(db_session, org):
    """Factory for tickets with sensible defaults (created by alice in filiale ci)."""
    from itsm.models.tickets import Ticket

    def _make(**fields) -> Ticket:
        values = {
            "title": "Printer jammed",
            "category": "incident",
            "created_by_id": org.alice.id,
            "filiale_id": org.ci.id,
        }
        values.update(fields)
        ticket = Ticket(**values)
        db_session.add(ticket)
        db_session.flush()
        return ticket

    return _make


@pytest.fixture
def make_scope():
    """Factory for QueryScope with the given permissions."""

    def _make(*permissions: str, user_id: int = 1, **fields) -> QueryScope:
        return QueryScope(user_id=user_id, permissions=frozenset(permissions), **fields)

    return _make
