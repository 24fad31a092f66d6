"""
Permission-based row visibility.

`scope_criteria` turns a `QueryScope` into WHERE predicates for one entity
kind; `apply_scope` appends them to anything exposing `.where(...)` (a
`Select` or a `QuerySpec`).

Every predicate is an equality, an IN list or an IN-subquery over the related
table. Nothing here adds a JOIN, so the same criteria can back both the COUNT
and the SELECT of a listing without multiplying rows.

Subqueries over users and tickets read the tables directly rather than the
mapped classes. Soft-delete filtering is then limited to the entity being
listed: a deleted requester or ticket still counts toward the visibility of
the rows that reference it.

Rules for each kind are evaluated top-down and the first matching permission
wins. A scope that matches nothing sees nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import Select, false, or_, select
from sqlalchemy.sql.elements import ColumnElement

from itsm.models.assets import Asset
from itsm.models.audit import AuditLog
from itsm.models.itil import Change, Incident, ServiceRequest
from itsm.models.knowledge import KnowledgeArticle
from itsm.models.organization import User
from itsm.models.projects import Project, ProjectMember, ProjectTask, ProjectTaskAssignee, TicketProject
from itsm.models.sla import TicketSLA
from itsm.models.tickets import Ticket, TicketAssignee, TicketInternal
from itsm.models.time_tracking import Delay, TimeEntry
from itsm.security.context import QueryScope
from itsm.settings import get_settings

logger = logging.getLogger(__name__)

QueryT = TypeVar("QueryT")
Criteria = tuple[ColumnElement[bool], ...]

# Permissions that lift the filiale restriction entirely.
GLOBAL_FILIALE_PERMISSIONS = ("reports.view_global", "tickets.resolve_all", "reports.compare_filiales")
# Rows reached through their ticket (time entries, delays, SLA tracking).
CROSS_FILIALE_PERMISSIONS = ("reports.view_global", "tickets.resolve_all")

# Ticket category -> permission namespace of the matching ITIL module.
CATEGORY_NAMESPACES = {
    "incident": "incidents",
    "demande": "service_requests",
    "service_request": "service_requests",
    "changement": "changes",
    "change": "changes",
}


class EntityKind(str, Enum):
    TICKETS = "tickets"
    TICKET_INTERNALS = "ticket_internals"
    INCIDENTS = "incidents"
    SERVICE_REQUESTS = "service_requests"
    CHANGES = "changes"
    ASSETS = "assets"
    USERS = "users"
    KNOWLEDGE_ARTICLES = "knowledge_articles"
    TIME_ENTRIES = "time_entries"
    TIME_ENTRIES_PENDING_VALIDATION = "time_entries_pending_validation"
    DELAYS = "delays"
    AUDIT_LOGS = "audit_logs"
    PROJECTS = "projects"
    TICKET_SLA = "ticket_sla"


UNRESTRICTED: Criteria = ()

# Plain table columns: the soft-delete loader criteria never reach them.
USER_ROWS = User.__table__.c
TICKET_ROWS = Ticket.__table__.c
TICKET_ASSIGNEE_ROWS = TicketAssignee.__table__.c


def _deny() -> Criteria:
    return (false(),)


def _members(department_id: int, *, active_only: bool = False) -> Select:
    stmt = select(USER_ROWS.id).where(USER_ROWS.department_id == department_id)
    if active_only:
        stmt = stmt.where(USER_ROWS.is_active.is_(True))
    return stmt


def _ticket_involves(user_id: int, tickets: Any = Ticket) -> ColumnElement[bool]:
    """
    Creator, primary assignee or co-assignee.

    `tickets` is the mapped class for a ticket listing, or `TICKET_ROWS`
    inside a subquery.
    """

    return or_(
        tickets.created_by_id == user_id,
        tickets.assigned_to_id == user_id,
        tickets.id.in_(
            select(TICKET_ASSIGNEE_ROWS.ticket_id).where(TICKET_ASSIGNEE_ROWS.user_id == user_id)
        ),
    )


def _requester_in(department_id: int, tickets: Any = Ticket) -> ColumnElement[bool]:
    return tickets.requester_id.in_(_members(department_id))


def _via_ticket(ticket_fk: Any, clause: ColumnElement[bool]) -> ColumnElement[bool]:
    """`clause` must be written against `TICKET_ROWS`."""

    return ticket_fk.in_(select(TICKET_ROWS.id).where(clause))


def _filiale_scope(scope: QueryScope, column: Any) -> Criteria:
    if scope.filter_filiale_id is not None:
        return (column == scope.filter_filiale_id,)
    if scope.has_any_permission(*GLOBAL_FILIALE_PERMISSIONS):
        return UNRESTRICTED
    if scope.filiale_id is not None:
        return (column == scope.filiale_id,)

    logger.debug("user_id=%s has no filiale and no global permission; filiale scope denies all", scope.user_id)
    return _deny()


def _filiale_via_ticket(scope: QueryScope, ticket_fk: Any) -> Criteria:
    if scope.has_any_permission(*CROSS_FILIALE_PERMISSIONS):
        return UNRESTRICTED
    if scope.filiale_id is not None:
        return (_via_ticket(ticket_fk, TICKET_ROWS.filiale_id == scope.filiale_id),)
    return _deny()


def _tickets(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return _filiale_scope(scope, Ticket.filiale_id)
    if hint == "department" and scope.department_id is not None:
        active = _members(scope.department_id, active_only=True)
        department_tickets = or_(
            Ticket.created_by_id.in_(active),
            Ticket.assigned_to_id.in_(active),
            Ticket.requester_id.in_(active),
            Ticket.id.in_(
                select(TICKET_ASSIGNEE_ROWS.ticket_id).where(
                    TICKET_ASSIGNEE_ROWS.user_id.in_(_members(scope.department_id))
                )
            ),
        )
        return _filiale_scope(scope, Ticket.filiale_id) + (department_tickets,)

    criteria = _filiale_scope(scope, Ticket.filiale_id)

    if scope.has_any_permission("tickets.view_all", "tickets.view_filiale"):
        return criteria
    if scope.has_permission("tickets.view_team") and scope.department_id is not None:
        return criteria + (or_(_requester_in(scope.department_id), _ticket_involves(scope.user_id)),)
    if scope.has_permission("tickets.view_own"):
        return criteria + (_ticket_involves(scope.user_id),)
    if scope.has_permission("tickets.create"):
        return criteria + (Ticket.created_by_id == scope.user_id,)
    return _deny()


def _team_or_own(scope: QueryScope, namespace: str, ticket_fk: Any | None = None) -> Criteria:
    """`<namespace>.view_team` / `view_own` over tickets, optionally reached through `ticket_fk`."""

    tickets = Ticket if ticket_fk is None else TICKET_ROWS

    def wrap(clause: ColumnElement[bool]) -> Criteria:
        return (clause,) if ticket_fk is None else (_via_ticket(ticket_fk, clause),)

    if scope.has_permission(f"{namespace}.view_team") and scope.department_id is not None:
        return wrap(_requester_in(scope.department_id, tickets))
    if scope.has_permission(f"{namespace}.view_own"):
        return wrap(_ticket_involves(scope.user_id, tickets))
    return _deny()


def _tickets_in_category(scope: QueryScope, category: str) -> Criteria:
    if scope.has_permission("tickets.view_all"):
        return UNRESTRICTED
    if scope.has_any_permission("tickets.view_filiale", "tickets.view_team", "tickets.view_own"):
        return _tickets(scope)
    if scope.has_permission("ticket_categories.view"):
        return UNRESTRICTED

    namespace = CATEGORY_NAMESPACES.get(category)
    if namespace is None:
        return _deny()
    if scope.has_any_permission(f"{namespace}.view_all", f"{namespace}.view"):
        return UNRESTRICTED
    return _team_or_own(scope, namespace)


def _ticket_internals(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return (TicketInternal.filiale_id == scope.filiale_id,)
    if hint == "department" and scope.department_id is not None:
        return (TicketInternal.department_id == scope.department_id,)

    if scope.has_permission("tickets_internes.view_all"):
        return UNRESTRICTED
    if scope.has_permission("tickets_internes.view_filiale") and scope.filiale_id is not None:
        return (TicketInternal.filiale_id == scope.filiale_id,)
    if scope.has_permission("tickets_internes.view_department") and scope.department_id is not None:
        return (TicketInternal.department_id == scope.department_id,)
    if scope.has_permission("tickets_internes.view_own"):
        return (
            or_(
                TicketInternal.created_by_id == scope.user_id,
                TicketInternal.assigned_to_id == scope.user_id,
            ),
        )
    return _deny()


def _ticket_child(namespace: str, ticket_fk: Any) -> Callable[[QueryScope], Criteria]:
    def build(scope: QueryScope) -> Criteria:
        if scope.has_any_permission(f"{namespace}.view_all", f"{namespace}.view"):
            return UNRESTRICTED
        return _team_or_own(scope, namespace, ticket_fk)

    return build


def _assets(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return (Asset.filiale_id == scope.filiale_id,)
    if hint == "department":
        if scope.department_id is None:
            return _deny()
        active = _members(scope.department_id, active_only=True)
        return _filiale_scope(scope, Asset.filiale_id) + (Asset.assigned_to_id.in_(active),)

    criteria = _filiale_scope(scope, Asset.filiale_id)

    if scope.has_permission("assets.view_all"):
        return criteria
    if scope.has_permission("assets.view_team") and scope.department_id is not None:
        return criteria + (Asset.assigned_to_id.in_(_members(scope.department_id)),)
    if scope.has_permission("assets.view_own"):
        return criteria + (Asset.assigned_to_id == scope.user_id,)
    return _deny()


def _users(scope: QueryScope) -> Criteria:
    if scope.has_permission("users.view_all"):
        if scope.filter_filiale_id is not None:
            return (User.filiale_id == scope.filter_filiale_id,)
        return UNRESTRICTED
    if scope.has_permission("users.view_filiale"):
        if scope.filiale_id is None:
            return _deny()
        return (User.filiale_id == scope.filiale_id,)
    if scope.has_permission("users.view_team") and scope.department_id is not None:
        # Only narrow by filiale when one is known; a department alone is enough.
        criteria = _filiale_scope(scope, User.filiale_id) if scope.filiale_id is not None else UNRESTRICTED
        return criteria + (User.department_id == scope.department_id,)
    if scope.has_permission("users.view_own"):
        return (User.id == scope.user_id,)
    return _deny()


def _global_or_filiale_article(filiale_id: int) -> ColumnElement[bool]:
    return or_(KnowledgeArticle.filiale_id.is_(None), KnowledgeArticle.filiale_id == filiale_id)


def _knowledge_articles(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return (_global_or_filiale_article(scope.filiale_id),)
    if hint == "department" and scope.department_id is not None:
        criteria: Criteria = (KnowledgeArticle.author_id.in_(_members(scope.department_id)),)
        if scope.filiale_id is not None:
            criteria += (_global_or_filiale_article(scope.filiale_id),)
        return criteria

    if scope.has_permission("knowledge.view_all"):
        return UNRESTRICTED

    # Group-wide articles (no filiale) are visible from everywhere.
    if scope.has_any_permission(*CROSS_FILIALE_PERMISSIONS):
        criteria = UNRESTRICTED
    elif scope.filiale_id is not None:
        criteria = (_global_or_filiale_article(scope.filiale_id),)
    else:
        criteria = (KnowledgeArticle.filiale_id.is_(None),)

    if scope.has_permission("knowledge.view_published"):
        if scope.has_permission("knowledge.view_own"):
            return criteria + (
                or_(KnowledgeArticle.is_published.is_(True), KnowledgeArticle.author_id == scope.user_id),
            )
        return criteria + (KnowledgeArticle.is_published.is_(True),)
    if scope.has_permission("knowledge.view_own"):
        return criteria + (KnowledgeArticle.author_id == scope.user_id,)
    return _deny()


def _own_time_entries(user_id: int) -> ColumnElement[bool]:
    return or_(TimeEntry.user_id == user_id, _via_ticket(TimeEntry.ticket_id, _ticket_involves(user_id, TICKET_ROWS)))


def _time_entries(scope: QueryScope) -> Criteria:
    criteria = _filiale_via_ticket(scope, TimeEntry.ticket_id)
    if scope.has_permission("timesheet.view_all"):
        return criteria
    if scope.has_permission("timesheet.view_team") and scope.department_id is not None:
        return criteria + (_via_ticket(TimeEntry.ticket_id, _requester_in(scope.department_id, TICKET_ROWS)),)
    if scope.has_permission("timesheet.view_own"):
        return criteria + (_own_time_entries(scope.user_id),)
    return _deny()


def _time_entries_pending_validation(scope: QueryScope) -> Criteria:
    """
    Wider than `_time_entries`: validators also see what they may validate.

    No filiale restriction applies here.
    """

    if scope.has_permission("timesheet.view_all"):
        return UNRESTRICTED

    department_id = scope.department_id
    if scope.has_permission("timesheet.view_team") and department_id is not None:
        return (
            or_(
                _via_ticket(TimeEntry.ticket_id, _requester_in(department_id, TICKET_ROWS)),
                TimeEntry.user_id.in_(_members(department_id)),
            ),
        )

    if scope.has_permission("timesheet.view_own"):
        validator = scope.has_permission("timesheet.validate")
        if validator and department_id is None:
            return UNRESTRICTED
        own = _own_time_entries(scope.user_id)
        if validator:
            return (or_(own, TimeEntry.user_id.in_(_members(department_id))),)
        return (own,)

    return _deny()


def _delays(scope: QueryScope) -> Criteria:
    criteria = _filiale_via_ticket(scope, Delay.ticket_id)
    by_filter_user: Criteria = () if scope.filter_user_id is None else (Delay.user_id == scope.filter_user_id,)

    if scope.has_any_permission("delays.view_all", "delays.view"):
        return criteria + by_filter_user
    if scope.has_permission("delays.view_department") and scope.department_id is not None:
        return criteria + (Delay.user_id.in_(_members(scope.department_id)),) + by_filter_user
    if scope.has_permission("delays.view_own"):
        # filter_user_id cannot widen an own-only scope.
        return criteria + (Delay.user_id == scope.user_id,)
    return _deny()


def _audit_logs(scope: QueryScope) -> Criteria:
    if scope.has_permission("audit.view_all"):
        return UNRESTRICTED
    if scope.has_permission("audit.view_team") and scope.department_id is not None:
        return (AuditLog.user_id.in_(_members(scope.department_id)),)
    if scope.has_permission("audit.view_own"):
        return (AuditLog.user_id == scope.user_id,)
    return _deny()


def _projects_touching(users: Any, tickets: ColumnElement[bool]) -> ColumnElement[bool]:
    """
    Projects created by, staffed with, or tasked to `users`, or linked to `tickets`.

    `users` is either a user id or a subquery of user ids.
    """

    def match(column: Any) -> ColumnElement[bool]:
        return column.in_(users) if isinstance(users, Select) else column == users

    return or_(
        match(Project.created_by_id),
        Project.id.in_(select(ProjectMember.project_id).where(match(ProjectMember.user_id))),
        Project.id.in_(select(ProjectTask.project_id).where(match(ProjectTask.assigned_to_id))),
        Project.id.in_(
            select(ProjectTask.project_id)
            .join(ProjectTaskAssignee, ProjectTaskAssignee.task_id == ProjectTask.id)
            .where(match(ProjectTaskAssignee.user_id))
        ),
        Project.id.in_(
            select(TicketProject.project_id).where(TicketProject.ticket_id.in_(select(TICKET_ROWS.id).where(tickets)))
        ),
    )


def _projects(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return (Project.filiale_id == scope.filiale_id,)
    if hint == "department" and scope.department_id is not None:
        # Projects created before filiales were assigned have none.
        if scope.filiale_id is not None:
            by_filiale = or_(Project.filiale_id == scope.filiale_id, Project.filiale_id.is_(None))
        else:
            by_filiale = Project.filiale_id.is_(None)
        return (by_filiale, Project.created_by_id.in_(_members(scope.department_id, active_only=True)))

    criteria = _filiale_scope(scope, Project.filiale_id) if scope.filiale_id is not None else UNRESTRICTED

    if scope.has_any_permission("projects.view_all", "projects.view"):
        return criteria
    if scope.has_permission("projects.view_team") and scope.department_id is not None:
        active = _members(scope.department_id, active_only=True)
        return criteria + (_projects_touching(active, _requester_in(scope.department_id, TICKET_ROWS)),)
    if scope.has_permission("projects.view_own"):
        return criteria + (_projects_touching(scope.user_id, _ticket_involves(scope.user_id, TICKET_ROWS)),)
    return _deny()


def _ticket_sla(scope: QueryScope) -> Criteria:
    hint = scope.dashboard_hint
    if hint == "global":
        return UNRESTRICTED
    if hint == "filiale" and scope.filiale_id is not None:
        return (_via_ticket(TicketSLA.ticket_id, TICKET_ROWS.filiale_id == scope.filiale_id),)
    if hint == "department" and scope.department_id is not None:
        return (_via_ticket(TicketSLA.ticket_id, _requester_in(scope.department_id, TICKET_ROWS)),)

    criteria = _filiale_via_ticket(scope, TicketSLA.ticket_id)
    if scope.has_any_permission("sla.view_all", "sla.view"):
        return criteria
    return criteria + _team_or_own(scope, "sla", TicketSLA.ticket_id)


_BUILDERS: dict[EntityKind, Callable[[QueryScope], Criteria]] = {
    EntityKind.TICKETS: _tickets,
    EntityKind.TICKET_INTERNALS: _ticket_internals,
    EntityKind.INCIDENTS: _ticket_child("incidents", Incident.ticket_id),
    EntityKind.SERVICE_REQUESTS: _ticket_child("service_requests", ServiceRequest.ticket_id),
    EntityKind.CHANGES: _ticket_child("changes", Change.ticket_id),
    EntityKind.ASSETS: _assets,
    EntityKind.USERS: _users,
    EntityKind.KNOWLEDGE_ARTICLES: _knowledge_articles,
    EntityKind.TIME_ENTRIES: _time_entries,
    EntityKind.TIME_ENTRIES_PENDING_VALIDATION: _time_entries_pending_validation,
    EntityKind.DELAYS: _delays,
    EntityKind.AUDIT_LOGS: _audit_logs,
    EntityKind.PROJECTS: _projects,
    EntityKind.TICKET_SLA: _ticket_sla,
}


def scope_criteria(scope: QueryScope | None, kind: EntityKind | str, *, category: str | None = None) -> Criteria:
    """
    Predicates restricting `kind` rows to what `scope` may see.

    - `scope is None`: trusted caller, no predicates
    - anything that is not a `QueryScope`: logged, then denied (or left
      unfiltered when `scope_fail_open` is set)
    - `category` only applies to tickets and selects the ITIL permission
      namespace for listings by category
    """

    if scope is None:
        return UNRESTRICTED

    kind = EntityKind(kind)
    if not isinstance(scope, QueryScope):
        fail_open = get_settings().scope_fail_open
        logger.warning(
            "Unrecognized scope %s for %s; %s",
            type(scope).__name__,
            kind.value,
            "leaving query unfiltered" if fail_open else "returning no rows",
        )
        return UNRESTRICTED if fail_open else _deny()

    if kind is EntityKind.TICKETS and category:
        criteria = _tickets_in_category(scope, category)
    else:
        criteria = _BUILDERS[kind](scope)

    logger.debug(
        "Scope %s user_id=%s role=%s hint=%s -> %d predicate(s)",
        kind.value,
        scope.user_id,
        scope.role,
        scope.dashboard_hint,
        len(criteria),
    )
    return criteria


def apply_scope(query: QueryT, scope: QueryScope | None, kind: EntityKind | str, *, category: str | None = None) -> QueryT:
    criteria = scope_criteria(scope, kind, category=category)
    if not criteria:
        return query
    return query.where(*criteria)  # type: ignore[attr-defined]
