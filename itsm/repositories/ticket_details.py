"""
Records hanging off a ticket: comments, history, solutions and attachments.

None of these carry their own visibility rules. Callers check access to the
ticket first (`TicketRepository.get(ticket_id, scope=...)`).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import selectinload

from itsm.db.query import QuerySpec, fetch_all
from itsm.models.organization import User
from itsm.models.tickets import TicketAttachment, TicketComment, TicketHistory, TicketSolution
from itsm.repositories.base import Repository
from itsm.schemas.filters import (
    TicketAttachmentFilters,
    TicketCommentFilters,
    TicketHistoryFilters,
    TicketSolutionFilters,
)

logger = logging.getLogger(__name__)


class _TicketChildRepository(Repository[Any]):
    def _fetch(self, spec: QuerySpec[Any], name: str) -> list[Any]:
        with self._op(name):
            return fetch_all(self.db, spec, *self.list_options)

    def list_for_ticket(self, ticket_id: int) -> list[Any]:
        return self._fetch(self.query(filters={"ticket_id": ticket_id}), "list_for_ticket")

    def _newest_first(self, **filters: Any) -> QuerySpec[Any]:
        return self.query(filters=filters).ordered_by(self.model.created_at.desc(), self.model.id.desc())


class TicketCommentRepository(_TicketChildRepository):
    """Comments read oldest first, as a conversation."""

    model = TicketComment
    filters_model = TicketCommentFilters
    list_options = (selectinload(TicketComment.user).selectinload(User.role),)

    def default_order(self):
        return (TicketComment.created_at, TicketComment.id)

    def list_internal_for_ticket(self, ticket_id: int) -> list[TicketComment]:
        spec = self.query(filters={"ticket_id": ticket_id, "is_internal": True})
        return self._fetch(spec, "list_internal_for_ticket")

    def list_public_for_ticket(self, ticket_id: int) -> list[TicketComment]:
        spec = self.query(filters={"ticket_id": ticket_id, "is_internal": False})
        return self._fetch(spec, "list_public_for_ticket")

    def list_for_user(self, user_id: int) -> list[TicketComment]:
        return self._fetch(self._newest_first(user_id=user_id), "list_for_user")


class TicketHistoryRepository(_TicketChildRepository):
    model = TicketHistory
    filters_model = TicketHistoryFilters
    list_options = (selectinload(TicketHistory.user).selectinload(User.role),)

    def default_order(self):
        return (TicketHistory.created_at, TicketHistory.id)

    def record(
        self,
        ticket_id: int,
        user_id: int,
        action: str,
        *,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        description: str | None = None,
    ) -> TicketHistory:
        """Append one history line; values are stored as text."""

        entry = TicketHistory(
            ticket_id=ticket_id,
            user_id=user_id,
            action=action,
            field_name=field_name,
            old_value=None if old_value is None else str(old_value),
            new_value=None if new_value is None else str(new_value),
            description=description,
        )
        self.add(entry)
        logger.debug("Ticket %s history: %s %s", ticket_id, action, field_name or "")
        return entry

    def list_by_action(self, ticket_id: int, action: str) -> list[TicketHistory]:
        return self._fetch(self.query(filters={"ticket_id": ticket_id, "action": action}), "list_by_action")

    def list_for_user(self, user_id: int) -> list[TicketHistory]:
        return self._fetch(self._newest_first(user_id=user_id), "list_for_user")


class TicketSolutionRepository(_TicketChildRepository):
    """Documented solutions, newest first."""

    model = TicketSolution
    filters_model = TicketSolutionFilters
    list_options = (selectinload(TicketSolution.created_by),)


class TicketAttachmentRepository(_TicketChildRepository):
    """Attachment metadata in gallery order."""

    model = TicketAttachment
    filters_model = TicketAttachmentFilters
    list_options = (selectinload(TicketAttachment.user).selectinload(User.role),)

    def default_order(self):
        return (TicketAttachment.display_order, TicketAttachment.created_at, TicketAttachment.id)

    def list_images_for_ticket(self, ticket_id: int) -> list[TicketAttachment]:
        spec = self.query(filters={"ticket_id": ticket_id, "is_image": True})
        return self._fetch(spec, "list_images_for_ticket")

    def primary_for_ticket(self, ticket_id: int) -> TicketAttachment | None:
        """First attachment in gallery order, used as the ticket's preview."""

        stmt = self.query(filters={"ticket_id": ticket_id}).select_statement(*self.list_options).limit(1)
        with self._op("primary_for_ticket"):
            return self.db.scalars(stmt).first()

    def list_for_user(self, user_id: int) -> list[TicketAttachment]:
        return self._fetch(self._newest_first(user_id=user_id), "list_for_user")
