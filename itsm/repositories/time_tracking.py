from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload

from itsm.db.base import utcnow
from itsm.db.query import PageResult
from itsm.models.time_tracking import Delay, TimeEntry
from itsm.repositories.base import Repository
from itsm.schemas.filters import DelayFilters, TimeEntryFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind, apply_scope


class TimeEntryRepository(Repository[TimeEntry]):
    model = TimeEntry
    kind = EntityKind.TIME_ENTRIES
    filters_model = TimeEntryFilters
    list_options = (selectinload(TimeEntry.ticket), selectinload(TimeEntry.user))

    def default_order(self):
        return (TimeEntry.date.desc(), TimeEntry.created_at.desc(), TimeEntry.id.desc())

    def _filter_date_from(self, value):
        return TimeEntry.date >= value

    def _filter_date_to(self, value):
        return TimeEntry.date <= value

    def sum_by_ticket(self, ticket_id: int) -> int:
        """Minutes logged on a ticket; 0 when nothing was logged."""

        return self._sum(TimeEntry.ticket_id == ticket_id, "sum_by_ticket")

    def sum_by_user(self, user_id: int) -> int:
        return self._sum(TimeEntry.user_id == user_id, "sum_by_user")

    def _sum(self, criterion: Any, name: str) -> int:
        stmt = select(func.coalesce(func.sum(TimeEntry.time_spent), 0)).select_from(TimeEntry).where(criterion)
        with self._op(name):
            return int(self.db.scalar(stmt) or 0)

    def list_pending_validation(
        self,
        scope: QueryScope | None = None,
        page: Any = 1,
        page_size: Any = None,
    ) -> PageResult[TimeEntry]:
        """
        Unvalidated entries the caller may see or validate.

        Uses the validator visibility rules rather than the plain time entry
        ones, so a validator also sees their department's entries.
        """

        spec = self.query(filters={"validated": False})
        spec = apply_scope(spec, scope, EntityKind.TIME_ENTRIES_PENDING_VALIDATION)
        return self._paged(spec, page, page_size, "list_pending_validation")

    def validate_for_ticket(self, ticket_id: int, validated_by_id: int) -> int:
        """Mark every pending entry of the ticket as validated. Returns the count."""

        now = utcnow()
        stmt = (
            update(TimeEntry)
            .where(
                TimeEntry.ticket_id == ticket_id,
                TimeEntry.validated.is_(False),
                TimeEntry.deleted_at.is_(None),
            )
            .values(validated=True, validated_by_id=validated_by_id, validated_at=now, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        with self._op("validate_for_ticket"):
            return self.db.execute(stmt).rowcount


class DelayRepository(Repository[Delay]):
    model = Delay
    kind = EntityKind.DELAYS
    filters_model = DelayFilters
    list_options = (selectinload(Delay.ticket), selectinload(Delay.user))

    def default_order(self):
        return (Delay.detected_at.desc(), Delay.id.desc())

    def get_by_ticket(self, ticket_id: int) -> Delay | None:
        stmt = select(Delay).where(Delay.ticket_id == ticket_id).options(*self.list_options)
        with self._op("get_by_ticket"):
            return self.db.scalars(stmt).first()

    def list_unjustified(self, scope: QueryScope | None = None) -> list[Delay]:
        return self.all(scope, {"status": "unjustified"})
