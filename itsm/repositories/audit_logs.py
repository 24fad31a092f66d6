from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import selectinload

from itsm.models.audit import AuditLog
from itsm.repositories.base import Repository
from itsm.schemas.filters import AuditLogFilters
from itsm.security.context import QueryScope
from itsm.security.scoping import EntityKind
from itsm.settings import get_settings

logger = logging.getLogger(__name__)


class AuditLogRepository(Repository[AuditLog]):
    model = AuditLog
    kind = EntityKind.AUDIT_LOGS
    filters_model = AuditLogFilters
    list_options = (selectinload(AuditLog.user),)

    def _filter_created_from(self, value: datetime):
        return AuditLog.created_at >= value

    def _filter_created_to(self, value: datetime):
        return AuditLog.created_at <= value

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        *,
        user_id: int | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        description: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            description=description,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return self.add(entry)

    def list_for_entity(self, entity_type: str, entity_id: int, scope: QueryScope | None = None) -> list[AuditLog]:
        return self.all(scope, {"entity_type": entity_type, "entity_id": entity_id})

    def recent(self, scope: QueryScope | None = None, limit: int | None = None) -> list[AuditLog]:
        if not limit or limit <= 0:
            limit = get_settings().default_page_size
        spec = self.query(scope)
        with self._op("recent"):
            stmt = spec.select_statement(*self.list_options).limit(limit)
            return list(self.db.scalars(stmt).all())

    def delete_older_than(self, cutoff: datetime) -> int:
        """Purge entries created before `cutoff`. Returns the number removed."""

        stmt = delete(AuditLog).where(AuditLog.created_at < cutoff).execution_options(synchronize_session=False)
        with self._op("delete_older_than"):
            removed = self.db.execute(stmt).rowcount
        logger.info("Purged %d audit log entr(ies) older than %s", removed, cutoff.isoformat())
        return removed
