from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from itsm.db.base import SoftDeleteMixin


@event.listens_for(Session, "do_orm_execute")
def _hide_soft_deleted(execute_state) -> None:
    """
    Transparent soft-delete filtering.

    Existing query code stays unchanged:
        db.scalars(select(Ticket)).all()
    never returns rows whose `deleted_at` is set, unless the statement asks
    for them with `.execution_options(include_deleted=True)`.
    """

    if not execute_state.is_select:
        return
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return
    if execute_state.execution_options.get("include_deleted", False):
        return

    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(
            SoftDeleteMixin,
            lambda cls: cls.deleted_at.is_(None),
            include_aliases=True,
        )
    )
