from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from itsm.errors import MalformedInputError
from itsm.models.projects import (
    Project,
    ProjectBudgetExtension,
    ProjectMember,
    ProjectTask,
    ProjectTaskAssignee,
    TicketProject,
)
from itsm.repositories.base import CodedRepository, Repository
from itsm.schemas.filters import ProjectBudgetExtensionFilters, ProjectFilters, ProjectTaskFilters
from itsm.security.scoping import EntityKind

logger = logging.getLogger(__name__)


class ProjectRepository(Repository[Project]):
    model = Project
    kind = EntityKind.PROJECTS
    filters_model = ProjectFilters
    list_options = (selectinload(Project.members),)

    def add_member(self, project_id: int, user_id: int) -> ProjectMember:
        return self._add_link(ProjectMember, "add_member", {"project_id": project_id, "user_id": user_id})

    def link_ticket(self, project_id: int, ticket_id: int) -> TicketProject:
        return self._add_link(TicketProject, "link_ticket", {"project_id": project_id, "ticket_id": ticket_id})

    def update_consumed_time(self, project_id: int, minutes: int) -> Project:
        if minutes < 0:
            raise MalformedInputError(f"consumed time cannot be negative, got {minutes}")
        return self.update_fields(project_id, {"consumed_time": minutes})

    def extend_budget(
        self,
        project_id: int,
        additional_minutes: int,
        justification: str = "",
        *,
        created_by_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Project:
        """
        Add minutes to the total budget and record the extension.

        A project without a budget starts from 0.
        """

        if additional_minutes <= 0:
            raise MalformedInputError(f"budget extension must be positive, got {additional_minutes}")
        if start_date and end_date and end_date < start_date:
            raise MalformedInputError("budget extension ends before it starts")

        project = self.get(project_id)
        # Incremented in SQL, not in Python.
        project.total_budget_time = func.coalesce(Project.total_budget_time, 0) + additional_minutes
        extension = ProjectBudgetExtension(
            project_id=project_id,
            additional_minutes=additional_minutes,
            justification=justification,
            created_by_id=created_by_id,
            start_date=start_date,
            end_date=end_date,
        )
        with self._op("extend_budget"):
            self.db.add(extension)
            self.db.flush()
        self.db.refresh(project, ["total_budget_time"])
        logger.info("Extended budget of project %s by %d minute(s)", project_id, additional_minutes)
        return project


class ProjectBudgetExtensionRepository(Repository[ProjectBudgetExtension]):
    model = ProjectBudgetExtension
    filters_model = ProjectBudgetExtensionFilters
    list_options = (selectinload(ProjectBudgetExtension.created_by),)

    def list_for_project(self, project_id: int) -> list[ProjectBudgetExtension]:
        """Newest extension first."""

        return self.all(filters={"project_id": project_id})

    def total_for_project(self, project_id: int) -> int:
        stmt = select(func.coalesce(func.sum(ProjectBudgetExtension.additional_minutes), 0)).where(
            ProjectBudgetExtension.project_id == project_id
        )
        with self._op("total_for_project"):
            return int(self.db.scalar(stmt))


class ProjectTaskRepository(CodedRepository[ProjectTask]):
    """Tasks are numbered per project: two projects can both have TAP-2024-0001."""

    model = ProjectTask
    filters_model = ProjectTaskFilters
    code_prefix = "TAP"
    list_options = (selectinload(ProjectTask.assignees),)

    def default_order(self):
        return (ProjectTask.display_order, ProjectTask.id)

    def code_criteria(self, *, project_id: int | None = None, **context: Any):
        if project_id is None:
            raise MalformedInputError("project task codes are numbered per project; project_id is required")
        return (ProjectTask.project_id == project_id,)

    def _code_context(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {"project_id": fields.get("project_id")}

    def list_for_project(self, project_id: int) -> list[ProjectTask]:
        return self.all(filters={"project_id": project_id})

    def replace_assignees(self, task_id: int, user_ids: Iterable[int]) -> list[ProjectTaskAssignee]:
        task = self.get(task_id)
        with self._op("replace_assignees"):
            self.db.execute(delete(ProjectTaskAssignee).where(ProjectTaskAssignee.task_id == task.id))
            assignees = [ProjectTaskAssignee(task_id=task.id, user_id=user_id) for user_id in dict.fromkeys(user_ids)]
            self.db.add_all(assignees)
            self.db.flush()
        self.db.expire(task, ["assignees"])
        return assignees
