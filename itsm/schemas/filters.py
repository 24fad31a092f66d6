"""
Listing filters accepted by the repositories.

Each repository validates the caller's filter mapping with one of these
models. Unknown keys are rejected; `None` and empty strings mean "no filter".
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class FilterModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class FilialeFilters(FilterModel):
    country: str | None = None
    is_active: bool | None = None
    is_software_provider: bool | None = None


class DepartmentFilters(FilterModel):
    filiale_id: int | None = None
    is_active: bool | None = None
    is_it_department: bool | None = None


class RoleFilters(FilterModel):
    filiale_id: int | None = None
    is_system: bool | None = None


class UserFilters(FilterModel):
    department_id: int | None = None
    filiale_id: int | None = None
    role_id: int | None = None
    is_active: bool | None = None
    search: str | None = None


class TicketFilters(FilterModel):
    status: str | None = None
    priority: str | None = None
    category: str | None = None
    source: str | None = None
    filiale_id: int | None = None
    created_by_id: int | None = None
    assigned_to_id: int | None = None
    requester_id: int | None = None
    parent_id: int | None = None
    # Primary assignee or co-assignee.
    assignee_user_id: int | None = None
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


class TicketInternalFilters(FilterModel):
    status: str | None = None
    priority: str | None = None
    category: str | None = None
    department_id: int | None = None
    filiale_id: int | None = None
    created_by_id: int | None = None
    assigned_to_id: int | None = None
    ticket_id: int | None = None


class TicketCommentFilters(FilterModel):
    ticket_id: int | None = None
    user_id: int | None = None
    is_internal: bool | None = None


class TicketHistoryFilters(FilterModel):
    ticket_id: int | None = None
    user_id: int | None = None
    action: str | None = None


class TicketSolutionFilters(FilterModel):
    ticket_id: int | None = None
    created_by_id: int | None = None


class TicketAttachmentFilters(FilterModel):
    ticket_id: int | None = None
    user_id: int | None = None
    is_image: bool | None = None


class IncidentFilters(FilterModel):
    impact: str | None = None
    urgency: str | None = None
    resolved: bool | None = None


class ServiceRequestFilters(FilterModel):
    type_id: int | None = None
    validated: bool | None = None


class ChangeFilters(FilterModel):
    risk: str | None = None
    result: str | None = None
    responsible_id: int | None = None


class AssetFilters(FilterModel):
    status: str | None = None
    category_id: int | None = None
    assigned_to_id: int | None = None
    filiale_id: int | None = None
    search: str | None = None


class AssetCategoryFilters(FilterModel):
    parent_id: int | None = None


class SLAFilters(FilterModel):
    ticket_category: str | None = None
    priority: str | None = None
    is_active: bool | None = None


class TicketSLAFilters(FilterModel):
    status: str | None = None
    sla_id: int | None = None


class TimeEntryFilters(FilterModel):
    ticket_id: int | None = None
    user_id: int | None = None
    validated: bool | None = None
    date_from: date | None = None
    date_to: date | None = None


class DelayFilters(FilterModel):
    status: str | None = None
    user_id: int | None = None
    ticket_id: int | None = None


class ProjectFilters(FilterModel):
    status: str | None = None
    filiale_id: int | None = None


class ProjectBudgetExtensionFilters(FilterModel):
    project_id: int | None = None
    created_by_id: int | None = None


class ProjectTaskFilters(FilterModel):
    project_id: int | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to_id: int | None = None


class KnowledgeArticleFilters(FilterModel):
    category_id: int | None = None
    author_id: int | None = None
    filiale_id: int | None = None
    is_published: bool | None = None
    search: str | None = None


class KnowledgeCategoryFilters(FilterModel):
    parent_id: int | None = None
    is_active: bool | None = None


class AuditLogFilters(FilterModel):
    user_id: int | None = None
    action: str | None = None
    entity_type: str | None = None
    entity_id: int | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
