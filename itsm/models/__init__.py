from itsm.models.assets import Asset, AssetCategory
from itsm.models.audit import AuditLog
from itsm.models.itil import Change, Incident, ServiceRequest, ServiceRequestType
from itsm.models.knowledge import KnowledgeArticle, KnowledgeCategory
from itsm.models.organization import Department, Filiale, Role, User
from itsm.models.projects import (
    Project,
    ProjectBudgetExtension,
    ProjectMember,
    ProjectTask,
    ProjectTaskAssignee,
    TicketProject,
)
from itsm.models.sla import SLA, TicketSLA
from itsm.models.tickets import (
    Ticket,
    TicketAssignee,
    TicketAttachment,
    TicketComment,
    TicketHistory,
    TicketInternal,
    TicketSolution,
)
from itsm.models.time_tracking import Delay, TimeEntry

__all__ = [
    "Asset",
    "AssetCategory",
    "AuditLog",
    "Change",
    "Delay",
    "Department",
    "Filiale",
    "Incident",
    "KnowledgeArticle",
    "KnowledgeCategory",
    "Project",
    "ProjectBudgetExtension",
    "ProjectMember",
    "ProjectTask",
    "ProjectTaskAssignee",
    "Role",
    "SLA",
    "ServiceRequest",
    "ServiceRequestType",
    "Ticket",
    "TicketAssignee",
    "TicketAttachment",
    "TicketComment",
    "TicketHistory",
    "TicketInternal",
    "TicketProject",
    "TicketSLA",
    "TicketSolution",
    "TimeEntry",
    "User",
]
