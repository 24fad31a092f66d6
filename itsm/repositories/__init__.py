from itsm.repositories.assets import AssetCategoryRepository, AssetRepository
from itsm.repositories.audit_logs import AuditLogRepository
from itsm.repositories.base import CodedRepository, Repository
from itsm.repositories.itil import ChangeRepository, IncidentRepository, ServiceRequestRepository, ServiceRequestTypeRepository
from itsm.repositories.knowledge import KnowledgeArticleRepository, KnowledgeCategoryRepository
from itsm.repositories.organization import DepartmentRepository, FilialeRepository, RoleRepository
from itsm.repositories.projects import ProjectBudgetExtensionRepository, ProjectRepository, ProjectTaskRepository
from itsm.repositories.sla import SLARepository, TicketSLARepository
from itsm.repositories.ticket_details import (
    TicketAttachmentRepository,
    TicketCommentRepository,
    TicketHistoryRepository,
    TicketSolutionRepository,
)
from itsm.repositories.ticket_internals import TicketInternalRepository
from itsm.repositories.tickets import TicketRepository
from itsm.repositories.time_tracking import DelayRepository, TimeEntryRepository
from itsm.repositories.users import UserRepository

__all__ = [
    "AssetCategoryRepository",
    "AssetRepository",
    "AuditLogRepository",
    "ChangeRepository",
    "CodedRepository",
    "DelayRepository",
    "DepartmentRepository",
    "FilialeRepository",
    "IncidentRepository",
    "KnowledgeArticleRepository",
    "KnowledgeCategoryRepository",
    "ProjectBudgetExtensionRepository",
    "ProjectRepository",
    "ProjectTaskRepository",
    "Repository",
    "RoleRepository",
    "SLARepository",
    "ServiceRequestRepository",
    "ServiceRequestTypeRepository",
    "TicketAttachmentRepository",
    "TicketCommentRepository",
    "TicketHistoryRepository",
    "TicketInternalRepository",
    "TicketRepository",
    "TicketSLARepository",
    "TicketSolutionRepository",
    "TimeEntryRepository",
    "UserRepository",
]
