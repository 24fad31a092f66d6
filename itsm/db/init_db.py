from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from itsm.db.base import Base
from itsm.db.session import SessionLocal, engine
from itsm.logging_config import configure_app_logging
from itsm.models.assets import AssetCategory
from itsm.models.itil import ServiceRequestType
from itsm.models.knowledge import KnowledgeCategory
from itsm.models.organization import Department, Filiale, Role, User
from itsm.models.sla import SLA
from itsm.settings import get_settings


def init_db() -> None:
    """
    Create tables + seed reference data.

    Small and deterministic: two filiales, their departments, one user per
    role, and the SLA / category catalogues the repositories look up.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Filiale.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Filiales
    provider = Filiale(code="MCI-CI", name="MCI CARE CI", country="CI", is_software_provider=True)
    branch = Filiale(code="MCI-SN", name="MCI CARE SN", country="SN")
    db.add_all([provider, branch])
    db.flush()

    # Departments
    it = Department(name="Informatique", code="IT-CI", filiale_id=provider.id, is_it_department=True)
    fin = Department(name="Finance", code="FIN-CI", filiale_id=provider.id)
    ops = Department(name="Operations", code="OPS-SN", filiale_id=branch.id)
    db.add_all([it, fin, ops])
    db.flush()

    # Roles
    admin = Role(name="ADMIN", description="System administrator", is_system=True)
    dsi = Role(name="DSI", description="Group IT direction", is_system=True)
    dsi_filiale = Role(name="DSI_FILIALE", description="Filiale IT direction", filiale_id=branch.id)
    technician = Role(name="TECHNICIEN_IT", description="IT technician", is_system=True)
    head = Role(name="CHEF_DEPARTEMENT", description="Department head")
    user_role = Role(name="USER", description="Requester", is_system=True)
    db.add_all([admin, dsi, dsi_filiale, technician, head, user_role])
    db.flush()

    # Users
    db.add_all(
        [
            User(username="admin", email="admin@example.com", role_id=admin.id, department_id=it.id, filiale_id=provider.id),
            User(username="dsi", email="dsi@example.com", role_id=dsi.id, department_id=it.id, filiale_id=provider.id),
            User(username="dsi_sn", email="dsi.sn@example.com", role_id=dsi_filiale.id, department_id=ops.id),
            User(username="tech", email="tech@example.com", role_id=technician.id, department_id=it.id, filiale_id=provider.id),
            User(username="chef_fin", email="chef.fin@example.com", role_id=head.id, department_id=fin.id, filiale_id=provider.id),
            User(username="compta", email="compta@example.com", role_id=user_role.id, department_id=fin.id, filiale_id=provider.id),
        ]
    )
    db.flush()

    # Catalogues
    db.add_all(
        [
            SLA(name="Incident critique", ticket_category="incident", priority="critical", target_time=240),
            SLA(name="Incident", ticket_category="incident", target_time=1440),
            SLA(name="Demande", ticket_category="demande", target_time=2880),
            ServiceRequestType(name="Nouveau poste", default_deadline=72),
            ServiceRequestType(name="Acces application", default_deadline=24),
            AssetCategory(name="Postes de travail"),
            AssetCategory(name="Reseau"),
            KnowledgeCategory(name="Procedures"),
        ]
    )

    db.commit()


if __name__ == "__main__":
    configure_app_logging(get_settings().log_level)
    init_db()
