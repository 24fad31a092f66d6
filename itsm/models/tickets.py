from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from itsm.db.base import Base, SoftDeleteMixin, TimestampMixin, utcnow
from itsm.models.organization import Department, Filiale, User

# Statuses that take a ticket out of work queues.
CLOSED_TICKET_STATUSES = ("cloture", "closed")


class Ticket(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # TKT-YYYY-NNNN; unique across live and soft-deleted rows.
    code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="direct")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ouvert", index=True)
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default="medium")

    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    requester_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    # Free-text requester for people without an account.
    requester_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requester_department: Mapped[str | None] = mapped_column(String(100), nullable=True)

    filiale_id: Mapped[int | None] = mapped_column(ForeignKey("filiales.id"), nullable=True, index=True)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("tickets.id"), nullable=True, index=True)

    estimated_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    actual_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_by: Mapped[User] = relationship(foreign_keys=[created_by_id])
    assigned_to: Mapped[User | None] = relationship(foreign_keys=[assigned_to_id])
    requester: Mapped[User | None] = relationship(foreign_keys=[requester_id])
    filiale: Mapped[Filiale | None] = relationship()
    assignees: Mapped[list["TicketAssignee"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
    )


class TicketAssignee(Base):
    """Additional assignees of a ticket (the main one is Ticket.assigned_to_id)."""

    __tablename__ = "ticket_assignees"
    __table_args__ = (UniqueConstraint("ticket_id", "user_id", name="uq_ticket_assignee"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_lead: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ticket: Mapped[Ticket] = relationship(back_populates="assignees")
    user: Mapped[User] = relationship()


class TicketInternal(SoftDeleteMixin, TimestampMixin, Base):
    """Department-internal ticket, numbered TKI-YYYY-NNNN."""

    __tablename__ = "ticket_internes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ouvert", index=True)
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default="medium")

    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    filiale_id: Mapped[int] = mapped_column(ForeignKey("filiales.id"), nullable=False, index=True)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    ticket_id: Mapped[int | None] = mapped_column(ForeignKey("tickets.id"), nullable=True, index=True)

    estimated_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    department: Mapped[Department] = relationship()
    created_by: Mapped[User] = relationship(foreign_keys=[created_by_id])
    assigned_to: Mapped[User | None] = relationship(foreign_keys=[assigned_to_id])


class TicketComment(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "ticket_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    # Visible to IT staff only.
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    ticket: Mapped[Ticket] = relationship()
    user: Mapped[User] = relationship()


class TicketHistory(Base):
    """Append-only change log of a ticket (created, status_changed, assigned, ...)."""

    __tablename__ = "ticket_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    ticket: Mapped[Ticket] = relationship()
    user: Mapped[User] = relationship()


class TicketSolution(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "ticket_solutions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    solution: Mapped[str] = mapped_column(Text, nullable=False)  # markdown
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    ticket: Mapped[Ticket] = relationship()
    created_by: Mapped[User] = relationship()


class TicketAttachment(SoftDeleteMixin, Base):
    """File metadata only; the bytes live wherever `file_path` points."""

    __tablename__ = "ticket_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    thumbnail_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)  # bytes
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_image: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    ticket: Mapped[Ticket] = relationship()
    user: Mapped[User] = relationship()
