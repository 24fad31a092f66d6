from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from itsm.db.base import Base, TimestampMixin
from itsm.models.organization import User
from itsm.models.tickets import Ticket


class Incident(TimestampMixin, Base):
    __tablename__ = "incidents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    impact: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    urgency: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resolution_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    ticket: Mapped[Ticket] = relationship()


class ServiceRequestType(TimestampMixin, Base):
    __tablename__ = "service_request_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_deadline: Mapped[int] = mapped_column(Integer, nullable=False, default=24)  # hours
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)


class ServiceRequest(TimestampMixin, Base):
    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    type_id: Mapped[int] = mapped_column(ForeignKey("service_request_types.id"), nullable=False, index=True)
    deadline: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    validated_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    validation_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    ticket: Mapped[Ticket] = relationship()
    type: Mapped[ServiceRequestType] = relationship()
    validated_by: Mapped[User | None] = relationship()


class Change(TimestampMixin, Base):
    __tablename__ = "changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    risk: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    risk_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    responsible_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    # success, partial, failed, rolled_back
    result: Mapped[str | None] = mapped_column(String(50), nullable=True)
    result_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    result_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    ticket: Mapped[Ticket] = relationship()
    responsible: Mapped[User | None] = relationship()
