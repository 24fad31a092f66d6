from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from itsm.db.base import Base, TimestampMixin
from itsm.models.tickets import Ticket


class SLA(TimestampMixin, Base):
    __tablename__ = "sla"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ticket_category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # None applies to every priority of the category.
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    target_time: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="minutes")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)


class TicketSLA(TimestampMixin, Base):
    __tablename__ = "ticket_sla"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    sla_id: Mapped[int] = mapped_column(ForeignKey("sla.id"), nullable=False, index=True)
    target_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    actual_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # on_time, at_risk, violated
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="on_time", index=True)
    violation_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes

    ticket: Mapped[Ticket] = relationship()
    sla: Mapped[SLA] = relationship()
