from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from itsm.db.base import Base, SoftDeleteMixin, TimestampMixin, utcnow
from itsm.models.organization import User
from itsm.models.tickets import Ticket


class TimeEntry(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "time_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    validated_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    validated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)

    ticket: Mapped[Ticket] = relationship()
    user: Mapped[User] = relationship(foreign_keys=[user_id])


class Delay(TimestampMixin, Base):
    """A ticket that took longer than estimated, attributed to a technician."""

    __tablename__ = "delays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    estimated_time: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_time: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_time: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_percentage: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    # unjustified, pending, justified, rejected
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="unjustified", index=True)
    detected_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    ticket: Mapped[Ticket] = relationship()
    user: Mapped[User] = relationship()
