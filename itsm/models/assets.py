from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from itsm.db.base import Base, SoftDeleteMixin, TimestampMixin
from itsm.models.organization import Filiale, User


class AssetCategory(TimestampMixin, Base):
    __tablename__ = "asset_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("asset_categories.id"), nullable=True, index=True)

    assets: Mapped[list["Asset"]] = relationship(back_populates="category")


class Asset(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(255), nullable=True)

    category_id: Mapped[int] = mapped_column(ForeignKey("asset_categories.id"), nullable=False, index=True)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    filiale_id: Mapped[int | None] = mapped_column(ForeignKey("filiales.id"), nullable=True, index=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    # available, in_use, maintenance, retired
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="available", index=True)
    purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    warranty_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[AssetCategory] = relationship(back_populates="assets")
    assigned_to: Mapped[User | None] = relationship(foreign_keys=[assigned_to_id])
    filiale: Mapped[Filiale | None] = relationship()
