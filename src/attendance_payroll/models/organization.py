"""Client, settings, org-structure and holiday models.

These tables are owned by external CRUD modules; the payroll core only reads
them.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from attendance_payroll.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin, uuid_pk


class Client(Base, TimestampMixin):
    """Tenant of the HR system."""

    __tablename__ = "clients"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ClientSetting(Base, UpdatedAtMixin):
    """Key/value setting; ``client_id`` NULL marks the system default row."""

    __tablename__ = "system_settings"
    __table_args__ = (UniqueConstraint("client_id", "setting_key", name="uq_setting_client_key"),)

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
    )
    setting_key: Mapped[str] = mapped_column(String(100), nullable=False)
    setting_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Department(Base, TimestampMixin):
    """Department within a client."""

    __tablename__ = "departments"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Designation(Base, TimestampMixin):
    """Job title within a client."""

    __tablename__ = "designations"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )


class Holiday(Base, TimestampMixin):
    """Calendar holiday, either client-wide or scoped to departments."""

    __tablename__ = "holidays"

    id: Mapped[UUID] = uuid_pk()
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    holiday_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    holiday_type: Mapped[str] = mapped_column(String(30), default="public", nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    applies_to_all: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # List of department ids (as strings) when applies_to_all is false
    department_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)

    def applies_to_department(self, department_id: UUID | str | None) -> bool:
        """Check department scoping."""
        if self.applies_to_all:
            return True
        if department_id is None or not self.department_ids:
            return False
        return str(department_id) in {str(d) for d in self.department_ids}
