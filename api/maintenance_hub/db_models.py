# maintenance_hub/db_models.py
"""
SQLAlchemy ORM Models for Maintenance Hub.

Only the columns the integrity check and the role gate read are mapped;
the remaining inventory columns are owned by the inventory subsystem.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional
import enum
import uuid

from sqlalchemy import (
    String, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint,
    Enum as SQLEnum, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from maintenance_hub.database import Base

# ============================================================================
# ENUMS (matching PostgreSQL ENUMs)
# ============================================================================

class AppRole(str, enum.Enum):
    admin = "admin"
    system_owner = "system_owner"
    supervisor = "supervisor"
    parts_approver = "parts_approver"
    job_allocator = "job_allocator"
    batch_manager = "batch_manager"


def _uuid() -> str:
    return str(uuid.uuid4())


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


# ============================================================================
# INVENTORY
# ============================================================================

class Product(TimestampMixin, Base):
    __tablename__ = "inventory_products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    part_number: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)


class Batch(TimestampMixin, Base):
    __tablename__ = "inventory_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # no FK constraint: orphaned rows are exactly what the integrity check looks for
    product_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    batch_number: Mapped[Optional[str]] = mapped_column(String(255), index=True)


# ============================================================================
# ROLES
# ============================================================================

class CustomRole(TimestampMixin, Base):
    __tablename__ = "custom_roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)


class UserRole(TimestampMixin, Base):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        UniqueConstraint("user_id", "custom_role_id", name="uq_user_roles_user_custom_role"),
        CheckConstraint(
            "(role IS NULL) <> (custom_role_id IS NULL)",
            name="ck_user_roles_role_xor_custom",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    role: Mapped[Optional[AppRole]] = mapped_column(SQLEnum(AppRole, name="app_role"))
    custom_role_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("custom_roles.id", ondelete="CASCADE")
    )

    custom_role: Mapped[Optional[CustomRole]] = relationship(lazy="joined")
