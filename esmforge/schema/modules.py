from __future__ import annotations

import datetime
from enum import Enum as PyEnum

from sqlalchemy import CHAR, DateTime, Enum, Index, Integer, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from esmforge.core.database import Base


class ModuleStatus(str, PyEnum):
  PENDING = "pending"
  READY = "ready"
  FAILED = "failed"


class GeneratedModule(Base):
  __tablename__ = "generated_modules"
  __table_args__ = (Index("ix_generated_modules_pending_updated_at", "updated_at", postgresql_where=text("status = 'pending'")),)

  key: Mapped[str] = mapped_column(CHAR(64), primary_key=True)
  status: Mapped[ModuleStatus] = mapped_column(Enum(ModuleStatus, name="module_status", values_callable=lambda members: [member.value for member in members]), nullable=False)
  source_text: Mapped[str | None] = mapped_column(Text, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")  # failed generation rounds
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
