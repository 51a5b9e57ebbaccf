from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from config_engine.infra.db import JSON_TYPE, Base, UTCDateTime


class ConfigurationEntryRecord(Base):
    __tablename__ = "configuration_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    # Holds Fernet ciphertext when is_encrypted is set.
    value: Mapped[str] = mapped_column(Text, nullable=False)
    environment: Mapped[str] = mapped_column(String(64), nullable=False)
    application: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa.text("true"), default=True
    )
    is_encrypted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa.text("false"), default=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    validation_rule: Mapped[dict | None] = mapped_column(JSON_TYPE, nullable=True)
    tags: Mapped[list] = mapped_column(JSON_TYPE, nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        # Shared entries have a NULL tenant, and a plain unique constraint treats NULLs as distinct.
        sa.Index(
            "uq_configuration_entries_scope",
            "key",
            "environment",
            "application",
            sa.text("coalesce(tenant_id, '')"),
            unique=True,
        ),
        sa.Index("ix_configuration_entries_scope", "environment", "application", "tenant_id"),
    )
