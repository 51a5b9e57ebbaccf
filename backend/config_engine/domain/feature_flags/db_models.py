from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from config_engine.infra.db import JSON_TYPE, Base, UTCDateTime


class FeatureFlagOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    PERCENTAGE = "percentage"


class FeatureFlagRecord(Base):
    __tablename__ = "feature_flags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    environment: Mapped[str] = mapped_column(String(64), nullable=False)
    application: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa.text("false"), default=False
    )
    rules: Mapped[list] = mapped_column(JSON_TYPE, nullable=False, default=list)
    schedule: Mapped[dict | None] = mapped_column(JSON_TYPE, nullable=True)
    # "metadata" is reserved on declarative classes.
    flag_metadata: Mapped[dict] = mapped_column("metadata", JSON_TYPE, nullable=False, default=dict)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        sa.Index(
            "uq_feature_flags_scope",
            "name",
            "environment",
            "application",
            sa.text("coalesce(tenant_id, '')"),
            unique=True,
        ),
        sa.Index("ix_feature_flags_scope", "environment", "application", "tenant_id"),
    )
