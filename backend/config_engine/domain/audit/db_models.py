from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from config_engine.infra.db import JSON_TYPE, Base, UTCDateTime


class AuditEntityType(str, Enum):
    CONFIGURATION = "Configuration"
    FEATURE_FLAG = "FeatureFlag"
    DEPLOYMENT = "Deployment"
    SNAPSHOT = "Snapshot"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TOGGLE = "TOGGLE"
    EXECUTE = "EXECUTE"
    ROLLBACK = "ROLLBACK"
    CANCEL = "CANCEL"
    RESTORE = "RESTORE"
    DEPLOYMENT_UPDATE = "DEPLOYMENT_UPDATE"
    DEPLOYMENT_DELETE = "DEPLOYMENT_DELETE"


class AuditLogRecord(Base):
    __tablename__ = "config_engine_audit_logs"

    id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    audit_id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON_TYPE, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("ix_config_engine_audit_entity", "entity_type", "entity_id"),
        Index("ix_config_engine_audit_timestamp", "timestamp"),
    )


@event.listens_for(AuditLogRecord, "before_update", propagate=True)
def _prevent_audit_update(mapper, connection, target) -> None:  # noqa: ANN001
    raise ValueError("Audit log entries are immutable")


@event.listens_for(AuditLogRecord, "before_delete", propagate=True)
def _prevent_audit_delete(mapper, connection, target) -> None:  # noqa: ANN001
    raise ValueError("Audit log entries are immutable")
