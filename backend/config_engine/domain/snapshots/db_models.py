from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Boolean, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from config_engine.infra.db import JSON_TYPE, Base, UTCDateTime


class ConfigurationSnapshotRecord(Base):
    __tablename__ = "configuration_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    environment: Mapped[str] = mapped_column(String(64), nullable=False)
    application: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    is_automatic: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa.text("false"), default=False
    )
    tags: Mapped[list] = mapped_column(JSON_TYPE, nullable=False, default=list)
    # Values of encrypted entries are stored as ciphertext.
    configuration_data: Mapped[dict] = mapped_column(JSON_TYPE, nullable=False, default=dict)
    encrypted_keys: Mapped[list] = mapped_column(JSON_TYPE, nullable=False, default=list)
    feature_flag_data: Mapped[dict] = mapped_column(JSON_TYPE, nullable=False, default=dict)

    __table_args__ = (
        sa.Index("ix_configuration_snapshots_scope", "environment", "application", "tenant_id"),
    )


@event.listens_for(ConfigurationSnapshotRecord, "before_update", propagate=True)
def _prevent_snapshot_update(mapper, connection, target) -> None:  # noqa: ANN001
    raise ValueError("Configuration snapshots are immutable")
