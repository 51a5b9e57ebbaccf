from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ConfigurationSnapshot(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str | None = None
    environment: str
    application: str
    tenant_id: str | None = None
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_automatic: bool = False
    tags: list[str] = Field(default_factory=list)
    configuration_data: dict[str, str] = Field(default_factory=dict)
    # Keys whose values came from encrypted entries.
    encrypted_keys: list[str] = Field(default_factory=list)
    feature_flag_data: dict[str, bool] = Field(default_factory=dict)


class SnapshotCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    environment: str = Field(min_length=1)
    application: str = Field(min_length=1)
    tenant_id: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class SnapshotSummary(BaseModel):
    id: str
    name: str
    description: str | None = None
    environment: str
    application: str
    tenant_id: str | None = None
    created_by: str
    created_at: datetime
    is_automatic: bool
    tags: list[str] = Field(default_factory=list)
    configuration_count: int
    feature_flag_count: int


class SnapshotListResponse(BaseModel):
    items: list[SnapshotSummary] = Field(default_factory=list)


class RestoreResult(BaseModel):
    snapshot_id: str
    restored: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, list[str]] = Field(default_factory=dict)
    flags_restored: list[str] = Field(default_factory=list)
