from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from config_engine.domain.configurations.schemas import ConfigurationEntry
from config_engine.domain.deployments.db_models import (
    DeploymentAction,
    DeploymentItemStatus,
    DeploymentStatus,
)


class DeploymentItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    configuration_id: str
    action: DeploymentAction
    old_value: str | None = None
    new_value: str | None = None
    status: DeploymentItemStatus = DeploymentItemStatus.PENDING
    error_message: str | None = None
    processed_at: datetime | None = None
    # Full entry captured before a DELETE so rollback can recreate it.
    previous_entry: ConfigurationEntry | None = None


class Deployment(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str | None = None
    environment: str
    application: str
    tenant_id: str | None = None
    status: DeploymentStatus = DeploymentStatus.PENDING
    items: list[DeploymentItem] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    created_by: str
    deployed_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    deployed_at: datetime | None = None
    completed_at: datetime | None = None
    rollback_reason: str | None = None


class DeploymentItemCreateRequest(BaseModel):
    configuration_id: str
    action: DeploymentAction = DeploymentAction.UPDATE
    new_value: str | None = None


class DeploymentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    environment: str = Field(min_length=1)
    application: str = Field(min_length=1)
    tenant_id: str | None = None
    items: list[DeploymentItemCreateRequest] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)


class DeploymentRollbackRequest(BaseModel):
    reason: str = Field(min_length=1)


class DeploymentStatusResponse(BaseModel):
    id: str
    status: DeploymentStatus


class DeploymentListResponse(BaseModel):
    items: list[Deployment] = Field(default_factory=list)


class DeploymentItemListResponse(BaseModel):
    items: list[DeploymentItem] = Field(default_factory=list)
