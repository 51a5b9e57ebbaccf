from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeatureFlagRule(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    attribute: str
    # Plain string so unknown operators evaluate as a non-match instead of failing to load.
    operator: str
    value: str
    priority: int = 0
    is_active: bool = True


class FeatureFlagSchedule(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    # Stored for recurring windows; evaluation only looks at start/end dates.
    cron_expression: str | None = None
    time_zone: str = "UTC"
    is_active: bool = True


class FeatureFlag(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    environment: str
    application: str
    tenant_id: str | None = None
    description: str | None = None
    is_enabled: bool = False
    rules: list[FeatureFlagRule] = Field(default_factory=list)
    schedule: FeatureFlagSchedule | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created_by: str
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class FeatureFlagCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    environment: str = Field(min_length=1)
    application: str = Field(min_length=1)
    tenant_id: str | None = None
    description: str | None = None
    is_enabled: bool = False
    rules: list[FeatureFlagRule] = Field(default_factory=list)
    schedule: FeatureFlagSchedule | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class FeatureFlagUpdateRequest(BaseModel):
    description: str | None = None
    is_enabled: bool | None = None
    rules: list[FeatureFlagRule] | None = None
    schedule: FeatureFlagSchedule | None = None
    metadata: dict[str, str] | None = None


class FeatureFlagEvaluationRequest(BaseModel):
    environment: str
    application: str
    tenant_id: str | None = None
    context: dict[str, Any] | None = None


class FeatureFlagEnabledResponse(BaseModel):
    name: str
    environment: str
    application: str
    tenant_id: str | None = None
    enabled: bool


class RuleEvaluationResult(BaseModel):
    rule_id: str
    attribute: str
    operator: str
    value: str
    priority: int
    matched: bool
    reason: str


class FeatureFlagListResponse(BaseModel):
    items: list[FeatureFlag] = Field(default_factory=list)
