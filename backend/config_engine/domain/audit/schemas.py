from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from config_engine.domain.audit.db_models import AuditEntityType


class AuditLogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_type: AuditEntityType
    entity_id: str
    action: str
    old_value: str | None = None
    new_value: str | None = None
    user_id: str
    tenant_id: str | None = None
    request_id: str | None = None
    details: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditQuery(BaseModel):
    entity_id: str | None = None
    entity_type: AuditEntityType | None = None
    action: str | None = None
    user_id: str | None = None
    tenant_id: str | None = None
    from_ts: datetime | None = None
    to_ts: datetime | None = None
    limit: int = 50
    offset: int = 0


class AuditLogListResponse(BaseModel):
    items: list[AuditLogEntry] = Field(default_factory=list)
    limit: int
    offset: int
