from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from config_engine.domain.validation.schemas import ValidationRule


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigurationEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    key: str
    value: str
    environment: str
    application: str
    tenant_id: str | None = None
    description: str | None = None
    is_active: bool = True
    is_encrypted: bool = False
    version: int = 1
    validation_rule: ValidationRule | None = None
    tags: list[str] = Field(default_factory=list)
    created_by: str
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ConfigurationCreateRequest(BaseModel):
    key: str
    value: str
    environment: str
    application: str
    tenant_id: str | None = None
    description: str | None = None
    is_active: bool = True
    is_encrypted: bool = False
    validation_rule: ValidationRule | None = None
    tags: list[str] = Field(default_factory=list)


class ConfigurationUpdateRequest(BaseModel):
    value: str | None = None
    description: str | None = None
    is_active: bool | None = None
    tags: list[str] | None = None
    validation_rule: ValidationRule | None = None


class ConfigurationValidateRequest(BaseModel):
    value: str | None = None


class ConfigurationBatchValidateRequest(BaseModel):
    items: list[ConfigurationCreateRequest] = Field(default_factory=list)


class ConfigurationValidationItem(BaseModel):
    key: str
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ConfigurationBatchValidateResponse(BaseModel):
    is_valid: bool
    items: list[ConfigurationValidationItem] = Field(default_factory=list)


class ConfigurationListResponse(BaseModel):
    items: list[ConfigurationEntry] = Field(default_factory=list)
