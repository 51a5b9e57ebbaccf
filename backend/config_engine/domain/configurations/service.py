from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Sequence

from config_engine.domain.audit.db_models import AuditAction, AuditEntityType
from config_engine.domain.audit.service import AuditTrail, is_sensitive_key
from config_engine.domain.configurations.schemas import (
    ConfigurationBatchValidateResponse,
    ConfigurationCreateRequest,
    ConfigurationEntry,
    ConfigurationUpdateRequest,
    ConfigurationValidationItem,
)
from config_engine.domain.errors import ConflictError, NotFoundError, ValidationError
from config_engine.domain.validation.schemas import ValidationResult
from config_engine.domain.validation.service import validate_batch, validate_entry

if TYPE_CHECKING:
    from config_engine.infra.repositories.base import ConfigurationRepository

logger = logging.getLogger(__name__)

# None for these means "leave as is"; description and validation_rule may be cleared.
_NON_NULLABLE_PATCH_FIELDS = {"value", "is_active", "tags"}


def _ensure_timezone(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _action_name(action: AuditAction | str) -> str:
    return action.value if isinstance(action, AuditAction) else str(action)


def _is_sensitive(entry: ConfigurationEntry) -> bool:
    return entry.is_encrypted or is_sensitive_key(entry.key)


def _raise_if_invalid(result: ValidationResult, key: str) -> None:
    if result.warnings:
        logger.warning(
            "configuration_validation_warnings",
            extra={"extra": {"key": key, "warnings": result.warnings}},
        )
    if not result.is_valid:
        raise ValidationError.from_messages(
            result.errors, detail=f"Configuration '{key}' failed validation"
        )


class ConfigurationService:
    def __init__(self, repository: ConfigurationRepository, audit: AuditTrail) -> None:
        self._repository = repository
        self._audit = audit

    async def get(
        self, key: str, environment: str, application: str, tenant_id: str | None = None
    ) -> ConfigurationEntry:
        entry = await self._repository.get_by_key(key, environment, application, tenant_id)
        if entry is None:
            raise NotFoundError(
                detail=f"Configuration '{key}' not found for {environment}/{application}"
            )
        return entry

    async def get_by_id(self, entry_id: str) -> ConfigurationEntry:
        entry = await self._repository.get(entry_id)
        if entry is None:
            raise NotFoundError(detail=f"Configuration '{entry_id}' not found")
        return entry

    async def list(
        self, environment: str, application: str, tenant_id: str | None = None
    ) -> list[ConfigurationEntry]:
        return await self._repository.list_for_scope(environment, application, tenant_id)

    async def create(
        self,
        payload: ConfigurationCreateRequest,
        *,
        actor: str,
        now: datetime | None = None,
    ) -> ConfigurationEntry:
        _raise_if_invalid(validate_entry(payload), payload.key)
        existing = await self._repository.get_by_key(
            payload.key, payload.environment, payload.application, payload.tenant_id
        )
        if existing is not None:
            raise ConflictError(
                detail=f"Configuration '{payload.key}' already exists in this scope"
            )

        timestamp = _ensure_timezone(now or datetime.now(timezone.utc))
        entry = ConfigurationEntry(
            **payload.model_dump(exclude={"validation_rule"}),
            validation_rule=payload.validation_rule,
            version=1,
            created_by=actor,
            created_at=timestamp,
            updated_at=timestamp,
        )
        stored = await self._repository.add(entry)
        await self._audit.log(
            AuditEntityType.CONFIGURATION,
            stored.id,
            AuditAction.CREATE.value,
            None,
            stored.value,
            actor,
            tenant_id=stored.tenant_id,
            sensitive=_is_sensitive(stored),
        )
        logger.info(
            "configuration_created",
            extra={
                "extra": {
                    "configuration_id": stored.id,
                    "key": stored.key,
                    "environment": stored.environment,
                    "application": stored.application,
                }
            },
        )
        return stored

    async def update(
        self,
        entry_id: str,
        patch: ConfigurationUpdateRequest,
        *,
        actor: str,
        action: AuditAction | str = AuditAction.UPDATE,
        validate: bool = True,
        now: datetime | None = None,
    ) -> ConfigurationEntry:
        current = await self.get_by_id(entry_id)
        changes = {
            field: getattr(patch, field)
            for field in patch.model_fields_set
            if not (field in _NON_NULLABLE_PATCH_FIELDS and getattr(patch, field) is None)
        }
        updated = current.model_copy(update=changes, deep=True)
        if validate:
            _raise_if_invalid(validate_entry(updated), updated.key)

        updated.version = current.version + 1
        updated.updated_by = actor
        updated.updated_at = _ensure_timezone(now or datetime.now(timezone.utc))
        stored = await self._repository.save(updated)
        await self._audit.log(
            AuditEntityType.CONFIGURATION,
            stored.id,
            _action_name(action),
            current.value,
            stored.value,
            actor,
            tenant_id=stored.tenant_id,
            sensitive=_is_sensitive(current) or _is_sensitive(stored),
        )
        logger.info(
            "configuration_updated",
            extra={
                "extra": {
                    "configuration_id": stored.id,
                    "key": stored.key,
                    "version": stored.version,
                    "action": _action_name(action),
                }
            },
        )
        return stored

    async def delete(
        self,
        entry_id: str,
        *,
        actor: str,
        action: AuditAction | str = AuditAction.DELETE,
    ) -> ConfigurationEntry:
        current = await self.get_by_id(entry_id)
        deleted = await self._repository.delete(entry_id)
        if not deleted:
            raise NotFoundError(detail=f"Configuration '{entry_id}' not found")
        await self._audit.log(
            AuditEntityType.CONFIGURATION,
            current.id,
            _action_name(action),
            current.value,
            None,
            actor,
            tenant_id=current.tenant_id,
            sensitive=_is_sensitive(current),
        )
        logger.info(
            "configuration_deleted",
            extra={"extra": {"configuration_id": current.id, "key": current.key}},
        )
        return current

    async def recreate(
        self,
        previous: ConfigurationEntry,
        *,
        actor: str,
        action: AuditAction | str,
        now: datetime | None = None,
    ) -> ConfigurationEntry:
        """Bring back a hard-deleted entry under its original id.

        The version continues from the deleted entry so it never goes backwards.
        """
        timestamp = _ensure_timezone(now or datetime.now(timezone.utc))
        entry = previous.model_copy(
            update={
                "version": previous.version + 1,
                "updated_by": actor,
                "updated_at": timestamp,
            },
            deep=True,
        )
        stored = await self._repository.add(entry)
        await self._audit.log(
            AuditEntityType.CONFIGURATION,
            stored.id,
            _action_name(action),
            None,
            stored.value,
            actor,
            tenant_id=stored.tenant_id,
            sensitive=_is_sensitive(stored),
        )
        return stored

    async def validate(self, entry_id: str, value: str | None = None) -> ValidationResult:
        entry = await self.get_by_id(entry_id)
        if value is not None:
            entry = entry.model_copy(update={"value": value})
        return validate_entry(entry)

    def validate_batch(
        self, items: Sequence[ConfigurationCreateRequest]
    ) -> ConfigurationBatchValidateResponse:
        results = validate_batch(items)
        report = [
            ConfigurationValidationItem(
                key=item.key,
                is_valid=result.is_valid,
                errors=result.errors,
                warnings=result.warnings,
            )
            for item, result in zip(items, results)
        ]
        return ConfigurationBatchValidateResponse(
            is_valid=all(result.is_valid for result in results),
            items=report,
        )
