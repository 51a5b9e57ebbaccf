from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

from config_engine.domain.audit.db_models import AuditAction, AuditEntityType
from config_engine.domain.audit.service import AuditTrail
from config_engine.domain.errors import ConflictError, NotFoundError
from config_engine.domain.feature_flags.evaluator import active_rules, evaluate_rule, is_flag_active
from config_engine.domain.feature_flags.schemas import (
    FeatureFlag,
    FeatureFlagCreateRequest,
    FeatureFlagUpdateRequest,
    RuleEvaluationResult,
)

if TYPE_CHECKING:
    from config_engine.infra.repositories.base import FeatureFlagRepository

logger = logging.getLogger(__name__)

_NON_NULLABLE_PATCH_FIELDS = {"is_enabled", "rules", "metadata"}


def _enabled_text(value: bool) -> str:
    return "true" if value else "false"


def _definition_snapshot(flag: FeatureFlag) -> dict[str, Any]:
    return {
        "description": flag.description,
        "rules": [rule.model_dump(mode="json") for rule in flag.rules],
        "schedule": flag.schedule.model_dump(mode="json") if flag.schedule else None,
        "metadata": dict(flag.metadata),
    }


class FeatureFlagService:
    def __init__(self, repository: FeatureFlagRepository, audit: AuditTrail, *, salt: str) -> None:
        self._repository = repository
        self._audit = audit
        self._salt = salt

    async def is_enabled(
        self,
        name: str,
        environment: str,
        application: str,
        context: Mapping[str, Any] | None = None,
        tenant_id: str | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        try:
            flag = await self._repository.get_by_name(name, environment, application, tenant_id)
        except Exception:  # noqa: BLE001
            logger.exception(
                "feature_flag_lookup_failed",
                extra={"extra": {"flag": name, "environment": environment, "application": application}},
            )
            return False
        if flag is None:
            logger.warning(
                "feature_flag_not_found",
                extra={
                    "extra": {
                        "flag": name,
                        "environment": environment,
                        "application": application,
                        "tenant_id": tenant_id,
                    }
                },
            )
            return False
        try:
            return is_flag_active(flag, context, now=now, salt=self._salt)
        except Exception:  # noqa: BLE001
            logger.exception("feature_flag_evaluation_failed", extra={"extra": {"flag": name}})
            return False

    async def evaluate_rules(
        self, flag_id: str, context: Mapping[str, Any]
    ) -> list[RuleEvaluationResult]:
        flag = await self.get_by_id(flag_id)
        results = []
        for rule in active_rules(flag):
            outcome = evaluate_rule(rule, context, salt=self._salt)
            results.append(
                RuleEvaluationResult(
                    rule_id=rule.id,
                    attribute=rule.attribute,
                    operator=rule.operator,
                    value=rule.value,
                    priority=rule.priority,
                    matched=outcome.matched,
                    reason=outcome.reason,
                )
            )
        return results

    async def get(
        self, name: str, environment: str, application: str, tenant_id: str | None = None
    ) -> FeatureFlag:
        flag = await self._repository.get_by_name(name, environment, application, tenant_id)
        if flag is None:
            raise NotFoundError(detail=f"Feature flag '{name}' not found for {environment}/{application}")
        return flag

    async def get_by_id(self, flag_id: str) -> FeatureFlag:
        flag = await self._repository.get(flag_id)
        if flag is None:
            raise NotFoundError(detail=f"Feature flag '{flag_id}' not found")
        return flag

    async def list(
        self, environment: str, application: str, tenant_id: str | None = None
    ) -> list[FeatureFlag]:
        return await self._repository.list_for_scope(environment, application, tenant_id)

    async def create(
        self, payload: FeatureFlagCreateRequest, *, actor: str, now: datetime | None = None
    ) -> FeatureFlag:
        existing = await self._repository.get_by_name(
            payload.name, payload.environment, payload.application, payload.tenant_id
        )
        if existing is not None:
            raise ConflictError(detail=f"Feature flag '{payload.name}' already exists in this scope")
        timestamp = now or datetime.now(timezone.utc)
        flag = FeatureFlag(
            name=payload.name,
            environment=payload.environment,
            application=payload.application,
            tenant_id=payload.tenant_id,
            description=payload.description,
            is_enabled=payload.is_enabled,
            rules=payload.rules,
            schedule=payload.schedule,
            metadata=payload.metadata,
            created_by=actor,
            created_at=timestamp,
            updated_at=timestamp,
        )
        stored = await self._repository.add(flag)
        await self._audit.log(
            AuditEntityType.FEATURE_FLAG,
            stored.id,
            AuditAction.CREATE.value,
            None,
            _enabled_text(stored.is_enabled),
            actor,
            tenant_id=stored.tenant_id,
            details={"name": stored.name, "after": _definition_snapshot(stored)},
        )
        logger.info(
            "feature_flag_created",
            extra={"extra": {"flag_id": stored.id, "flag": stored.name, "enabled": stored.is_enabled}},
        )
        return stored

    async def update(
        self,
        flag_id: str,
        patch: FeatureFlagUpdateRequest,
        *,
        actor: str,
        action: AuditAction | str = AuditAction.UPDATE,
        now: datetime | None = None,
    ) -> FeatureFlag:
        current = await self.get_by_id(flag_id)
        changes = {
            field: getattr(patch, field)
            for field in patch.model_fields_set
            if not (field in _NON_NULLABLE_PATCH_FIELDS and getattr(patch, field) is None)
        }
        updated = current.model_copy(update=changes, deep=True)
        updated.updated_by = actor
        updated.updated_at = now or datetime.now(timezone.utc)
        stored = await self._repository.save(updated)
        action_name = action.value if isinstance(action, AuditAction) else str(action)
        await self._audit.log(
            AuditEntityType.FEATURE_FLAG,
            stored.id,
            action_name,
            _enabled_text(current.is_enabled),
            _enabled_text(stored.is_enabled),
            actor,
            tenant_id=stored.tenant_id,
            details={
                "name": stored.name,
                "before": _definition_snapshot(current),
                "after": _definition_snapshot(stored),
            },
        )
        logger.info(
            "feature_flag_updated",
            extra={"extra": {"flag_id": stored.id, "flag": stored.name, "action": action_name}},
        )
        return stored

    async def toggle(self, flag_id: str, *, actor: str) -> FeatureFlag:
        current = await self.get_by_id(flag_id)
        return await self.update(
            flag_id,
            FeatureFlagUpdateRequest(is_enabled=not current.is_enabled),
            actor=actor,
            action=AuditAction.TOGGLE,
        )

    async def set_enabled(
        self, flag_id: str, enabled: bool, *, actor: str, action: AuditAction | str
    ) -> FeatureFlag:
        return await self.update(
            flag_id, FeatureFlagUpdateRequest(is_enabled=enabled), actor=actor, action=action
        )

    async def delete(self, flag_id: str, *, actor: str) -> FeatureFlag:
        current = await self.get_by_id(flag_id)
        if not await self._repository.delete(flag_id):
            raise NotFoundError(detail=f"Feature flag '{flag_id}' not found")
        await self._audit.log(
            AuditEntityType.FEATURE_FLAG,
            current.id,
            AuditAction.DELETE.value,
            _enabled_text(current.is_enabled),
            None,
            actor,
            tenant_id=current.tenant_id,
            details={"name": current.name, "before": _definition_snapshot(current)},
        )
        logger.info("feature_flag_deleted", extra={"extra": {"flag_id": current.id, "flag": current.name}})
        return current
