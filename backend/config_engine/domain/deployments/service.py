from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

from config_engine.domain.audit.db_models import AuditAction, AuditEntityType
from config_engine.domain.audit.service import AuditTrail
from config_engine.domain.configurations.schemas import ConfigurationEntry, ConfigurationUpdateRequest
from config_engine.domain.configurations.service import ConfigurationService
from config_engine.domain.deployments.db_models import (
    DeploymentAction,
    DeploymentItemStatus,
    DeploymentStatus,
)
from config_engine.domain.deployments.schemas import (
    Deployment,
    DeploymentCreateRequest,
    DeploymentItem,
)
from config_engine.domain.errors import (
    ConflictError,
    DomainError,
    IllegalStateTransition,
    NotFoundError,
)

if TYPE_CHECKING:
    from config_engine.infra.repositories.base import DeploymentRepository

logger = logging.getLogger(__name__)

EXECUTABLE_STATUSES = {DeploymentStatus.PENDING}
RUNNING_STATUSES = {DeploymentStatus.IN_PROGRESS}
# A partially failed deployment can still revert the items that did land.
ROLLBACKABLE_STATUSES = {DeploymentStatus.COMPLETED, DeploymentStatus.FAILED}
CANCELLABLE_STATUSES = {DeploymentStatus.PENDING, DeploymentStatus.IN_PROGRESS}


class _ItemFailure(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_status(
    deployment: Deployment, allowed: Iterable[DeploymentStatus], operation: str
) -> None:
    if deployment.status not in allowed:
        raise IllegalStateTransition(
            detail=(
                f"Cannot {operation} deployment '{deployment.id}' in status "
                f"{deployment.status.value}"
            )
        )


class DeploymentService:
    def __init__(
        self,
        repository: DeploymentRepository,
        configurations: ConfigurationService,
        audit: AuditTrail,
    ) -> None:
        self._repository = repository
        self._configurations = configurations
        self._audit = audit

    async def get(self, deployment_id: str) -> Deployment:
        deployment = await self._repository.get(deployment_id)
        if deployment is None:
            raise NotFoundError(detail=f"Deployment '{deployment_id}' not found")
        return deployment

    async def list(
        self, environment: str | None = None, application: str | None = None
    ) -> list[Deployment]:
        return await self._repository.list_deployments(environment, application)

    async def items(self, deployment_id: str) -> list[DeploymentItem]:
        deployment = await self.get(deployment_id)
        return deployment.items

    async def status(self, deployment_id: str) -> DeploymentStatus:
        deployment = await self._repository.get(deployment_id)
        if deployment is None:
            logger.debug("deployment_status_missing", extra={"extra": {"deployment_id": deployment_id}})
            return DeploymentStatus.PENDING
        return deployment.status

    async def create(self, payload: DeploymentCreateRequest, *, actor: str) -> Deployment:
        deployment = Deployment(
            name=payload.name,
            description=payload.description,
            environment=payload.environment,
            application=payload.application,
            tenant_id=payload.tenant_id,
            items=[
                DeploymentItem(
                    configuration_id=item.configuration_id,
                    action=item.action,
                    new_value=item.new_value,
                )
                for item in payload.items
            ],
            metadata=payload.metadata,
            created_by=actor,
        )
        stored = await self._repository.add(deployment)
        await self._audit.log(
            AuditEntityType.DEPLOYMENT,
            stored.id,
            AuditAction.CREATE.value,
            None,
            stored.status.value,
            actor,
            tenant_id=stored.tenant_id,
            details={"name": stored.name, "item_count": len(stored.items)},
        )
        logger.info(
            "deployment_created",
            extra={"extra": {"deployment_id": stored.id, "item_count": len(stored.items)}},
        )
        return stored

    async def execute(self, deployment_id: str, *, actor: str) -> Deployment:
        deployment = await self.get(deployment_id)
        _require_status(deployment, EXECUTABLE_STATUSES, "execute")

        deployment.status = DeploymentStatus.IN_PROGRESS
        deployment.deployed_by = actor
        deployment.deployed_at = _utcnow()
        deployment = await self._repository.save(deployment, expected=EXECUTABLE_STATUSES)
        logger.info("deployment_started", extra={"extra": {"deployment_id": deployment.id}})

        try:
            for item in deployment.items:
                cancelled = await self._stop_if_cancelled(deployment)
                if cancelled is not None:
                    return cancelled
                item.status = DeploymentItemStatus.PROCESSING
                await self._process_item(deployment, item, actor=actor)
                await self._repository.save(deployment, expected=RUNNING_STATUSES)

            failed = [item for item in deployment.items if item.status == DeploymentItemStatus.FAILED]
            deployment.status = DeploymentStatus.FAILED if failed else DeploymentStatus.COMPLETED
            deployment.completed_at = _utcnow()
            deployment = await self._repository.save(deployment, expected=RUNNING_STATUSES)
        except IllegalStateTransition:
            # The stored deployment left InProgress between two saves, which only cancel does.
            cancelled = await self._stop_if_cancelled(deployment)
            if cancelled is None:
                raise
            return cancelled
        except Exception:
            logger.exception(
                "deployment_execute_failed", extra={"extra": {"deployment_id": deployment.id}}
            )
            return await self._abort(deployment, actor=actor)

        await self._audit.log(
            AuditEntityType.DEPLOYMENT,
            deployment.id,
            AuditAction.EXECUTE.value,
            DeploymentStatus.PENDING.value,
            deployment.status.value,
            actor,
            tenant_id=deployment.tenant_id,
            details={
                "completed_items": len(deployment.items) - len(failed),
                "failed_items": len(failed),
            },
        )
        logger.info(
            "deployment_finished",
            extra={
                "extra": {
                    "deployment_id": deployment.id,
                    "status": deployment.status.value,
                    "failed_items": len(failed),
                }
            },
        )
        return deployment

    async def _abort(self, deployment: Deployment, *, actor: str) -> Deployment:
        deployment.status = DeploymentStatus.FAILED
        deployment.completed_at = _utcnow()
        try:
            deployment = await self._repository.save(deployment, expected=RUNNING_STATUSES)
        except IllegalStateTransition:
            cancelled = await self._stop_if_cancelled(deployment)
            if cancelled is None:
                raise
            return cancelled
        await self._audit.log(
            AuditEntityType.DEPLOYMENT,
            deployment.id,
            AuditAction.EXECUTE.value,
            DeploymentStatus.PENDING.value,
            deployment.status.value,
            actor,
            tenant_id=deployment.tenant_id,
            details={"aborted": True},
        )
        return deployment

    async def _stop_if_cancelled(self, deployment: Deployment) -> Deployment | None:
        latest = await self._repository.get(deployment.id)
        if latest is None or latest.status != DeploymentStatus.CANCELLED:
            return None
        deployment.status = DeploymentStatus.CANCELLED
        deployment.completed_at = latest.completed_at
        skipped = 0
        for item in deployment.items:
            if item.status == DeploymentItemStatus.PENDING:
                item.status = DeploymentItemStatus.SKIPPED
                skipped += 1
        logger.info(
            "deployment_cancelled_during_execution",
            extra={"extra": {"deployment_id": deployment.id, "skipped_items": skipped}},
        )
        return await self._repository.save(deployment, expected={DeploymentStatus.CANCELLED})

    async def _process_item(self, deployment: Deployment, item: DeploymentItem, *, actor: str) -> None:
        try:
            entry = await self._load_item_entry(deployment, item)
            item.old_value = entry.value
            if item.action == DeploymentAction.UPDATE:
                if item.new_value is None:
                    raise _ItemFailure("UPDATE requires a new value")
                await self._configurations.update(
                    entry.id,
                    ConfigurationUpdateRequest(value=item.new_value),
                    actor=actor,
                    action=AuditAction.DEPLOYMENT_UPDATE,
                )
            elif item.action == DeploymentAction.DELETE:
                item.previous_entry = entry
                await self._configurations.delete(
                    entry.id, actor=actor, action=AuditAction.DEPLOYMENT_DELETE
                )
            else:
                raise _ItemFailure(f"Unknown action: {item.action}")
        except (DomainError, _ItemFailure) as exc:
            self._fail_item(deployment, item, str(exc))
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "deployment_item_error",
                extra={"extra": {"deployment_id": deployment.id, "item_id": item.id}},
            )
            self._fail_item(deployment, item, f"Unexpected error: {type(exc).__name__}")
            return

        item.status = DeploymentItemStatus.COMPLETED
        item.error_message = None
        item.processed_at = _utcnow()

    async def _load_item_entry(self, deployment: Deployment, item: DeploymentItem) -> ConfigurationEntry:
        try:
            entry = await self._configurations.get_by_id(item.configuration_id)
        except NotFoundError as exc:
            raise _ItemFailure("Configuration not found") from exc
        if (
            entry.environment != deployment.environment
            or entry.application != deployment.application
            or entry.tenant_id != deployment.tenant_id
        ):
            raise _ItemFailure("Configuration is outside the deployment scope")
        return entry

    def _fail_item(self, deployment: Deployment, item: DeploymentItem, message: str) -> None:
        item.status = DeploymentItemStatus.FAILED
        item.error_message = message
        item.processed_at = _utcnow()
        logger.warning(
            "deployment_item_failed",
            extra={
                "extra": {
                    "deployment_id": deployment.id,
                    "item_id": item.id,
                    "configuration_id": item.configuration_id,
                    "error": message,
                }
            },
        )

    async def rollback(self, deployment_id: str, reason: str, *, actor: str) -> Deployment:
        deployment = await self.get(deployment_id)
        _require_status(deployment, ROLLBACKABLE_STATUSES, "roll back")
        previous_status = deployment.status

        reverted = 0
        skipped = 0
        for item in reversed(deployment.items):
            if item.status != DeploymentItemStatus.COMPLETED:
                continue
            try:
                if await self._revert_item(item, actor=actor):
                    reverted += 1
            except (NotFoundError, ConflictError) as exc:
                skipped += 1
                logger.warning(
                    "deployment_rollback_item_skipped",
                    extra={
                        "extra": {
                            "deployment_id": deployment.id,
                            "item_id": item.id,
                            "configuration_id": item.configuration_id,
                            "error": exc.detail,
                        }
                    },
                )

        deployment.status = DeploymentStatus.ROLLED_BACK
        deployment.rollback_reason = reason
        deployment = await self._repository.save(deployment, expected=ROLLBACKABLE_STATUSES)
        await self._audit.log(
            AuditEntityType.DEPLOYMENT,
            deployment.id,
            AuditAction.ROLLBACK.value,
            previous_status.value,
            DeploymentStatus.ROLLED_BACK.value,
            actor,
            tenant_id=deployment.tenant_id,
            details={"reason": reason, "reverted_items": reverted, "skipped_items": skipped},
        )
        logger.info(
            "deployment_rolled_back",
            extra={
                "extra": {
                    "deployment_id": deployment.id,
                    "reverted_items": reverted,
                    "skipped_items": skipped,
                }
            },
        )
        return deployment

    async def _revert_item(self, item: DeploymentItem, *, actor: str) -> bool:
        """Undo one completed item.

        Raises NotFoundError when an updated entry has since been deleted and
        ConflictError when a deleted key has since been re-created.
        """
        if item.action == DeploymentAction.UPDATE and item.old_value is not None:
            # The previous value was live before this deployment, so it is not re-validated.
            await self._configurations.update(
                item.configuration_id,
                ConfigurationUpdateRequest(value=item.old_value),
                actor=actor,
                action=AuditAction.ROLLBACK,
                validate=False,
            )
            return True
        if item.action == DeploymentAction.DELETE and item.previous_entry is not None:
            await self._configurations.recreate(
                item.previous_entry, actor=actor, action=AuditAction.ROLLBACK
            )
            return True
        return False

    async def cancel(self, deployment_id: str, *, actor: str) -> Deployment:
        deployment = await self.get(deployment_id)
        _require_status(deployment, CANCELLABLE_STATUSES, "cancel")

        previous_status = deployment.status
        deployment.status = DeploymentStatus.CANCELLED
        deployment.completed_at = _utcnow()
        deployment = await self._repository.save(deployment, expected=CANCELLABLE_STATUSES)
        await self._audit.log(
            AuditEntityType.DEPLOYMENT,
            deployment.id,
            AuditAction.CANCEL.value,
            previous_status.value,
            DeploymentStatus.CANCELLED.value,
            actor,
            tenant_id=deployment.tenant_id,
        )
        logger.info("deployment_cancelled", extra={"extra": {"deployment_id": deployment.id}})
        return deployment
