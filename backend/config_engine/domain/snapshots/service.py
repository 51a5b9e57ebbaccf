from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from config_engine.domain.audit.db_models import AuditAction, AuditEntityType
from config_engine.domain.audit.service import AuditTrail
from config_engine.domain.configurations.schemas import ConfigurationUpdateRequest
from config_engine.domain.configurations.service import ConfigurationService
from config_engine.domain.errors import NotFoundError, ValidationError
from config_engine.domain.feature_flags.service import FeatureFlagService
from config_engine.domain.snapshots.schemas import (
    ConfigurationSnapshot,
    RestoreResult,
    SnapshotSummary,
)

if TYPE_CHECKING:
    from config_engine.infra.repositories.base import SnapshotRepository

logger = logging.getLogger(__name__)


def summarize(snapshot: ConfigurationSnapshot) -> SnapshotSummary:
    return SnapshotSummary(
        **snapshot.model_dump(exclude={"configuration_data", "encrypted_keys", "feature_flag_data"}),
        configuration_count=len(snapshot.configuration_data),
        feature_flag_count=len(snapshot.feature_flag_data),
    )


class SnapshotService:
    def __init__(
        self,
        repository: SnapshotRepository,
        configurations: ConfigurationService,
        feature_flags: FeatureFlagService,
        audit: AuditTrail,
    ) -> None:
        self._repository = repository
        self._configurations = configurations
        self._feature_flags = feature_flags
        self._audit = audit

    async def get(self, snapshot_id: str) -> ConfigurationSnapshot:
        snapshot = await self._repository.get(snapshot_id)
        if snapshot is None:
            raise NotFoundError(detail=f"Snapshot '{snapshot_id}' not found")
        return snapshot

    async def list(
        self, environment: str, application: str, tenant_id: str | None = None
    ) -> list[ConfigurationSnapshot]:
        return await self._repository.list_for_scope(environment, application, tenant_id)

    async def create_snapshot(
        self,
        environment: str,
        application: str,
        *,
        name: str,
        actor: str,
        tenant_id: str | None = None,
        description: str | None = None,
        tags: Iterable[str] = (),
        is_automatic: bool = False,
    ) -> ConfigurationSnapshot:
        entries = await self._configurations.list(environment, application, tenant_id)
        flags = await self._feature_flags.list(environment, application, tenant_id)
        snapshot = ConfigurationSnapshot(
            name=name,
            description=description,
            environment=environment,
            application=application,
            tenant_id=tenant_id,
            created_by=actor,
            is_automatic=is_automatic,
            tags=list(tags),
            configuration_data={entry.key: entry.value for entry in entries},
            encrypted_keys=[entry.key for entry in entries if entry.is_encrypted],
            feature_flag_data={flag.name: flag.is_enabled for flag in flags},
        )
        stored = await self._repository.add(snapshot)
        await self._audit.log(
            AuditEntityType.SNAPSHOT,
            stored.id,
            AuditAction.CREATE.value,
            None,
            stored.name,
            actor,
            tenant_id=tenant_id,
            details={
                "configuration_count": len(stored.configuration_data),
                "feature_flag_count": len(stored.feature_flag_data),
            },
        )
        logger.info(
            "snapshot_created",
            extra={
                "extra": {
                    "snapshot_id": stored.id,
                    "environment": environment,
                    "application": application,
                    "configuration_count": len(stored.configuration_data),
                }
            },
        )
        return stored

    async def restore(self, snapshot_id: str, *, actor: str) -> RestoreResult:
        """Overwrite live values with the snapshot's values, key by key.

        Keys deleted since the snapshot are not recreated and keys added since
        are left alone. A key that fails validation is reported in ``failed``
        and does not stop the rest of the restore.
        """
        snapshot = await self.get(snapshot_id)
        result = RestoreResult(snapshot_id=snapshot.id)

        live_entries = {
            entry.key: entry
            for entry in await self._configurations.list(
                snapshot.environment, snapshot.application, snapshot.tenant_id
            )
        }
        for key, value in snapshot.configuration_data.items():
            entry = live_entries.get(key)
            if entry is None:
                continue
            if entry.value == value:
                result.skipped.append(key)
                continue
            try:
                await self._configurations.update(
                    entry.id,
                    ConfigurationUpdateRequest(value=value),
                    actor=actor,
                    action=AuditAction.RESTORE,
                )
            except ValidationError as exc:
                result.failed[key] = exc.violations
                continue
            result.restored.append(key)

        live_flags = {
            flag.name: flag
            for flag in await self._feature_flags.list(
                snapshot.environment, snapshot.application, snapshot.tenant_id
            )
        }
        for name, enabled in snapshot.feature_flag_data.items():
            flag = live_flags.get(name)
            if flag is None or flag.is_enabled == enabled:
                continue
            await self._feature_flags.set_enabled(
                flag.id, enabled, actor=actor, action=AuditAction.RESTORE
            )
            result.flags_restored.append(name)

        logger.info(
            "snapshot_restored",
            extra={
                "extra": {
                    "snapshot_id": snapshot.id,
                    "restored": len(result.restored),
                    "failed": len(result.failed),
                    "flags_restored": len(result.flags_restored),
                }
            },
        )
        return result
