from __future__ import annotations

from typing import Collection, List, Optional, Protocol

from config_engine.domain.audit.schemas import AuditLogEntry, AuditQuery
from config_engine.domain.configurations.schemas import ConfigurationEntry
from config_engine.domain.deployments.db_models import DeploymentStatus
from config_engine.domain.deployments.schemas import Deployment
from config_engine.domain.errors import IllegalStateTransition
from config_engine.domain.feature_flags.schemas import FeatureFlag
from config_engine.domain.snapshots.schemas import ConfigurationSnapshot


def ensure_expected_status(
    deployment_id: str,
    stored_status: str,
    expected: Collection[DeploymentStatus] | None,
) -> None:
    if expected is None:
        return
    if stored_status not in {status.value for status in expected}:
        raise IllegalStateTransition(
            detail=f"Deployment '{deployment_id}' changed concurrently and is now {stored_status}"
        )


class ConfigurationRepository(Protocol):
    async def get(self, entry_id: str) -> Optional[ConfigurationEntry]: ...

    async def get_by_key(
        self, key: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[ConfigurationEntry]: ...

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationEntry]: ...

    async def add(self, entry: ConfigurationEntry) -> ConfigurationEntry: ...

    async def save(self, entry: ConfigurationEntry) -> ConfigurationEntry: ...

    async def delete(self, entry_id: str) -> bool: ...


class FeatureFlagRepository(Protocol):
    async def get(self, flag_id: str) -> Optional[FeatureFlag]: ...

    async def get_by_name(
        self, name: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[FeatureFlag]: ...

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[FeatureFlag]: ...

    async def add(self, flag: FeatureFlag) -> FeatureFlag: ...

    async def save(self, flag: FeatureFlag) -> FeatureFlag: ...

    async def delete(self, flag_id: str) -> bool: ...


class DeploymentRepository(Protocol):
    async def get(self, deployment_id: str) -> Optional[Deployment]: ...

    async def list_deployments(
        self, environment: str | None = None, application: str | None = None
    ) -> List[Deployment]: ...

    async def add(self, deployment: Deployment) -> Deployment: ...

    async def save(
        self, deployment: Deployment, *, expected: Collection[DeploymentStatus] | None = None
    ) -> Deployment:
        """Persist the deployment. Raises IllegalStateTransition when the stored
        status is not in ``expected``."""


class SnapshotRepository(Protocol):
    async def get(self, snapshot_id: str) -> Optional[ConfigurationSnapshot]: ...

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationSnapshot]: ...

    async def add(self, snapshot: ConfigurationSnapshot) -> ConfigurationSnapshot: ...


class AuditRepository(Protocol):
    async def append(self, entry: AuditLogEntry) -> AuditLogEntry: ...

    async def query(self, query: AuditQuery) -> List[AuditLogEntry]: ...
