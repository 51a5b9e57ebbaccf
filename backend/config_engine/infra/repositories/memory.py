from __future__ import annotations

import asyncio
from typing import Collection, Dict, List, Optional, Tuple

from config_engine.domain.audit.schemas import AuditLogEntry, AuditQuery
from config_engine.domain.configurations.schemas import ConfigurationEntry
from config_engine.domain.deployments.db_models import DeploymentStatus
from config_engine.domain.deployments.schemas import Deployment
from config_engine.domain.errors import ConflictError, NotFoundError
from config_engine.domain.feature_flags.schemas import FeatureFlag
from config_engine.domain.snapshots.schemas import ConfigurationSnapshot
from config_engine.infra.repositories.base import (
    AuditRepository,
    ConfigurationRepository,
    DeploymentRepository,
    FeatureFlagRepository,
    SnapshotRepository,
    ensure_expected_status,
)

ScopedName = Tuple[str, str, str, Optional[str]]


class InMemoryConfigurationRepository(ConfigurationRepository):
    def __init__(self) -> None:
        self._entries: Dict[str, ConfigurationEntry] = {}
        self._index: Dict[ScopedName, str] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _scoped(entry: ConfigurationEntry) -> ScopedName:
        return (entry.key, entry.environment, entry.application, entry.tenant_id)

    async def get(self, entry_id: str) -> Optional[ConfigurationEntry]:
        async with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    async def get_by_key(
        self, key: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[ConfigurationEntry]:
        async with self._lock:
            entry_id = self._index.get((key, environment, application, tenant_id))
            if entry_id is None:
                return None
            return self._entries[entry_id].model_copy(deep=True)

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationEntry]:
        async with self._lock:
            matches = [
                entry.model_copy(deep=True)
                for entry in self._entries.values()
                if entry.environment == environment
                and entry.application == application
                and entry.tenant_id == tenant_id
            ]
        return sorted(matches, key=lambda entry: entry.key)

    async def add(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        async with self._lock:
            scoped = self._scoped(entry)
            if scoped in self._index or entry.id in self._entries:
                raise ConflictError(detail=f"Configuration '{entry.key}' already exists in this scope")
            self._entries[entry.id] = entry.model_copy(deep=True)
            self._index[scoped] = entry.id
            return entry.model_copy(deep=True)

    async def save(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        async with self._lock:
            current = self._entries.get(entry.id)
            if current is None:
                raise NotFoundError(detail=f"Configuration '{entry.id}' not found")
            self._index.pop(self._scoped(current), None)
            self._entries[entry.id] = entry.model_copy(deep=True)
            self._index[self._scoped(entry)] = entry.id
            return entry.model_copy(deep=True)

    async def delete(self, entry_id: str) -> bool:
        async with self._lock:
            entry = self._entries.pop(entry_id, None)
            if entry is None:
                return False
            self._index.pop(self._scoped(entry), None)
            return True


class InMemoryFeatureFlagRepository(FeatureFlagRepository):
    def __init__(self) -> None:
        self._flags: Dict[str, FeatureFlag] = {}
        self._index: Dict[ScopedName, str] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _scoped(flag: FeatureFlag) -> ScopedName:
        return (flag.name, flag.environment, flag.application, flag.tenant_id)

    async def get(self, flag_id: str) -> Optional[FeatureFlag]:
        async with self._lock:
            flag = self._flags.get(flag_id)
            return flag.model_copy(deep=True) if flag else None

    async def get_by_name(
        self, name: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[FeatureFlag]:
        async with self._lock:
            flag_id = self._index.get((name, environment, application, tenant_id))
            if flag_id is None:
                return None
            return self._flags[flag_id].model_copy(deep=True)

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[FeatureFlag]:
        async with self._lock:
            matches = [
                flag.model_copy(deep=True)
                for flag in self._flags.values()
                if flag.environment == environment
                and flag.application == application
                and flag.tenant_id == tenant_id
            ]
        return sorted(matches, key=lambda flag: flag.name)

    async def add(self, flag: FeatureFlag) -> FeatureFlag:
        async with self._lock:
            scoped = self._scoped(flag)
            if scoped in self._index or flag.id in self._flags:
                raise ConflictError(detail=f"Feature flag '{flag.name}' already exists in this scope")
            self._flags[flag.id] = flag.model_copy(deep=True)
            self._index[scoped] = flag.id
            return flag.model_copy(deep=True)

    async def save(self, flag: FeatureFlag) -> FeatureFlag:
        async with self._lock:
            current = self._flags.get(flag.id)
            if current is None:
                raise NotFoundError(detail=f"Feature flag '{flag.id}' not found")
            self._index.pop(self._scoped(current), None)
            self._flags[flag.id] = flag.model_copy(deep=True)
            self._index[self._scoped(flag)] = flag.id
            return flag.model_copy(deep=True)

    async def delete(self, flag_id: str) -> bool:
        async with self._lock:
            flag = self._flags.pop(flag_id, None)
            if flag is None:
                return False
            self._index.pop(self._scoped(flag), None)
            return True


class InMemoryDeploymentRepository(DeploymentRepository):
    def __init__(self) -> None:
        self._deployments: Dict[str, Deployment] = {}
        self._lock = asyncio.Lock()

    async def get(self, deployment_id: str) -> Optional[Deployment]:
        async with self._lock:
            deployment = self._deployments.get(deployment_id)
            return deployment.model_copy(deep=True) if deployment else None

    async def list_deployments(
        self, environment: str | None = None, application: str | None = None
    ) -> List[Deployment]:
        async with self._lock:
            matches = [
                deployment.model_copy(deep=True)
                for deployment in self._deployments.values()
                if (environment is None or deployment.environment == environment)
                and (application is None or deployment.application == application)
            ]
        return sorted(matches, key=lambda deployment: deployment.created_at, reverse=True)

    async def add(self, deployment: Deployment) -> Deployment:
        async with self._lock:
            if deployment.id in self._deployments:
                raise ConflictError(detail=f"Deployment '{deployment.id}' already exists")
            self._deployments[deployment.id] = deployment.model_copy(deep=True)
            return deployment.model_copy(deep=True)

    async def save(
        self, deployment: Deployment, *, expected: Collection[DeploymentStatus] | None = None
    ) -> Deployment:
        async with self._lock:
            stored = self._deployments.get(deployment.id)
            if stored is None:
                raise NotFoundError(detail=f"Deployment '{deployment.id}' not found")
            ensure_expected_status(deployment.id, stored.status.value, expected)
            self._deployments[deployment.id] = deployment.model_copy(deep=True)
            return deployment.model_copy(deep=True)


class InMemorySnapshotRepository(SnapshotRepository):
    def __init__(self) -> None:
        self._snapshots: Dict[str, ConfigurationSnapshot] = {}
        self._lock = asyncio.Lock()

    async def get(self, snapshot_id: str) -> Optional[ConfigurationSnapshot]:
        async with self._lock:
            snapshot = self._snapshots.get(snapshot_id)
            return snapshot.model_copy(deep=True) if snapshot else None

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationSnapshot]:
        async with self._lock:
            matches = [
                snapshot.model_copy(deep=True)
                for snapshot in self._snapshots.values()
                if snapshot.environment == environment
                and snapshot.application == application
                and snapshot.tenant_id == tenant_id
            ]
        return sorted(matches, key=lambda snapshot: snapshot.created_at, reverse=True)

    async def add(self, snapshot: ConfigurationSnapshot) -> ConfigurationSnapshot:
        async with self._lock:
            if snapshot.id in self._snapshots:
                raise ConflictError(detail=f"Snapshot '{snapshot.id}' already exists")
            self._snapshots[snapshot.id] = snapshot.model_copy(deep=True)
            return snapshot.model_copy(deep=True)


class InMemoryAuditRepository(AuditRepository):
    def __init__(self) -> None:
        self._entries: List[AuditLogEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        async with self._lock:
            self._entries.append(entry.model_copy(deep=True))
            return entry.model_copy(deep=True)

    async def query(self, query: AuditQuery) -> List[AuditLogEntry]:
        async with self._lock:
            entries = list(self._entries)
        matches = [entry for entry in reversed(entries) if _matches(entry, query)]
        matches.sort(key=lambda entry: entry.timestamp, reverse=True)
        window = matches[query.offset : query.offset + query.limit]
        return [entry.model_copy(deep=True) for entry in window]


def _matches(entry: AuditLogEntry, query: AuditQuery) -> bool:
    if query.entity_id is not None and entry.entity_id != query.entity_id:
        return False
    if query.entity_type is not None and entry.entity_type != query.entity_type:
        return False
    if query.action is not None and entry.action != query.action:
        return False
    if query.user_id is not None and entry.user_id != query.user_id:
        return False
    if query.tenant_id is not None and entry.tenant_id != query.tenant_id:
        return False
    if query.from_ts is not None and entry.timestamp < query.from_ts:
        return False
    if query.to_ts is not None and entry.timestamp > query.to_ts:
        return False
    return True
