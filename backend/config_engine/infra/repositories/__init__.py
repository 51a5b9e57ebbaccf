from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config_engine.infra.repositories.base import (
    AuditRepository,
    ConfigurationRepository,
    DeploymentRepository,
    FeatureFlagRepository,
    SnapshotRepository,
)
from config_engine.infra.repositories.memory import (
    InMemoryAuditRepository,
    InMemoryConfigurationRepository,
    InMemoryDeploymentRepository,
    InMemoryFeatureFlagRepository,
    InMemorySnapshotRepository,
)
from config_engine.infra.repositories.sql import (
    SqlAuditRepository,
    SqlConfigurationRepository,
    SqlDeploymentRepository,
    SqlFeatureFlagRepository,
    SqlSnapshotRepository,
)
from config_engine.settings import settings


@dataclass
class Repositories:
    configurations: ConfigurationRepository
    feature_flags: FeatureFlagRepository
    deployments: DeploymentRepository
    snapshots: SnapshotRepository
    audit: AuditRepository


def in_memory_repositories() -> Repositories:
    return Repositories(
        configurations=InMemoryConfigurationRepository(),
        feature_flags=InMemoryFeatureFlagRepository(),
        deployments=InMemoryDeploymentRepository(),
        snapshots=InMemorySnapshotRepository(),
        audit=InMemoryAuditRepository(),
    )


def sql_repositories(session_factory: async_sessionmaker[AsyncSession] | None = None) -> Repositories:
    return Repositories(
        configurations=SqlConfigurationRepository(session_factory),
        feature_flags=SqlFeatureFlagRepository(session_factory),
        deployments=SqlDeploymentRepository(session_factory),
        snapshots=SqlSnapshotRepository(session_factory),
        audit=SqlAuditRepository(session_factory),
    )


def new_repositories(backend: str | None = None) -> Repositories:
    selected = (backend or settings.store_backend).lower()
    if selected == "memory":
        return in_memory_repositories()
    if selected == "sql":
        return sql_repositories()
    raise RuntimeError(f"Unsupported STORE_BACKEND: {selected}")


__all__ = [
    "AuditRepository",
    "ConfigurationRepository",
    "DeploymentRepository",
    "FeatureFlagRepository",
    "Repositories",
    "SnapshotRepository",
    "in_memory_repositories",
    "new_repositories",
    "sql_repositories",
]
