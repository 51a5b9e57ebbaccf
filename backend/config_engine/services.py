from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from config_engine.domain.audit.service import AuditTrail
from config_engine.domain.configurations.service import ConfigurationService
from config_engine.domain.deployments.service import DeploymentService
from config_engine.domain.feature_flags.service import FeatureFlagService
from config_engine.domain.snapshots.service import SnapshotService
from config_engine.infra.repositories import Repositories, new_repositories


@dataclass
class AppServices:
    """Typed container for runtime services stored on `app.state.services`."""

    repositories: Repositories
    audit: AuditTrail
    configurations: ConfigurationService
    feature_flags: FeatureFlagService
    deployments: DeploymentService
    snapshots: SnapshotService


def build_app_services(app_settings, *, repositories: Repositories | None = None) -> AppServices:
    repos = repositories or new_repositories(app_settings.store_backend)
    audit = AuditTrail(repos.audit)
    configurations = ConfigurationService(repos.configurations, audit)
    feature_flags = FeatureFlagService(
        repos.feature_flags, audit, salt=app_settings.feature_flag_rollout_salt
    )
    return AppServices(
        repositories=repos,
        audit=audit,
        configurations=configurations,
        feature_flags=feature_flags,
        deployments=DeploymentService(repos.deployments, configurations, audit),
        snapshots=SnapshotService(repos.snapshots, configurations, feature_flags, audit),
    )


def resolve_services(container_like: Any) -> AppServices | None:
    if isinstance(container_like, AppServices):
        return container_like
    if container_like is None:
        return None
    state = getattr(container_like, "state", container_like)
    return getattr(state, "services", None)
