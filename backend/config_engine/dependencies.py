from fastapi import Header, Request

from config_engine.domain.audit.service import AuditTrail
from config_engine.domain.configurations.service import ConfigurationService
from config_engine.domain.deployments.service import DeploymentService
from config_engine.domain.feature_flags.service import FeatureFlagService
from config_engine.domain.snapshots.service import SnapshotService
from config_engine.services import AppServices, build_app_services, resolve_services
from config_engine.settings import settings

DEFAULT_ACTOR = "system"


def get_services(request: Request) -> AppServices:
    services = resolve_services(request.app)
    if services is None:
        services = build_app_services(settings)
        request.app.state.services = services
    return services


def get_configuration_service(request: Request) -> ConfigurationService:
    return get_services(request).configurations


def get_feature_flag_service(request: Request) -> FeatureFlagService:
    return get_services(request).feature_flags


def get_deployment_service(request: Request) -> DeploymentService:
    return get_services(request).deployments


def get_snapshot_service(request: Request) -> SnapshotService:
    return get_services(request).snapshots


def get_audit_trail(request: Request) -> AuditTrail:
    return get_services(request).audit


def get_actor(x_actor_id: str | None = Header(default=None)) -> str:
    if x_actor_id is None or not x_actor_id.strip():
        return DEFAULT_ACTOR
    return x_actor_id.strip()
