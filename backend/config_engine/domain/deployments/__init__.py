from config_engine.domain.deployments.db_models import (
    DeploymentAction,
    DeploymentItemRecord,
    DeploymentItemStatus,
    DeploymentRecord,
    DeploymentStatus,
)
from config_engine.domain.deployments.schemas import (
    Deployment,
    DeploymentCreateRequest,
    DeploymentItem,
    DeploymentItemCreateRequest,
    DeploymentItemListResponse,
    DeploymentListResponse,
    DeploymentRollbackRequest,
    DeploymentStatusResponse,
)
from config_engine.domain.deployments.service import DeploymentService

__all__ = [
    "Deployment",
    "DeploymentAction",
    "DeploymentCreateRequest",
    "DeploymentItem",
    "DeploymentItemCreateRequest",
    "DeploymentItemListResponse",
    "DeploymentItemRecord",
    "DeploymentItemStatus",
    "DeploymentListResponse",
    "DeploymentRecord",
    "DeploymentRollbackRequest",
    "DeploymentService",
    "DeploymentStatus",
    "DeploymentStatusResponse",
]
