from fastapi import APIRouter, Depends, Query, status

from config_engine.dependencies import get_actor, get_deployment_service
from config_engine.domain.deployments import schemas as deployment_schemas
from config_engine.domain.deployments.service import DeploymentService

router = APIRouter(tags=["deployments"])


@router.post(
    "/v1/deployments",
    response_model=deployment_schemas.Deployment,
    status_code=status.HTTP_201_CREATED,
)
async def create_deployment(
    payload: deployment_schemas.DeploymentCreateRequest,
    actor: str = Depends(get_actor),
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.Deployment:
    return await service.create(payload, actor=actor)


@router.get(
    "/v1/deployments",
    response_model=deployment_schemas.DeploymentListResponse,
)
async def list_deployments(
    environment: str | None = Query(default=None),
    application: str | None = Query(default=None),
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.DeploymentListResponse:
    deployments = await service.list(environment, application)
    return deployment_schemas.DeploymentListResponse(items=deployments)


@router.get(
    "/v1/deployments/{deployment_id}",
    response_model=deployment_schemas.Deployment,
)
async def get_deployment(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.Deployment:
    return await service.get(deployment_id)


@router.post(
    "/v1/deployments/{deployment_id}/execute",
    response_model=deployment_schemas.Deployment,
)
async def execute_deployment(
    deployment_id: str,
    actor: str = Depends(get_actor),
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.Deployment:
    # Item failures are reported on the returned items, not as an error status.
    return await service.execute(deployment_id, actor=actor)


@router.post(
    "/v1/deployments/{deployment_id}/rollback",
    response_model=deployment_schemas.Deployment,
)
async def rollback_deployment(
    deployment_id: str,
    payload: deployment_schemas.DeploymentRollbackRequest,
    actor: str = Depends(get_actor),
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.Deployment:
    return await service.rollback(deployment_id, payload.reason, actor=actor)


@router.post(
    "/v1/deployments/{deployment_id}/cancel",
    response_model=deployment_schemas.Deployment,
)
async def cancel_deployment(
    deployment_id: str,
    actor: str = Depends(get_actor),
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.Deployment:
    return await service.cancel(deployment_id, actor=actor)


@router.get(
    "/v1/deployments/{deployment_id}/status",
    response_model=deployment_schemas.DeploymentStatusResponse,
)
async def deployment_status(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.DeploymentStatusResponse:
    current = await service.status(deployment_id)
    return deployment_schemas.DeploymentStatusResponse(id=deployment_id, status=current)


@router.get(
    "/v1/deployments/{deployment_id}/items",
    response_model=deployment_schemas.DeploymentItemListResponse,
)
async def deployment_items(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
) -> deployment_schemas.DeploymentItemListResponse:
    items = await service.items(deployment_id)
    return deployment_schemas.DeploymentItemListResponse(items=items)
