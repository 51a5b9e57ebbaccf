from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from config_engine.dependencies import get_actor, get_feature_flag_service
from config_engine.domain.feature_flags import schemas as feature_flag_schemas
from config_engine.domain.feature_flags.service import FeatureFlagService

router = APIRouter(tags=["feature-flags"])


@router.get(
    "/v1/feature-flags",
    response_model=feature_flag_schemas.FeatureFlagListResponse,
)
async def list_feature_flags(
    environment: str = Query(..., min_length=1),
    application: str = Query(..., min_length=1),
    tenant_id: str | None = Query(default=None),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlagListResponse:
    flags = await service.list(environment, application, tenant_id)
    return feature_flag_schemas.FeatureFlagListResponse(items=flags)


@router.post(
    "/v1/feature-flags",
    response_model=feature_flag_schemas.FeatureFlag,
    status_code=status.HTTP_201_CREATED,
)
async def create_feature_flag(
    payload: feature_flag_schemas.FeatureFlagCreateRequest,
    actor: str = Depends(get_actor),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlag:
    return await service.create(payload, actor=actor)


@router.get(
    "/v1/feature-flags/{name}/enabled",
    response_model=feature_flag_schemas.FeatureFlagEnabledResponse,
)
async def feature_flag_enabled(
    name: str,
    environment: str = Query(..., min_length=1),
    application: str = Query(..., min_length=1),
    tenant_id: str | None = Query(default=None),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlagEnabledResponse:
    enabled = await service.is_enabled(name, environment, application, None, tenant_id)
    return feature_flag_schemas.FeatureFlagEnabledResponse(
        name=name,
        environment=environment,
        application=application,
        tenant_id=tenant_id,
        enabled=enabled,
    )


@router.post(
    "/v1/feature-flags/{name}/enabled",
    response_model=feature_flag_schemas.FeatureFlagEnabledResponse,
)
async def feature_flag_enabled_for_context(
    name: str,
    payload: feature_flag_schemas.FeatureFlagEvaluationRequest,
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlagEnabledResponse:
    enabled = await service.is_enabled(
        name,
        payload.environment,
        payload.application,
        payload.context,
        payload.tenant_id,
    )
    return feature_flag_schemas.FeatureFlagEnabledResponse(
        name=name,
        environment=payload.environment,
        application=payload.application,
        tenant_id=payload.tenant_id,
        enabled=enabled,
    )


@router.get(
    "/v1/feature-flags/{flag_id}",
    response_model=feature_flag_schemas.FeatureFlag,
)
async def get_feature_flag(
    flag_id: str,
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlag:
    return await service.get_by_id(flag_id)


@router.patch(
    "/v1/feature-flags/{flag_id}",
    response_model=feature_flag_schemas.FeatureFlag,
)
async def update_feature_flag(
    flag_id: str,
    payload: feature_flag_schemas.FeatureFlagUpdateRequest,
    actor: str = Depends(get_actor),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlag:
    return await service.update(flag_id, payload, actor=actor)


@router.delete(
    "/v1/feature-flags/{flag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_feature_flag(
    flag_id: str,
    actor: str = Depends(get_actor),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> None:
    await service.delete(flag_id, actor=actor)


@router.post(
    "/v1/feature-flags/{flag_id}/toggle",
    response_model=feature_flag_schemas.FeatureFlag,
)
async def toggle_feature_flag(
    flag_id: str,
    actor: str = Depends(get_actor),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> feature_flag_schemas.FeatureFlag:
    return await service.toggle(flag_id, actor=actor)


@router.post(
    "/v1/feature-flags/{flag_id}/evaluate",
    response_model=list[feature_flag_schemas.RuleEvaluationResult],
)
async def evaluate_feature_flag_rules(
    flag_id: str,
    context: dict[str, Any] = Body(default={}),
    service: FeatureFlagService = Depends(get_feature_flag_service),
) -> list[feature_flag_schemas.RuleEvaluationResult]:
    return await service.evaluate_rules(flag_id, context)
