from fastapi import APIRouter, Depends, Query, status

from config_engine.dependencies import get_actor, get_configuration_service, get_snapshot_service
from config_engine.domain.configurations import schemas as configuration_schemas
from config_engine.domain.configurations.service import ConfigurationService
from config_engine.domain.snapshots import schemas as snapshot_schemas
from config_engine.domain.snapshots.service import SnapshotService, summarize
from config_engine.domain.validation.schemas import ValidationResult

router = APIRouter(tags=["configurations"])


@router.get(
    "/v1/configurations",
    response_model=configuration_schemas.ConfigurationListResponse,
)
async def list_configurations(
    environment: str = Query(..., min_length=1),
    application: str = Query(..., min_length=1),
    tenant_id: str | None = Query(default=None),
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationListResponse:
    entries = await service.list(environment, application, tenant_id)
    return configuration_schemas.ConfigurationListResponse(items=entries)


@router.post(
    "/v1/configurations",
    response_model=configuration_schemas.ConfigurationEntry,
    status_code=status.HTTP_201_CREATED,
)
async def create_configuration(
    payload: configuration_schemas.ConfigurationCreateRequest,
    actor: str = Depends(get_actor),
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationEntry:
    return await service.create(payload, actor=actor)


@router.post(
    "/v1/configurations/validate",
    response_model=configuration_schemas.ConfigurationBatchValidateResponse,
)
async def validate_configuration_batch(
    payload: configuration_schemas.ConfigurationBatchValidateRequest,
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationBatchValidateResponse:
    return service.validate_batch(payload.items)


@router.get(
    "/v1/configurations/by-key/{key}",
    response_model=configuration_schemas.ConfigurationEntry,
)
async def get_configuration_by_key(
    key: str,
    environment: str = Query(..., min_length=1),
    application: str = Query(..., min_length=1),
    tenant_id: str | None = Query(default=None),
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationEntry:
    return await service.get(key, environment, application, tenant_id)


@router.post(
    "/v1/configurations/snapshots",
    response_model=snapshot_schemas.ConfigurationSnapshot,
    status_code=status.HTTP_201_CREATED,
)
async def create_snapshot(
    payload: snapshot_schemas.SnapshotCreateRequest,
    actor: str = Depends(get_actor),
    service: SnapshotService = Depends(get_snapshot_service),
) -> snapshot_schemas.ConfigurationSnapshot:
    return await service.create_snapshot(
        payload.environment,
        payload.application,
        name=payload.name,
        actor=actor,
        tenant_id=payload.tenant_id,
        description=payload.description,
        tags=payload.tags,
    )


@router.get(
    "/v1/configurations/snapshots",
    response_model=snapshot_schemas.SnapshotListResponse,
)
async def list_snapshots(
    environment: str = Query(..., min_length=1),
    application: str = Query(..., min_length=1),
    tenant_id: str | None = Query(default=None),
    service: SnapshotService = Depends(get_snapshot_service),
) -> snapshot_schemas.SnapshotListResponse:
    snapshots = await service.list(environment, application, tenant_id)
    return snapshot_schemas.SnapshotListResponse(items=[summarize(snapshot) for snapshot in snapshots])


@router.get(
    "/v1/configurations/snapshots/{snapshot_id}",
    response_model=snapshot_schemas.ConfigurationSnapshot,
)
async def get_snapshot(
    snapshot_id: str,
    service: SnapshotService = Depends(get_snapshot_service),
) -> snapshot_schemas.ConfigurationSnapshot:
    return await service.get(snapshot_id)


@router.post(
    "/v1/configurations/snapshots/{snapshot_id}/restore",
    response_model=snapshot_schemas.RestoreResult,
)
async def restore_snapshot(
    snapshot_id: str,
    actor: str = Depends(get_actor),
    service: SnapshotService = Depends(get_snapshot_service),
) -> snapshot_schemas.RestoreResult:
    return await service.restore(snapshot_id, actor=actor)


@router.get(
    "/v1/configurations/{entry_id}",
    response_model=configuration_schemas.ConfigurationEntry,
)
async def get_configuration(
    entry_id: str,
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationEntry:
    return await service.get_by_id(entry_id)


@router.patch(
    "/v1/configurations/{entry_id}",
    response_model=configuration_schemas.ConfigurationEntry,
)
async def update_configuration(
    entry_id: str,
    payload: configuration_schemas.ConfigurationUpdateRequest,
    actor: str = Depends(get_actor),
    service: ConfigurationService = Depends(get_configuration_service),
) -> configuration_schemas.ConfigurationEntry:
    return await service.update(entry_id, payload, actor=actor)


@router.delete(
    "/v1/configurations/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_configuration(
    entry_id: str,
    actor: str = Depends(get_actor),
    service: ConfigurationService = Depends(get_configuration_service),
) -> None:
    await service.delete(entry_id, actor=actor)


@router.post(
    "/v1/configurations/{entry_id}/validate",
    response_model=ValidationResult,
)
async def validate_configuration(
    entry_id: str,
    payload: configuration_schemas.ConfigurationValidateRequest,
    service: ConfigurationService = Depends(get_configuration_service),
) -> ValidationResult:
    return await service.validate(entry_id, payload.value)
