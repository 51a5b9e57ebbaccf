from datetime import datetime

from fastapi import APIRouter, Depends, Query

from config_engine.dependencies import get_audit_trail
from config_engine.domain.audit import schemas as audit_schemas
from config_engine.domain.audit.db_models import AuditEntityType
from config_engine.domain.audit.service import AuditTrail
from config_engine.settings import settings

router = APIRouter(tags=["audit"])


def _page_limit(limit: int | None) -> int:
    return min(limit or settings.audit_default_page_size, settings.audit_max_page_size)


@router.get("/v1/audit", response_model=audit_schemas.AuditLogListResponse)
async def list_audit_logs(
    entity_id: str | None = Query(default=None),
    entity_type: AuditEntityType | None = Query(default=None),
    action: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    tenant_id: str | None = Query(default=None),
    from_ts: datetime | None = Query(default=None),
    to_ts: datetime | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    audit: AuditTrail = Depends(get_audit_trail),
) -> audit_schemas.AuditLogListResponse:
    page_limit = _page_limit(limit)
    items = await audit.query(
        audit_schemas.AuditQuery(
            entity_id=entity_id,
            entity_type=entity_type,
            action=action,
            user_id=user_id,
            tenant_id=tenant_id,
            from_ts=from_ts,
            to_ts=to_ts,
            limit=page_limit,
            offset=offset,
        )
    )
    return audit_schemas.AuditLogListResponse(items=items, limit=page_limit, offset=offset)


async def _entity_history(
    audit: AuditTrail, entity_type: AuditEntityType, entity_id: str, limit: int | None, offset: int
) -> audit_schemas.AuditLogListResponse:
    page_limit = _page_limit(limit)
    items = await audit.query(
        audit_schemas.AuditQuery(
            entity_type=entity_type, entity_id=entity_id, limit=page_limit, offset=offset
        )
    )
    return audit_schemas.AuditLogListResponse(items=items, limit=page_limit, offset=offset)


@router.get("/v1/audit/configurations/{entry_id}", response_model=audit_schemas.AuditLogListResponse)
async def configuration_history(
    entry_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    audit: AuditTrail = Depends(get_audit_trail),
) -> audit_schemas.AuditLogListResponse:
    return await _entity_history(audit, AuditEntityType.CONFIGURATION, entry_id, limit, offset)


@router.get("/v1/audit/feature-flags/{flag_id}", response_model=audit_schemas.AuditLogListResponse)
async def feature_flag_history(
    flag_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    audit: AuditTrail = Depends(get_audit_trail),
) -> audit_schemas.AuditLogListResponse:
    return await _entity_history(audit, AuditEntityType.FEATURE_FLAG, flag_id, limit, offset)


@router.get("/v1/audit/deployments/{deployment_id}", response_model=audit_schemas.AuditLogListResponse)
async def deployment_history(
    deployment_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    audit: AuditTrail = Depends(get_audit_trail),
) -> audit_schemas.AuditLogListResponse:
    return await _entity_history(audit, AuditEntityType.DEPLOYMENT, deployment_id, limit, offset)
