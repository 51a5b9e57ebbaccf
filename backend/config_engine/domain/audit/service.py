from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from config_engine.domain.audit.db_models import AuditEntityType
from config_engine.domain.audit.schemas import AuditLogEntry, AuditQuery
from config_engine.infra.logging import current_request_id
from config_engine.settings import settings

if TYPE_CHECKING:
    from config_engine.infra.repositories.base import AuditRepository

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = {
    "access_token",
    "api_key",
    "auth_token",
    "client_secret",
    "password",
    "private_key",
    "refresh_token",
    "secret",
    "secret_key",
    "token",
    "webhook_secret",
}
SENSITIVE_SUFFIXES = ("_token", "_secret", "_password", "_key")


def is_sensitive_key(key: str | None) -> bool:
    if not key:
        return False
    normalized = key.lower()
    if normalized in SENSITIVE_KEYS:
        return True
    return normalized.endswith(SENSITIVE_SUFFIXES)


def _ensure_timezone(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _redact(value: str | None) -> str | None:
    return REDACTED if value is not None else None


class AuditTrail:
    """Append-only record of state transitions across the engine."""

    def __init__(self, repository: AuditRepository) -> None:
        self._repository = repository

    async def log(
        self,
        entity_type: AuditEntityType,
        entity_id: str,
        action: str,
        old_value: str | None,
        new_value: str | None,
        actor: str,
        *,
        tenant_id: str | None = None,
        request_id: str | None = None,
        sensitive: bool = False,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        if not entity_id:
            raise ValueError("entity_id is required")
        entry = AuditLogEntry(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            old_value=_redact(old_value) if sensitive else old_value,
            new_value=_redact(new_value) if sensitive else new_value,
            user_id=actor or "system",
            tenant_id=tenant_id,
            request_id=request_id or current_request_id(),
            details=details,
        )
        stored = await self._repository.append(entry)
        logger.info(
            "audit_entry_recorded",
            extra={
                "extra": {
                    "entity_type": entity_type.value,
                    "entity_id": entity_id,
                    "action": action,
                    "actor": entry.user_id,
                }
            },
        )
        return stored

    async def query(self, query: AuditQuery) -> list[AuditLogEntry]:
        limit = max(1, min(query.limit, settings.audit_max_page_size))
        normalized = query.model_copy(
            update={
                "limit": limit,
                "offset": max(query.offset, 0),
                "from_ts": _ensure_timezone(query.from_ts),
                "to_ts": _ensure_timezone(query.to_ts),
            }
        )
        return await self._repository.query(normalized)

    async def for_entity(
        self, entity_type: AuditEntityType, entity_id: str, *, limit: int | None = None
    ) -> list[AuditLogEntry]:
        return await self.query(
            AuditQuery(
                entity_type=entity_type,
                entity_id=entity_id,
                limit=limit or settings.audit_default_page_size,
            )
        )
