from config_engine.domain.audit.db_models import AuditAction, AuditEntityType, AuditLogRecord
from config_engine.domain.audit.schemas import AuditLogEntry, AuditLogListResponse, AuditQuery
from config_engine.domain.audit.service import REDACTED, AuditTrail, is_sensitive_key

__all__ = [
    "REDACTED",
    "AuditAction",
    "AuditEntityType",
    "AuditLogEntry",
    "AuditLogListResponse",
    "AuditLogRecord",
    "AuditQuery",
    "AuditTrail",
    "is_sensitive_key",
]
