from config_engine.domain.snapshots.db_models import ConfigurationSnapshotRecord
from config_engine.domain.snapshots.schemas import (
    ConfigurationSnapshot,
    RestoreResult,
    SnapshotCreateRequest,
    SnapshotListResponse,
    SnapshotSummary,
)
from config_engine.domain.snapshots.service import SnapshotService, summarize

__all__ = [
    "ConfigurationSnapshot",
    "ConfigurationSnapshotRecord",
    "RestoreResult",
    "SnapshotCreateRequest",
    "SnapshotListResponse",
    "SnapshotService",
    "SnapshotSummary",
    "summarize",
]
