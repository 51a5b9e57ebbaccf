from config_engine.domain.configurations.db_models import ConfigurationEntryRecord
from config_engine.domain.configurations.schemas import (
    ConfigurationBatchValidateRequest,
    ConfigurationBatchValidateResponse,
    ConfigurationCreateRequest,
    ConfigurationEntry,
    ConfigurationListResponse,
    ConfigurationUpdateRequest,
    ConfigurationValidateRequest,
    ConfigurationValidationItem,
)
from config_engine.domain.configurations.service import ConfigurationService

__all__ = [
    "ConfigurationBatchValidateRequest",
    "ConfigurationBatchValidateResponse",
    "ConfigurationCreateRequest",
    "ConfigurationEntry",
    "ConfigurationEntryRecord",
    "ConfigurationListResponse",
    "ConfigurationService",
    "ConfigurationUpdateRequest",
    "ConfigurationValidateRequest",
    "ConfigurationValidationItem",
]
