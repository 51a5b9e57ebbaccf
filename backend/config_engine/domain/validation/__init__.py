from config_engine.domain.validation.schemas import (
    ValidatableEntry,
    ValidationResult,
    ValidationRule,
    ValidationRuleType,
)
from config_engine.domain.validation.service import (
    LONG_VALUE_WARNING_CHARS,
    MAX_KEY_LENGTH,
    validate_batch,
    validate_entry,
    validate_value,
)

__all__ = [
    "LONG_VALUE_WARNING_CHARS",
    "MAX_KEY_LENGTH",
    "ValidatableEntry",
    "ValidationResult",
    "ValidationRule",
    "ValidationRuleType",
    "validate_batch",
    "validate_entry",
    "validate_value",
]
