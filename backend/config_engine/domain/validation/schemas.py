from __future__ import annotations

from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field


class ValidationRuleType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMAIL = "email"
    URL = "url"
    JSON = "json"
    REGEX = "regex"
    ALLOWED_VALUES = "allowed_values"


class ValidationRule(BaseModel):
    # Kept as a plain string so rule types added later still round-trip.
    rule_type: str
    is_required: bool = True
    min_value: str | None = None
    max_value: str | None = None
    allowed_values: list[str] = Field(default_factory=list)
    regex_pattern: str | None = None
    error_message: str | None = None


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


class ValidatableEntry(Protocol):
    key: str
    value: str
    environment: str
    application: str
    tenant_id: str | None
    validation_rule: ValidationRule | None
