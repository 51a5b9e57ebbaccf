from __future__ import annotations

import json
import logging
import math
import re
from collections import defaultdict
from typing import Callable, Sequence

from pydantic import AnyUrl, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from config_engine.domain.validation.schemas import (
    ValidatableEntry,
    ValidationResult,
    ValidationRule,
    ValidationRuleType,
)

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 200
LONG_VALUE_WARNING_CHARS = 10_000

_EMAIL_ADAPTER = TypeAdapter(EmailStr)
_URL_ADAPTER = TypeAdapter(AnyUrl)


def _parse_int(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_float(raw: str | None) -> float | None:
    # float() also accepts "inf", "nan" and "1_000", none of which is a configuration number.
    if raw is None or not raw.strip() or "_" in raw:
        return None
    try:
        parsed = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def _check_string(value: str, rule: ValidationRule) -> bool:
    min_length = _parse_int(rule.min_value)
    max_length = _parse_int(rule.max_value)
    if min_length is not None and len(value) < min_length:
        return False
    if max_length is not None and len(value) > max_length:
        return False
    return True


def _check_number(value: str, rule: ValidationRule) -> bool:
    number = _parse_float(value)
    if number is None:
        return False
    minimum = _parse_float(rule.min_value)
    maximum = _parse_float(rule.max_value)
    if minimum is not None and number < minimum:
        return False
    if maximum is not None and number > maximum:
        return False
    return True


def _check_boolean(value: str, rule: ValidationRule) -> bool:
    return value.strip().lower() in {"true", "false"}


def _check_email(value: str, rule: ValidationRule) -> bool:
    if value != value.strip() or "<" in value:
        return False
    try:
        normalized = _EMAIL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return normalized.lower() == value.lower()


def _check_url(value: str, rule: ValidationRule) -> bool:
    if value != value.strip():
        return False
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def _check_json(value: str, rule: ValidationRule) -> bool:
    try:
        json.loads(value)
    except ValueError:
        return False
    return True


def _check_regex(value: str, rule: ValidationRule) -> bool:
    if not rule.regex_pattern:
        return True
    try:
        return re.search(rule.regex_pattern, value) is not None
    except re.error:
        logger.info(
            "validation_regex_invalid",
            extra={"extra": {"pattern": rule.regex_pattern}},
        )
        return False


def _check_allowed_values(value: str, rule: ValidationRule) -> bool:
    candidate = value.casefold()
    return any(allowed.casefold() == candidate for allowed in rule.allowed_values)


_RULE_CHECKS: dict[str, Callable[[str, ValidationRule], bool]] = {
    ValidationRuleType.STRING.value: _check_string,
    ValidationRuleType.NUMBER.value: _check_number,
    ValidationRuleType.BOOLEAN.value: _check_boolean,
    ValidationRuleType.EMAIL.value: _check_email,
    ValidationRuleType.URL.value: _check_url,
    ValidationRuleType.JSON.value: _check_json,
    ValidationRuleType.REGEX.value: _check_regex,
    ValidationRuleType.ALLOWED_VALUES.value: _check_allowed_values,
}


def _default_message(rule: ValidationRule) -> str:
    return f"Value does not satisfy the '{rule.rule_type}' validation rule"


def validate_value(value: str | None, rule: ValidationRule) -> ValidationResult:
    """Check a single value against one rule.

    Blank values pass optional rules and fail required ones. Unknown rule
    types pass so that rules introduced by newer writers stay readable.
    """
    result = ValidationResult()
    rule_type = (rule.rule_type or "").strip().lower()
    if value is None or not value.strip():
        if rule.is_required:
            result.add_error(rule.error_message or "Value is required by the validation rule")
        return result

    check = _RULE_CHECKS.get(rule_type)
    if check is None:
        logger.warning(
            "validation_rule_unknown_type",
            extra={"extra": {"rule_type": rule.rule_type}},
        )
        return result

    if not check(value, rule):
        result.add_error(rule.error_message or _default_message(rule))
    return result


def validate_entry(entry: ValidatableEntry) -> ValidationResult:
    result = ValidationResult()
    key = entry.key or ""
    value = entry.value

    if not key.strip():
        result.add_error("Configuration key is required")
    if value is None or not value.strip():
        result.add_error("Configuration value is required")
    if not (entry.environment or "").strip():
        result.add_error("Environment is required")
    if not (entry.application or "").strip():
        result.add_error("Application is required")

    if entry.validation_rule is not None:
        rule_result = validate_value(value, entry.validation_rule)
        for error in rule_result.errors:
            result.add_error(error)

    if len(key) > MAX_KEY_LENGTH:
        result.add_error(f"Configuration key cannot exceed {MAX_KEY_LENGTH} characters")
    if value is not None and len(value) > LONG_VALUE_WARNING_CHARS:
        result.add_warning(
            f"Configuration value is longer than {LONG_VALUE_WARNING_CHARS} characters"
        )
    return result


def validate_batch(entries: Sequence[ValidatableEntry]) -> list[ValidationResult]:
    results = [validate_entry(entry) for entry in entries]

    positions: dict[tuple[str, str, str, str | None], list[int]] = defaultdict(list)
    for index, entry in enumerate(entries):
        positions[(entry.key, entry.environment, entry.application, entry.tenant_id)].append(index)

    for (key, _env, _app, _tenant), indexes in positions.items():
        if len(indexes) < 2:
            continue
        for index in indexes:
            results[index].add_error(f"Duplicate configuration key: {key}")
    return results
