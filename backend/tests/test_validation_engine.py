import pytest

from config_engine.domain.configurations.schemas import ConfigurationCreateRequest
from config_engine.domain.validation import (
    LONG_VALUE_WARNING_CHARS,
    MAX_KEY_LENGTH,
    ValidationRule,
    validate_batch,
    validate_entry,
    validate_value,
)


def _entry(key="db.timeout", value="30", **overrides) -> ConfigurationCreateRequest:
    payload = {"key": key, "value": value, "environment": "prod", "application": "billing"}
    payload.update(overrides)
    return ConfigurationCreateRequest(**payload)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("42", True),
        ("-3.5", True),
        ("1e3", True),
        ("abc", False),
        ("NaN", False),
        ("inf", False),
        ("-Infinity", False),
        ("1_000", False),
    ],
)
def test_number_rule(value, expected):
    result = validate_value(value, ValidationRule(rule_type="number"))
    assert result.is_valid is expected


def test_number_rule_bounds():
    rule = ValidationRule(rule_type="number", min_value="1", max_value="300")
    assert validate_value("300", rule).is_valid
    assert not validate_value("301", rule).is_valid
    assert not validate_value("0", rule).is_valid


def test_number_rule_without_maximum_rejects_infinity():
    rule = ValidationRule(rule_type="number", min_value="0")
    assert not validate_value("inf", rule).is_valid
    assert validate_value("1e300", rule).is_valid


def test_string_rule_length_bounds():
    rule = ValidationRule(rule_type="string", min_value="2", max_value="4")
    assert validate_value("ab", rule).is_valid
    assert not validate_value("a", rule).is_valid
    assert not validate_value("abcde", rule).is_valid


@pytest.mark.parametrize("value", ["true", "FALSE", " True "])
def test_boolean_rule_accepts_case_insensitive(value):
    assert validate_value(value, ValidationRule(rule_type="boolean")).is_valid


def test_boolean_rule_rejects_other_values():
    assert not validate_value("yes", ValidationRule(rule_type="boolean")).is_valid


def test_email_rule():
    rule = ValidationRule(rule_type="email")
    assert validate_value("ops@example.com", rule).is_valid
    assert not validate_value("not-an-email", rule).is_valid
    assert not validate_value("Ops <ops@example.com>", rule).is_valid


def test_url_rule():
    rule = ValidationRule(rule_type="url")
    assert validate_value("https://example.com/path", rule).is_valid
    assert not validate_value("example dot com", rule).is_valid


def test_json_rule():
    rule = ValidationRule(rule_type="json")
    assert validate_value('{"a": [1, 2]}', rule).is_valid
    assert not validate_value("{a: 1}", rule).is_valid


def test_regex_rule_searches_anywhere():
    rule = ValidationRule(rule_type="regex", regex_pattern=r"\d{3}")
    assert validate_value("abc123", rule).is_valid
    assert not validate_value("abc12", rule).is_valid


def test_regex_rule_with_invalid_pattern_fails():
    rule = ValidationRule(rule_type="regex", regex_pattern="([")
    assert not validate_value("anything", rule).is_valid


def test_allowed_values_rule_is_case_insensitive():
    rule = ValidationRule(rule_type="allowed_values", allowed_values=["red", "green"])
    assert validate_value("GREEN", rule).is_valid
    assert not validate_value("blue", rule).is_valid


def test_blank_value_fails_required_rule_and_passes_optional():
    assert not validate_value("  ", ValidationRule(rule_type="number")).is_valid
    assert validate_value("", ValidationRule(rule_type="number", is_required=False)).is_valid


def test_custom_error_message_is_used():
    rule = ValidationRule(rule_type="number", error_message="timeout must be numeric")
    result = validate_value("soon", rule)
    assert result.errors == ["timeout must be numeric"]


def test_unknown_rule_type_passes():
    result = validate_value("whatever", ValidationRule(rule_type="checksum"))
    assert result.is_valid
    assert result.errors == []


def test_validate_entry_requires_fields():
    result = validate_entry(_entry(key="", value=" ", environment="", application=""))
    assert not result.is_valid
    assert result.errors == [
        "Configuration key is required",
        "Configuration value is required",
        "Environment is required",
        "Application is required",
    ]


def test_validate_entry_rejects_long_key():
    result = validate_entry(_entry(key="k" * (MAX_KEY_LENGTH + 1)))
    assert not result.is_valid
    assert f"Configuration key cannot exceed {MAX_KEY_LENGTH} characters" in result.errors


def test_validate_entry_warns_on_long_value():
    result = validate_entry(_entry(value="x" * (LONG_VALUE_WARNING_CHARS + 1)))
    assert result.is_valid
    assert len(result.warnings) == 1


def test_validate_entry_applies_rule():
    result = validate_entry(_entry(value="fast", validation_rule=ValidationRule(rule_type="number")))
    assert not result.is_valid


def test_validate_batch_flags_every_duplicate():
    results = validate_batch(
        [
            _entry(key="a"),
            _entry(key="b"),
            _entry(key="a", value="31"),
            _entry(key="a", application="search"),
        ]
    )
    assert "Duplicate configuration key: a" in results[0].errors
    assert "Duplicate configuration key: a" in results[2].errors
    assert results[1].is_valid
    assert results[3].is_valid


@pytest.mark.parametrize(
    "rule",
    [
        ValidationRule(rule_type="number", min_value="1", max_value="300"),
        ValidationRule(rule_type="regex", regex_pattern=r"^db-[0-9]+$"),
        ValidationRule(rule_type="checksum"),
        None,
    ],
)
@pytest.mark.parametrize("value", ["30", "db-7", "fast", "x" * (LONG_VALUE_WARNING_CHARS + 1)])
def test_validate_entry_is_repeatable(rule, value):
    entry = _entry(value=value, validation_rule=rule)

    first = validate_entry(entry)
    second = validate_entry(entry)

    assert first == second
    assert first.model_dump() == second.model_dump()
