from datetime import datetime, timedelta, timezone

import pytest

from config_engine.domain.feature_flags import (
    FeatureFlag,
    FeatureFlagRule,
    FeatureFlagSchedule,
    evaluate_rule,
    is_flag_active,
    is_schedule_active,
    rollout_bucket,
)

SALT = "test-salt"
NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _flag(**overrides) -> FeatureFlag:
    payload = {
        "name": "beta_ui",
        "environment": "prod",
        "application": "web",
        "is_enabled": True,
        "created_by": "tester",
    }
    payload.update(overrides)
    return FeatureFlag(**payload)


def _rule(attribute="userId", operator="equals", value="u-1", **overrides) -> FeatureFlagRule:
    return FeatureFlagRule(attribute=attribute, operator=operator, value=value, **overrides)


@pytest.mark.parametrize(
    ("operator", "expected_value", "actual", "matched"),
    [
        ("equals", "gold", "gold", True),
        ("equals", "gold", "Gold", False),
        ("not_equals", "gold", "silver", True),
        ("contains", "@example", "a@example.com", True),
        ("starts_with", "eu-", "eu-west-1", True),
        ("ends_with", ".io", "acme.com", False),
        ("greater_than", "18", "21", True),
        ("greater_than", "18", "18", False),
        ("less_than", "10.5", "3", True),
        ("EQUALS", "gold", "gold", True),
    ],
)
def test_operators(operator, expected_value, actual, matched):
    outcome = evaluate_rule(_rule("tier", operator, expected_value), {"tier": actual}, salt=SALT)
    assert outcome.matched is matched


def test_numeric_operator_with_non_numeric_operand_does_not_match():
    outcome = evaluate_rule(_rule("age", "greater_than", "18"), {"age": "old"}, salt=SALT)
    assert outcome.matched is False
    assert "non-numeric" in outcome.reason


def test_missing_attribute_does_not_match():
    outcome = evaluate_rule(_rule("country", "equals", "CA"), {"userId": "u-1"}, salt=SALT)
    assert outcome.matched is False
    assert outcome.reason == "Attribute 'country' not found in context"


def test_unknown_operator_does_not_match():
    outcome = evaluate_rule(_rule("tier", "matches_regex", ".*"), {"tier": "gold"}, salt=SALT)
    assert outcome.matched is False


def test_boolean_context_values_compare_as_lowercase_text():
    outcome = evaluate_rule(_rule("beta", "equals", "true"), {"beta": True}, salt=SALT)
    assert outcome.matched is True


def test_invalid_percentage_threshold_does_not_match():
    outcome = evaluate_rule(_rule(operator="percentage", value="half"), {"userId": "u-1"}, salt=SALT)
    assert outcome.matched is False


def test_percentage_bucket_is_stable_across_repeated_calls():
    flag = _flag(rules=[_rule(operator="percentage", value="25")])
    context = {"userId": "u-42"}

    results = {is_flag_active(flag, context, now=NOW, salt=SALT) for _ in range(1000)}

    assert len(results) == 1
    assert rollout_bucket("u-42", SALT) == rollout_bucket("u-42", SALT)


def test_percentage_threshold_is_monotonic():
    users = [f"user-{index}" for index in range(2000)]
    previous_matches: set[str] = set()
    for threshold in range(0, 101, 10):
        rule = _rule(operator="percentage", value=str(threshold))
        matches = {user for user in users if evaluate_rule(rule, {"userId": user}, salt=SALT).matched}
        assert previous_matches <= matches
        previous_matches = matches
    assert previous_matches == set(users)


def test_percentage_zero_and_hundred():
    assert not evaluate_rule(_rule(operator="percentage", value="0"), {"userId": "u-1"}, salt=SALT).matched
    assert evaluate_rule(_rule(operator="percentage", value="100"), {"userId": "u-1"}, salt=SALT).matched


def test_buckets_depend_on_salt():
    users = [f"user-{index}" for index in range(200)]
    first = [rollout_bucket(user, "salt-a") for user in users]
    second = [rollout_bucket(user, "salt-b") for user in users]
    assert first != second
    assert all(0 <= bucket < 100 for bucket in first)


def test_disabled_flag_is_off_regardless_of_context():
    flag = _flag(is_enabled=False, rules=[_rule()])
    assert is_flag_active(flag, {"userId": "u-1"}, now=NOW, salt=SALT) is False
    assert is_flag_active(flag, None, now=NOW, salt=SALT) is False


def test_enabled_flag_without_rules_or_context_is_on():
    assert is_flag_active(_flag(), {"userId": "u-1"}, now=NOW, salt=SALT) is True
    assert is_flag_active(_flag(rules=[_rule()]), None, now=NOW, salt=SALT) is True


def test_any_matching_rule_enables_flag():
    flag = _flag(
        rules=[
            _rule("country", "equals", "CA", priority=1),
            _rule("tier", "equals", "gold", priority=2),
        ]
    )
    assert is_flag_active(flag, {"country": "US", "tier": "gold"}, now=NOW, salt=SALT) is True
    assert is_flag_active(flag, {"country": "US", "tier": "silver"}, now=NOW, salt=SALT) is False


def test_inactive_rules_are_ignored():
    flag = _flag(rules=[_rule("tier", "equals", "gold", is_active=False)])
    # No active rules left, so the enabled bit decides.
    assert is_flag_active(flag, {"tier": "silver"}, now=NOW, salt=SALT) is True


def test_schedule_window():
    schedule = FeatureFlagSchedule(
        start_date=NOW - timedelta(days=1), end_date=NOW + timedelta(days=1)
    )
    assert is_schedule_active(schedule, NOW)
    assert not is_schedule_active(schedule, NOW - timedelta(days=2))
    assert not is_schedule_active(schedule, NOW + timedelta(days=2))
    assert is_schedule_active(schedule, NOW + timedelta(days=1))


def test_schedule_without_dates_follows_is_active():
    assert is_schedule_active(FeatureFlagSchedule(), NOW)
    assert not is_schedule_active(FeatureFlagSchedule(is_active=False), NOW)


def test_naive_schedule_dates_are_treated_as_utc():
    schedule = FeatureFlagSchedule(start_date=datetime(2026, 5, 1, 13, 0))
    assert not is_schedule_active(schedule, NOW)


def test_flag_outside_schedule_is_off():
    flag = _flag(schedule=FeatureFlagSchedule(start_date=NOW + timedelta(hours=1)))
    assert is_flag_active(flag, None, now=NOW, salt=SALT) is False
