"""Pure evaluation of feature flag rules and schedules.

Nothing here raises: every failure path produces a non-matching
``RuleEvaluationOutcome`` carrying the reason, and ``is_flag_active``
returns ``False`` whenever it cannot prove the flag is on.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from config_engine.domain.feature_flags.db_models import FeatureFlagOperator
from config_engine.domain.feature_flags.schemas import (
    FeatureFlag,
    FeatureFlagRule,
    FeatureFlagSchedule,
)

logger = logging.getLogger(__name__)

BUCKET_COUNT = 100


@dataclass(frozen=True)
class RuleEvaluationOutcome:
    matched: bool
    reason: str


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_float(value: str) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _ensure_timezone(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def rollout_bucket(attribute_value: str, salt: str) -> int:
    seed = f"{salt}:{attribute_value}"
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % BUCKET_COUNT


def _compare_numbers(actual: str, expected: str, compare: Callable[[float, float], bool], label: str) -> RuleEvaluationOutcome:
    left = _as_float(actual)
    right = _as_float(expected)
    if left is None or right is None:
        return RuleEvaluationOutcome(False, f"Cannot compare non-numeric values for {label}")
    matched = compare(left, right)
    return RuleEvaluationOutcome(matched, f"{actual} {label} {expected}: {matched}")


def _percentage(actual: str, expected: str, salt: str) -> RuleEvaluationOutcome:
    try:
        threshold = int(expected.strip())
    except ValueError:
        return RuleEvaluationOutcome(False, f"Invalid percentage threshold '{expected}'")
    if not actual:
        return RuleEvaluationOutcome(False, "Empty attribute value for percentage rollout")
    bucket = rollout_bucket(actual, salt)
    matched = bucket < threshold
    return RuleEvaluationOutcome(matched, f"Bucket {bucket} < {threshold}: {matched}")


def evaluate_rule(
    rule: FeatureFlagRule, context: Mapping[str, Any], *, salt: str = ""
) -> RuleEvaluationOutcome:
    if rule.attribute not in context:
        logger.debug(
            "feature_flag_rule_attribute_missing",
            extra={"extra": {"rule_id": rule.id, "attribute": rule.attribute}},
        )
        return RuleEvaluationOutcome(False, f"Attribute '{rule.attribute}' not found in context")

    raw_value = context[rule.attribute]
    if raw_value is None:
        return RuleEvaluationOutcome(False, f"Attribute '{rule.attribute}' is null")

    actual = _as_text(raw_value)
    expected = rule.value
    operator = (rule.operator or "").strip().lower()
    try:
        if operator == FeatureFlagOperator.EQUALS.value:
            matched = actual == expected
            return RuleEvaluationOutcome(matched, f"{actual} equals {expected}: {matched}")
        if operator == FeatureFlagOperator.NOT_EQUALS.value:
            matched = actual != expected
            return RuleEvaluationOutcome(matched, f"{actual} not_equals {expected}: {matched}")
        if operator == FeatureFlagOperator.CONTAINS.value:
            matched = expected in actual
            return RuleEvaluationOutcome(matched, f"{actual} contains {expected}: {matched}")
        if operator == FeatureFlagOperator.STARTS_WITH.value:
            matched = actual.startswith(expected)
            return RuleEvaluationOutcome(matched, f"{actual} starts_with {expected}: {matched}")
        if operator == FeatureFlagOperator.ENDS_WITH.value:
            matched = actual.endswith(expected)
            return RuleEvaluationOutcome(matched, f"{actual} ends_with {expected}: {matched}")
        if operator == FeatureFlagOperator.GREATER_THAN.value:
            return _compare_numbers(actual, expected, lambda left, right: left > right, "greater_than")
        if operator == FeatureFlagOperator.LESS_THAN.value:
            return _compare_numbers(actual, expected, lambda left, right: left < right, "less_than")
        if operator == FeatureFlagOperator.PERCENTAGE.value:
            return _percentage(actual, expected, salt)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "feature_flag_rule_error",
            extra={"extra": {"rule_id": rule.id, "operator": rule.operator, "error": type(exc).__name__}},
        )
        return RuleEvaluationOutcome(False, f"Error evaluating rule: {type(exc).__name__}")
    return RuleEvaluationOutcome(False, f"Unknown operator '{rule.operator}'")


def active_rules(flag: FeatureFlag) -> list[FeatureFlagRule]:
    return sorted((rule for rule in flag.rules if rule.is_active), key=lambda rule: rule.priority)


def is_schedule_active(schedule: FeatureFlagSchedule, now: datetime) -> bool:
    if not schedule.is_active:
        return False
    current = _ensure_timezone(now)
    if schedule.start_date is not None and current < _ensure_timezone(schedule.start_date):
        return False
    if schedule.end_date is not None and current > _ensure_timezone(schedule.end_date):
        return False
    return True


def is_flag_active(
    flag: FeatureFlag,
    context: Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
    salt: str = "",
) -> bool:
    if not flag.is_enabled:
        return False
    if flag.schedule is not None and not is_schedule_active(
        flag.schedule, now or datetime.now(timezone.utc)
    ):
        return False

    rules = active_rules(flag)
    if not rules or context is None:
        return True
    # Every active rule votes; one match is enough.
    outcomes = [evaluate_rule(rule, context, salt=salt) for rule in rules]
    return any(outcome.matched for outcome in outcomes)
