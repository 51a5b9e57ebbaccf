from config_engine.domain.feature_flags.db_models import FeatureFlagOperator, FeatureFlagRecord
from config_engine.domain.feature_flags.evaluator import (
    RuleEvaluationOutcome,
    evaluate_rule,
    is_flag_active,
    is_schedule_active,
    rollout_bucket,
)
from config_engine.domain.feature_flags.schemas import (
    FeatureFlag,
    FeatureFlagCreateRequest,
    FeatureFlagEnabledResponse,
    FeatureFlagEvaluationRequest,
    FeatureFlagListResponse,
    FeatureFlagRule,
    FeatureFlagSchedule,
    FeatureFlagUpdateRequest,
    RuleEvaluationResult,
)
from config_engine.domain.feature_flags.service import FeatureFlagService

__all__ = [
    "FeatureFlag",
    "FeatureFlagCreateRequest",
    "FeatureFlagEnabledResponse",
    "FeatureFlagEvaluationRequest",
    "FeatureFlagListResponse",
    "FeatureFlagOperator",
    "FeatureFlagRecord",
    "FeatureFlagRule",
    "FeatureFlagSchedule",
    "FeatureFlagService",
    "FeatureFlagUpdateRequest",
    "RuleEvaluationOutcome",
    "RuleEvaluationResult",
    "evaluate_rule",
    "is_flag_active",
    "is_schedule_active",
    "rollout_bucket",
]
