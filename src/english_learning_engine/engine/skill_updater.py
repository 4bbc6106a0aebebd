"""Additive skill-level adjustment from a single performance observation."""

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from english_learning_engine.exceptions import InvalidObservationError
from english_learning_engine.models.learner import (
    DEFAULT_HISTORY_LIMIT,
    LearnerProfile,
    LearningSpeed,
    PerformanceMetrics,
    SkillTag,
)

logger = structlog.get_logger()

SPEED_MULTIPLIERS: dict[LearningSpeed, float] = {
    LearningSpeed.SLOW: 0.8,
    LearningSpeed.NORMAL: 1.0,
    LearningSpeed.FAST: 1.2,
}


@dataclass(frozen=True)
class AdjustmentFactors:
    """Independent contributions to a skill-level adjustment."""

    accuracy_bonus: float
    time_bonus: float
    mistake_bonus: float
    hint_penalty: float
    attempt_penalty: float

    @property
    def raw_adjustment(self) -> float:
        return (
            self.accuracy_bonus
            + self.time_bonus
            + self.mistake_bonus
            + self.hint_penalty
            + self.attempt_penalty
        )


def accuracy_bonus(accuracy_rate: float) -> float:
    if accuracy_rate >= 90:
        return 3.0
    elif accuracy_rate >= 75:
        return 1.5
    elif accuracy_rate < 60:
        return -1.0
    return 0.0


def time_bonus(completion_time: float, expected_time: float) -> float:
    time_ratio = expected_time / max(1.0, completion_time)
    if time_ratio > 1.2:
        return 2.0
    elif time_ratio > 1.0:
        return 1.0
    elif time_ratio < 0.7:
        return -0.5
    return 0.0


def mistake_bonus(mistake_count: int) -> float:
    mistake_factor = max(0.0, 1 - 0.1 * mistake_count)
    if mistake_factor > 0.9:
        return 1.0
    elif mistake_factor < 0.6:
        return -1.0
    return 0.0


def hint_penalty(hint_usage: int) -> float:
    hint_factor = max(0.0, 1 - 0.05 * hint_usage)
    return -1.0 if hint_factor < 0.8 else 0.0


def attempt_penalty(attempt_count: int) -> float:
    if attempt_count > 2:
        return -0.5 * (attempt_count - 1)
    return 0.0


def compute_factors(metrics: PerformanceMetrics) -> AdjustmentFactors:
    """Break an observation down into its adjustment factors."""
    return AdjustmentFactors(
        accuracy_bonus=accuracy_bonus(metrics.accuracy_rate),
        time_bonus=time_bonus(metrics.completion_time, metrics.expected_time),
        mistake_bonus=mistake_bonus(metrics.mistake_count),
        hint_penalty=hint_penalty(metrics.hint_usage),
        attempt_penalty=attempt_penalty(metrics.attempt_count),
    )


def coerce_metrics(data: PerformanceMetrics | dict[str, Any]) -> PerformanceMetrics:
    """Validate raw observation data.

    Raises:
        InvalidObservationError: If a field is missing, NaN or out of range.
    """
    if isinstance(data, PerformanceMetrics):
        return data
    try:
        return PerformanceMetrics.model_validate(data)
    except ValidationError as e:
        raise InvalidObservationError(
            e.errors(include_url=False, include_context=False, include_input=False)
        ) from e


def update_skill_level(
    profile: LearnerProfile,
    activity_type: SkillTag,
    metrics: PerformanceMetrics | dict[str, Any],
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> float:
    """Apply one observation to the profile and return the new skill level.

    Mutates ``profile`` in place: the skill level is replaced and the
    observation is appended to the bounded history. Validation happens
    before any mutation.

    Args:
        profile: Learner profile to update.
        activity_type: Skill the observation applies to.
        metrics: Observation, as a model or a raw mapping.
        history_limit: Maximum number of observations kept.

    Returns:
        New skill level in [0, 100], rounded to one decimal.
    """
    metrics = coerce_metrics(metrics)
    try:
        activity_type = SkillTag(activity_type)
    except ValueError as e:
        raise InvalidObservationError(
            [{"loc": ("activity_type",), "msg": str(e), "type": "enum"}]
        ) from e
    if metrics.activity_type != activity_type:
        raise InvalidObservationError(
            [
                {
                    "loc": ("activity_type",),
                    "msg": f"Observation is for {metrics.activity_type.value}, "
                    f"not {activity_type.value}",
                    "type": "mismatch",
                }
            ]
        )

    factors = compute_factors(metrics)
    multiplier = SPEED_MULTIPLIERS[profile.learning_speed]
    scaled = factors.raw_adjustment * multiplier

    current = profile.skill_level(activity_type)
    new_level = round(max(0.0, min(100.0, current + scaled)), 1)

    profile.skill_levels[activity_type] = new_level
    profile.append_performance(metrics, limit=history_limit)

    logger.debug(
        "skill_level_updated",
        user_id=profile.user_id,
        activity_type=activity_type.value,
        previous=current,
        new_level=new_level,
        raw_adjustment=factors.raw_adjustment,
    )
    return new_level
