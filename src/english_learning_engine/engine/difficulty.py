"""Difficulty recommendation from skill level and recent evaluation."""

import structlog

from english_learning_engine.models.evaluation import (
    AdjustmentMagnitude,
    AdjustmentRecommendation,
    PerformanceEvaluation,
)
from english_learning_engine.models.learner import DifficultyLevel, LearnerProfile, SkillTag

logger = structlog.get_logger()


def _focus_for_level(level: float) -> list[str]:
    if level < 30:
        return ["basic vocabulary", "simple grammar structures"]
    elif level < 60:
        return ["expanding vocabulary", "applying complex grammar structures"]
    return ["advanced expressions", "idiomatic usage", "cultural understanding"]


def _resources_for_level(level: float) -> list[str]:
    if level < 40:
        return ["basic grammar guide", "common vocabulary list"]
    elif level < 70:
        return ["intermediate grammar exercises", "situational dialogue practice"]
    return ["advanced writing techniques", "idiomatic expressions explained"]


def _decide(
    profile: LearnerProfile,
    evaluation: PerformanceEvaluation,
    level: float,
) -> tuple[DifficultyLevel, str, AdjustmentMagnitude]:
    """Pick the new tier. The first matching rule wins."""
    preferred = profile.preferred_difficulty

    if not profile.adaptive_mode:
        return preferred, "respecting user preference", AdjustmentMagnitude.SLIGHT

    if evaluation.readiness_for_next_level and level > 75:
        tier = DifficultyLevel.EXPERT if level > 90 else DifficultyLevel.ADVANCED
        return (
            tier,
            "strong results at the current difficulty, ready for more challenging content",
            AdjustmentMagnitude.MODERATE,
        )

    if len(evaluation.weaknesses) > len(evaluation.strengths) and level < 50:
        tier = DifficultyLevel.BEGINNER if level < 30 else DifficultyLevel.INTERMEDIATE
        return (
            tier,
            "lowering difficulty to build confidence and master the fundamentals",
            AdjustmentMagnitude.MODERATE,
        )

    if evaluation.overall_score < 60:
        return (
            DifficultyLevel.BEGINNER,
            "slightly lowering difficulty to improve understanding",
            AdjustmentMagnitude.SLIGHT,
        )

    if evaluation.overall_score > 90 and preferred != DifficultyLevel.EXPERT:
        return (
            preferred.next_tier(),
            "current difficulty mastered, ready for a bigger challenge",
            AdjustmentMagnitude.SIGNIFICANT,
        )

    return preferred, "maintain current level to consolidate", AdjustmentMagnitude.SLIGHT


def recommend_difficulty(
    profile: LearnerProfile,
    evaluation: PerformanceEvaluation,
    activity_type: SkillTag,
) -> AdjustmentRecommendation:
    """Suggest the next difficulty tier for a skill.

    When adaptive mode is off the learner's preferred tier is always
    returned unchanged.
    """
    activity_type = SkillTag(activity_type)
    level = profile.skill_level(activity_type)
    new_difficulty, reason, magnitude = _decide(profile, evaluation, level)

    focus = list(evaluation.improvement_areas) or _focus_for_level(level)

    logger.debug(
        "difficulty_recommended",
        user_id=profile.user_id,
        activity_type=activity_type.value,
        skill_level=level,
        new_difficulty=new_difficulty.value,
        magnitude=magnitude.value,
    )
    return AdjustmentRecommendation(
        new_difficulty=new_difficulty,
        reason=reason,
        focus=focus,
        recommended_resources=_resources_for_level(level),
        adjustment_magnitude=magnitude,
    )
