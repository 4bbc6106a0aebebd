"""User-keyed facade over the adaptive learning engine."""

from typing import Any

import structlog

from english_learning_engine.engine.difficulty import recommend_difficulty
from english_learning_engine.engine.evaluator import (
    DEFAULT_WINDOW,
    evaluate_performance,
    summarize_areas,
)
from english_learning_engine.engine.learning_path import suggest_learning_path
from english_learning_engine.engine.skill_updater import coerce_metrics, update_skill_level
from english_learning_engine.models.evaluation import (
    AdjustmentRecommendation,
    LearningPathSuggestion,
    PerformanceEvaluation,
)
from english_learning_engine.models.learner import (
    DEFAULT_HISTORY_LIMIT,
    LearnerAreaSummary,
    LearnerProfile,
    PerformanceMetrics,
    SkillTag,
)
from english_learning_engine.storage.profile_store import LearnerProfileStore

logger = structlog.get_logger()


class AdaptiveLearningService:
    """Ties the profile store to the skill, evaluation and path components.

    Args:
        store: Learner profile repository.
        history_limit: Maximum observations kept per profile.
        evaluation_window: Observations considered per evaluation.
    """

    def __init__(
        self,
        store: LearnerProfileStore | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        evaluation_window: int = DEFAULT_WINDOW,
    ):
        self.store = store if store is not None else LearnerProfileStore()
        self.history_limit = history_limit
        self.evaluation_window = evaluation_window

    def get_learner_profile(self, user_id: str) -> LearnerProfile:
        return self.store.get_or_create(user_id)

    def record_performance(
        self, user_id: str, metrics: PerformanceMetrics | dict[str, Any]
    ) -> float:
        """Validate an observation and apply it to the user's profile.

        Returns:
            The new skill level for the observation's activity type.
        """
        metrics = coerce_metrics(metrics)
        with self.store.locked(user_id) as profile:
            new_level = update_skill_level(
                profile,
                metrics.activity_type,
                metrics,
                history_limit=self.history_limit,
            )
            self.store.save(profile)
        logger.info(
            "performance_recorded",
            user_id=user_id,
            activity_type=metrics.activity_type.value,
            new_level=new_level,
        )
        return new_level

    def evaluate_performance(
        self, user_id: str, activity_type: SkillTag
    ) -> PerformanceEvaluation:
        profile = self.store.get_or_create(user_id)
        return evaluate_performance(profile, SkillTag(activity_type), self.evaluation_window)

    def recommend_content_difficulty(
        self, user_id: str, activity_type: SkillTag
    ) -> AdjustmentRecommendation:
        profile = self.store.get_or_create(user_id)
        evaluation = evaluate_performance(
            profile, SkillTag(activity_type), self.evaluation_window
        )
        return recommend_difficulty(profile, evaluation, activity_type)

    def generate_learning_path(self, user_id: str) -> LearningPathSuggestion:
        return suggest_learning_path(self.store.get_or_create(user_id))

    def get_learner_area_summary(self, user_id: str) -> LearnerAreaSummary:
        return summarize_areas(self.store.get_or_create(user_id))

    def evaluate_all(self, user_id: str) -> dict[SkillTag, PerformanceEvaluation]:
        """Evaluate every skill that has recent observations."""
        profile = self.store.get_or_create(user_id)
        active = {p.activity_type for p in profile.recent_performance}
        return {
            skill: evaluate_performance(profile, skill, self.evaluation_window)
            for skill in SkillTag
            if skill in active
        }
