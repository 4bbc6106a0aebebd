"""Evaluation, difficulty adjustment and learning path models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from english_learning_engine.models.learner import DifficultyLevel, SkillTag


class AdjustmentMagnitude(StrEnum):
    SLIGHT = "slight"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"


class PerformanceEvaluation(BaseModel):
    """Qualitative read of a learner's recent results for one skill."""

    overall_score: float = 0.0
    readiness_for_next_level: bool = False
    weaknesses: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvement_areas: list[str] = Field(default_factory=list)


class AdjustmentRecommendation(BaseModel):
    new_difficulty: DifficultyLevel
    reason: str
    focus: list[str] = Field(default_factory=list)
    recommended_resources: list[str] = Field(default_factory=list)
    adjustment_magnitude: AdjustmentMagnitude = AdjustmentMagnitude.SLIGHT


class SuggestedActivity(BaseModel):
    activity_type: SkillTag
    reason: str
    priority: int


class LearningPathSuggestion(BaseModel):
    user_id: str
    current_activity_type: SkillTag
    suggested_next_activities: list[SuggestedActivity]
    recommended_difficulty: DifficultyLevel
    focus_areas: list[str] = Field(default_factory=list)
    estimated_time_to_mastery: float = Field(description="Minutes")
