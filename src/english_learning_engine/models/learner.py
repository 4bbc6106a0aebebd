"""Learner profile and performance observation models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_HISTORY_LIMIT = 20


class SkillTag(StrEnum):
    """Skills tracked per learner."""

    CHINESE_TO_ENGLISH = "chineseToEnglish"
    ENGLISH_TO_CHINESE = "englishToChinese"
    GRAMMAR = "grammar"
    LISTENING = "listening"
    VOCABULARY = "vocabulary"
    SPEAKING = "speaking"
    READING = "reading"
    WRITING = "writing"

    @property
    def category(self) -> str:
        """Content tag category exercising this skill."""
        if self is SkillTag.CHINESE_TO_ENGLISH:
            return "writing"
        if self is SkillTag.ENGLISH_TO_CHINESE:
            return "reading"
        return self.value


class DifficultyLevel(StrEnum):
    """Learner-facing difficulty tiers."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        """Position on the 1-5 catalog difficulty scale."""
        return {
            DifficultyLevel.BEGINNER: 2,
            DifficultyLevel.INTERMEDIATE: 3,
            DifficultyLevel.ADVANCED: 4,
            DifficultyLevel.EXPERT: 5,
        }[self]

    def next_tier(self) -> "DifficultyLevel":
        """One tier harder, saturating at expert."""
        tiers = list(DifficultyLevel)
        index = tiers.index(self)
        return tiers[min(index + 1, len(tiers) - 1)]


class LearningSpeed(StrEnum):
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"


DEFAULT_SKILL_LEVELS: dict[SkillTag, float] = {
    SkillTag.CHINESE_TO_ENGLISH: 50.0,
    SkillTag.ENGLISH_TO_CHINESE: 60.0,
    SkillTag.GRAMMAR: 45.0,
    SkillTag.LISTENING: 55.0,
    SkillTag.VOCABULARY: 40.0,
    SkillTag.SPEAKING: 30.0,
    SkillTag.READING: 65.0,
    SkillTag.WRITING: 35.0,
}


class PerformanceMetrics(BaseModel):
    """One observation of a learner completing an activity.

    Immutable once created. Accepts camelCase keys from the exercise UI.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
    )

    activity_type: SkillTag
    timestamp: datetime = Field(default_factory=datetime.now)
    accuracy_rate: float = Field(ge=0, le=100)
    completion_time: float = Field(ge=0, description="Seconds taken")
    expected_time: float = Field(gt=0, description="Seconds expected")
    mistake_count: int = Field(default=0, ge=0)
    hint_usage: int = Field(default=0, ge=0)
    attempt_count: int = Field(default=1, ge=1)


def _default_skill_levels() -> dict[SkillTag, float]:
    return dict(DEFAULT_SKILL_LEVELS)


class LearnerProfile(BaseModel):
    """Per-user proficiency state."""

    user_id: str
    skill_levels: dict[SkillTag, float] = Field(default_factory=_default_skill_levels)
    preferred_difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    adaptive_mode: bool = True
    learning_speed: LearningSpeed = LearningSpeed.NORMAL
    recent_performance: list[PerformanceMetrics] = Field(default_factory=list)
    struggling_areas: list[str] = Field(
        default_factory=lambda: ["grammar application", "speaking fluency"]
    )
    strength_areas: list[str] = Field(
        default_factory=lambda: ["vocabulary comprehension", "reading comprehension"]
    )
    updated_at: datetime = Field(default_factory=datetime.now)

    def skill_level(self, skill: SkillTag) -> float:
        return self.skill_levels.get(skill, DEFAULT_SKILL_LEVELS[skill])

    def append_performance(
        self, metrics: PerformanceMetrics, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> None:
        """Append an observation, evicting the oldest entries beyond ``limit``."""
        self.recent_performance.append(metrics)
        overflow = len(self.recent_performance) - limit
        if overflow > 0:
            del self.recent_performance[:overflow]


class LearnerAreaSummary(BaseModel):
    """Content categories the learner is weak or strong in."""

    struggles: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
