"""Performance evaluation over a learner's recent history."""

from english_learning_engine.models.evaluation import PerformanceEvaluation
from english_learning_engine.models.learner import (
    LearnerAreaSummary,
    LearnerProfile,
    SkillTag,
)

DEFAULT_WINDOW = 5

READINESS_ACCURACY = 85.0
READINESS_MIN_SAMPLES = 3

STRUGGLE_THRESHOLD = 50.0
STRENGTH_THRESHOLD = 70.0


def evaluate_performance(
    profile: LearnerProfile,
    activity_type: SkillTag,
    window: int = DEFAULT_WINDOW,
) -> PerformanceEvaluation:
    """Evaluate the most recent observations for one skill.

    Pure read: the profile is never mutated. With no observations for the
    skill a neutral, zero-valued evaluation is returned.

    Args:
        profile: Learner profile holding the observation history.
        activity_type: Skill to evaluate.
        window: Number of most recent observations considered.

    Returns:
        PerformanceEvaluation for the skill.
    """
    relevant = sorted(
        (p for p in profile.recent_performance if p.activity_type == activity_type),
        key=lambda p: p.timestamp,
        reverse=True,
    )[:window]

    if not relevant:
        return PerformanceEvaluation()

    count = len(relevant)
    avg_accuracy = sum(p.accuracy_rate for p in relevant) / count
    readiness = avg_accuracy > READINESS_ACCURACY and count >= READINESS_MIN_SAMPLES

    weaknesses: list[str] = []
    strengths: list[str] = []

    if avg_accuracy < 70:
        weaknesses.append("accuracy")
    else:
        strengths.append("accuracy")

    avg_time_ratio = sum(p.completion_time / p.expected_time for p in relevant) / count
    if avg_time_ratio > 1.2:
        weaknesses.append("reaction speed")
    elif avg_time_ratio < 0.9:
        strengths.append("reaction speed")

    avg_hint_usage = sum(p.hint_usage for p in relevant) / count
    if avg_hint_usage > 2:
        weaknesses.append("independent problem solving")
    else:
        strengths.append("independent thinking")

    improvement_areas = list(weaknesses)
    level = profile.skill_level(activity_type)
    if activity_type == SkillTag.GRAMMAR and level < 60:
        improvement_areas.append("basic grammar structures")
    if activity_type == SkillTag.LISTENING and level < 50:
        improvement_areas.append("listening discrimination")

    return PerformanceEvaluation(
        overall_score=avg_accuracy,
        readiness_for_next_level=readiness,
        weaknesses=weaknesses,
        strengths=strengths,
        improvement_areas=improvement_areas,
    )


def summarize_areas(profile: LearnerProfile) -> LearnerAreaSummary:
    """Map skill levels onto content categories the learner struggles or excels in."""
    struggles: list[str] = []
    strengths: list[str] = []
    for skill in SkillTag:
        level = profile.skill_level(skill)
        category = skill.category
        if level < STRUGGLE_THRESHOLD and category not in struggles:
            struggles.append(category)
        elif level >= STRENGTH_THRESHOLD and category not in strengths:
            strengths.append(category)
    # A category with any weak skill is not reported as a strength
    strengths = [c for c in strengths if c not in struggles]
    return LearnerAreaSummary(struggles=struggles, strengths=strengths)
