"""Learning path suggestions ordered by weakest skill."""

from english_learning_engine.models.evaluation import LearningPathSuggestion, SuggestedActivity
from english_learning_engine.models.learner import DifficultyLevel, LearnerProfile, SkillTag

# Skills reinforced alongside a weak skill
REINFORCEMENTS: dict[SkillTag, tuple[SkillTag, str]] = {
    SkillTag.GRAMMAR: (
        SkillTag.CHINESE_TO_ENGLISH,
        "consolidate grammar through Chinese-to-English translation",
    ),
    SkillTag.LISTENING: (
        SkillTag.ENGLISH_TO_CHINESE,
        "improve listening comprehension",
    ),
}

MAINTAIN_ACCURACY = 85.0


def _difficulty_for_level(level: float) -> DifficultyLevel:
    if level < 30:
        return DifficultyLevel.BEGINNER
    elif level < 60:
        return DifficultyLevel.INTERMEDIATE
    return DifficultyLevel.ADVANCED


def suggest_learning_path(profile: LearnerProfile) -> LearningPathSuggestion:
    """Propose the next activities, starting with the weakest skill."""
    # sorted() is stable, so ties keep SkillTag declaration order
    ranked = sorted(SkillTag, key=profile.skill_level)
    weakest = ranked[0]
    weakest_level = profile.skill_level(weakest)

    activities = [
        SuggestedActivity(
            activity_type=weakest,
            reason="this is the skill you most need to improve",
            priority=10,
        )
    ]

    if weakest in REINFORCEMENTS:
        reinforcement, reason = REINFORCEMENTS[weakest]
        activities.append(
            SuggestedActivity(activity_type=reinforcement, reason=reason, priority=8)
        )

    good = next(
        (p for p in profile.recent_performance if p.accuracy_rate > MAINTAIN_ACCURACY),
        None,
    )
    if good is not None:
        activities.append(
            SuggestedActivity(
                activity_type=good.activity_type,
                reason="maintain this skill and consolidate your progress",
                priority=5,
            )
        )

    return LearningPathSuggestion(
        user_id=profile.user_id,
        current_activity_type=weakest,
        suggested_next_activities=activities,
        recommended_difficulty=_difficulty_for_level(weakest_level),
        focus_areas=list(profile.struggling_areas),
        estimated_time_to_mastery=max(30.0, 120.0 - weakest_level),
    )
