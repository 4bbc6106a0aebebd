"""Tests for performance evaluation, difficulty recommendation and learning paths."""

from datetime import datetime, timedelta

from english_learning_engine.engine.difficulty import recommend_difficulty
from english_learning_engine.engine.evaluator import evaluate_performance, summarize_areas
from english_learning_engine.engine.learning_path import suggest_learning_path
from english_learning_engine.models.evaluation import (
    AdjustmentMagnitude,
    PerformanceEvaluation,
)
from english_learning_engine.models.learner import (
    DifficultyLevel,
    LearnerProfile,
    PerformanceMetrics,
    SkillTag,
)

START = datetime(2024, 3, 1, 9, 0)


def _add(profile, skill, accuracy, completion=60, expected=60, hints=0, minutes=0):
    profile.append_performance(
        PerformanceMetrics(
            activity_type=skill,
            timestamp=START + timedelta(minutes=minutes),
            accuracy_rate=accuracy,
            completion_time=completion,
            expected_time=expected,
            hint_usage=hints,
        )
    )


class TestEvaluatePerformance:
    def test_no_history_is_neutral(self):
        evaluation = evaluate_performance(LearnerProfile(user_id="u1"), SkillTag.GRAMMAR)
        assert evaluation == PerformanceEvaluation()

    def test_ignores_other_skills(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.READING, 95)
        assert evaluate_performance(profile, SkillTag.GRAMMAR).overall_score == 0.0

    def test_strong_results(self):
        profile = LearnerProfile(user_id="u1")
        for i in range(3):
            _add(profile, SkillTag.READING, 90, completion=40, minutes=i)
        evaluation = evaluate_performance(profile, SkillTag.READING)
        assert evaluation.overall_score == 90.0
        assert evaluation.readiness_for_next_level is True
        assert evaluation.weaknesses == []
        assert evaluation.strengths == ["accuracy", "reaction speed", "independent thinking"]

    def test_readiness_needs_three_samples(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.READING, 95)
        _add(profile, SkillTag.READING, 95, minutes=1)
        assert evaluate_performance(profile, SkillTag.READING).readiness_for_next_level is False

    def test_weak_results(self):
        profile = LearnerProfile(user_id="u1")
        for i in range(2):
            _add(profile, SkillTag.LISTENING, 50, completion=90, hints=3, minutes=i)
        evaluation = evaluate_performance(profile, SkillTag.LISTENING)
        assert evaluation.weaknesses == [
            "accuracy",
            "reaction speed",
            "independent problem solving",
        ]
        assert evaluation.strengths == []

    def test_window_uses_most_recent(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.WRITING, 10, minutes=0)
        for i in range(1, 6):
            _add(profile, SkillTag.WRITING, 80, minutes=i)
        assert evaluate_performance(profile, SkillTag.WRITING, window=5).overall_score == 80.0

    def test_grammar_improvement_area(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.GRAMMAR, 80)
        evaluation = evaluate_performance(profile, SkillTag.GRAMMAR)
        assert "basic grammar structures" in evaluation.improvement_areas

    def test_listening_discrimination_improvement_area(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.LISTENING] = 40.0
        _add(profile, SkillTag.LISTENING, 80)
        evaluation = evaluate_performance(profile, SkillTag.LISTENING)
        assert "listening discrimination" in evaluation.improvement_areas

    def test_no_listening_discrimination_at_50(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.LISTENING] = 50.0
        _add(profile, SkillTag.LISTENING, 80)
        evaluation = evaluate_performance(profile, SkillTag.LISTENING)
        assert "listening discrimination" not in evaluation.improvement_areas

    def test_does_not_mutate_profile(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.GRAMMAR, 80)
        before = profile.model_dump()
        evaluate_performance(profile, SkillTag.GRAMMAR)
        assert profile.model_dump() == before


class TestSummarizeAreas:
    def test_default_profile(self):
        summary = summarize_areas(LearnerProfile(user_id="u1"))
        # grammar 45, vocabulary 40, speaking 30, writing 35
        assert summary.struggles == ["grammar", "vocabulary", "speaking", "writing"]
        assert summary.strengths == []

    def test_weak_skill_removes_category_from_strengths(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.ENGLISH_TO_CHINESE] = 30.0
        profile.skill_levels[SkillTag.READING] = 80.0
        summary = summarize_areas(profile)
        assert "reading" in summary.struggles
        assert "reading" not in summary.strengths


class TestRecommendDifficulty:
    def test_adaptive_mode_off_returns_preference(self):
        profile = LearnerProfile(
            user_id="u1",
            adaptive_mode=False,
            preferred_difficulty=DifficultyLevel.ADVANCED,
        )
        profile.skill_levels[SkillTag.GRAMMAR] = 10.0
        evaluation = PerformanceEvaluation(overall_score=20, weaknesses=["accuracy"])
        result = recommend_difficulty(profile, evaluation, SkillTag.GRAMMAR)
        assert result.new_difficulty == DifficultyLevel.ADVANCED
        assert result.reason == "respecting user preference"
        assert result.adjustment_magnitude == AdjustmentMagnitude.SLIGHT

    def test_ready_and_strong_escalates(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.READING] = 80.0
        evaluation = PerformanceEvaluation(overall_score=92, readiness_for_next_level=True)
        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.ADVANCED
        assert result.adjustment_magnitude == AdjustmentMagnitude.MODERATE

    def test_expert_above_90(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.READING] = 95.0
        evaluation = PerformanceEvaluation(overall_score=92, readiness_for_next_level=True)
        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.EXPERT

    def test_strong_history_escalates_to_expert(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.READING] = 95.0
        for i in range(5):
            _add(profile, SkillTag.READING, 95, completion=40, expected=60, minutes=i)

        evaluation = evaluate_performance(profile, SkillTag.READING)
        assert evaluation.readiness_for_next_level is True

        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.EXPERT
        assert result.adjustment_magnitude == AdjustmentMagnitude.MODERATE

    def test_weak_and_low_drops_to_beginner(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.SPEAKING] = 20.0
        evaluation = PerformanceEvaluation(
            overall_score=65, weaknesses=["accuracy", "reaction speed"], strengths=[]
        )
        result = recommend_difficulty(profile, evaluation, SkillTag.SPEAKING)
        assert result.new_difficulty == DifficultyLevel.BEGINNER
        assert result.adjustment_magnitude == AdjustmentMagnitude.MODERATE

    def test_low_score_slight_decrease(self):
        profile = LearnerProfile(user_id="u1")
        evaluation = PerformanceEvaluation(overall_score=55)
        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.BEGINNER
        assert result.adjustment_magnitude == AdjustmentMagnitude.SLIGHT

    def test_high_score_steps_up_one_tier(self):
        profile = LearnerProfile(user_id="u1")
        evaluation = PerformanceEvaluation(overall_score=95)
        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.ADVANCED
        assert result.adjustment_magnitude == AdjustmentMagnitude.SIGNIFICANT

    def test_maintain_otherwise(self):
        profile = LearnerProfile(user_id="u1")
        evaluation = PerformanceEvaluation(overall_score=75)
        result = recommend_difficulty(profile, evaluation, SkillTag.READING)
        assert result.new_difficulty == DifficultyLevel.INTERMEDIATE
        assert result.reason == "maintain current level to consolidate"

    def test_escalation_is_monotonic(self):
        evaluation = PerformanceEvaluation(overall_score=95)
        ranks = []
        for tier in DifficultyLevel:
            profile = LearnerProfile(user_id="u1", preferred_difficulty=tier)
            result = recommend_difficulty(profile, evaluation, SkillTag.READING)
            assert result.new_difficulty.rank >= tier.rank
            ranks.append(result.new_difficulty.rank)
        assert ranks == sorted(ranks)

    def test_focus_falls_back_to_level_band(self):
        profile = LearnerProfile(user_id="u1")
        result = recommend_difficulty(profile, PerformanceEvaluation(overall_score=75),
                                      SkillTag.SPEAKING)
        assert result.focus == ["expanding vocabulary", "applying complex grammar structures"]


class TestLearningPath:
    def test_weakest_skill_first(self):
        path = suggest_learning_path(LearnerProfile(user_id="u1"))
        assert path.current_activity_type == SkillTag.SPEAKING
        assert path.suggested_next_activities[0].activity_type == SkillTag.SPEAKING
        assert path.suggested_next_activities[0].priority == 10
        assert path.recommended_difficulty == DifficultyLevel.INTERMEDIATE
        assert path.estimated_time_to_mastery == 90.0

    def test_grammar_reinforced_by_translation(self):
        profile = LearnerProfile(user_id="u1")
        profile.skill_levels[SkillTag.GRAMMAR] = 10.0
        path = suggest_learning_path(profile)
        assert [a.activity_type for a in path.suggested_next_activities] == [
            SkillTag.GRAMMAR,
            SkillTag.CHINESE_TO_ENGLISH,
        ]
        assert path.recommended_difficulty == DifficultyLevel.BEGINNER
        assert path.estimated_time_to_mastery == 110.0

    def test_maintain_strong_skill(self):
        profile = LearnerProfile(user_id="u1")
        _add(profile, SkillTag.READING, 70)
        _add(profile, SkillTag.VOCABULARY, 90, minutes=1)
        path = suggest_learning_path(profile)
        last = path.suggested_next_activities[-1]
        assert last.activity_type == SkillTag.VOCABULARY
        assert last.priority == 5

    def test_ties_follow_skill_order(self):
        profile = LearnerProfile(
            user_id="u1", skill_levels={skill: 50.0 for skill in SkillTag}
        )
        assert suggest_learning_path(profile).current_activity_type == SkillTag.CHINESE_TO_ENGLISH

    def test_mastery_time_floor(self):
        profile = LearnerProfile(
            user_id="u1", skill_levels={skill: 95.0 for skill in SkillTag}
        )
        path = suggest_learning_path(profile)
        assert path.estimated_time_to_mastery == 30.0
        assert path.recommended_difficulty == DifficultyLevel.ADVANCED
        assert path.focus_areas == ["grammar application", "speaking fluency"]
