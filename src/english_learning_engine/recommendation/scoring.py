"""Heuristic match scoring of catalog content against a learner profile.

Every candidate kind is scored with the same shape of weighted components
(difficulty fit, weak-area match, similarity, popularity or brevity,
preferred/excluded tags). The per-kind weights live in ``WEIGHTS`` so the
table is exhaustive over ``ContentKind``.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from english_learning_engine.engine.evaluator import summarize_areas
from english_learning_engine.models.content import (
    ContentKind,
    ContentTag,
    CourseItem,
    LessonItem,
    PracticeItem,
    RecommendationSettings,
)
from english_learning_engine.models.evaluation import PerformanceEvaluation
from english_learning_engine.models.learner import DifficultyLevel, LearnerProfile, SkillTag

FALLBACK_REASON = "based on your learning preferences"

# Difficulty distance on the 1-5 scale -> fit
DIFFICULTY_FIT_STEPS: dict[int, float] = {0: 1.0, 1: 0.8, 2: 0.5, 3: 0.2}

PRACTICE_SKILL_GAP_LEVEL = 60.0
PRACTICE_SKILL_GAP_WEIGHT = 0.5
DEFAULT_PRACTICE_SKILL_LEVEL = 50.0


@dataclass(frozen=True)
class ScoringWeights:
    difficulty: float
    weak_area_preferred: float
    weak_area_default: float
    similarity: float = 0.0
    popularity: float = 0.0
    brevity: float = 0.0
    brevity_threshold_minutes: float = 0.0
    preferred_tag_bonus: float = 0.0
    excluded_tag_penalty: float = 50.0


WEIGHTS: dict[ContentKind, ScoringWeights] = {
    ContentKind.COURSE: ScoringWeights(
        difficulty=40,
        weak_area_preferred=30,
        weak_area_default=20,
        similarity=20,
        popularity=10,
        preferred_tag_bonus=15,
    ),
    ContentKind.LESSON: ScoringWeights(
        difficulty=40,
        weak_area_preferred=30,
        weak_area_default=20,
        brevity=10,
        brevity_threshold_minutes=20,
        preferred_tag_bonus=20,
    ),
    ContentKind.PRACTICE: ScoringWeights(
        difficulty=35,
        weak_area_preferred=40,
        weak_area_default=20,
        brevity=10,
        brevity_threshold_minutes=15,
        preferred_tag_bonus=20,
    ),
}


@dataclass(frozen=True)
class ScoringContext:
    """Everything a candidate is scored against."""

    profile: LearnerProfile
    settings: RecommendationSettings
    target_difficulty: int
    struggles: tuple[str, ...] = ()
    recent_tag_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def weak_area_enabled(self) -> bool:
        return bool(self.struggles)


@dataclass(frozen=True)
class ScoredCandidate:
    score: int
    reasons: list[str]


def resolve_target_difficulty(
    profile: LearnerProfile, settings: RecommendationSettings
) -> int:
    """Target on the 1-5 catalog scale, honouring an explicit override."""
    requested = settings.difficulty
    if requested == "adaptive":
        return profile.preferred_difficulty.rank
    if isinstance(requested, DifficultyLevel):
        return requested.rank
    return int(requested)


def build_context(
    profile: LearnerProfile,
    settings: RecommendationSettings,
    evaluations: Mapping[SkillTag, PerformanceEvaluation] | None = None,
    recent_tag_ids: Iterable[str] = (),
) -> ScoringContext:
    """Assemble the scoring context.

    Struggle categories come from the learner's weak skills plus every
    skill whose recent evaluation reported a weakness.
    """
    struggles = list(summarize_areas(profile).struggles)
    for skill, evaluation in (evaluations or {}).items():
        if evaluation.weaknesses and skill.category not in struggles:
            struggles.append(skill.category)
    return ScoringContext(
        profile=profile,
        settings=settings,
        target_difficulty=resolve_target_difficulty(profile, settings),
        struggles=tuple(struggles),
        recent_tag_ids=frozenset(recent_tag_ids),
    )


def difficulty_fit(target: int, candidate: int) -> float:
    """Stepped fit: 1.0 for an exact match down to 0 at four or more levels apart."""
    return DIFFICULTY_FIT_STEPS.get(abs(target - candidate), 0.0)


def tag_similarity(reference_ids: Iterable[str], tags: list[ContentTag]) -> float:
    """Jaccard overlap between two sets of tag ids."""
    reference = set(reference_ids)
    candidate = {tag.id for tag in tags}
    if not reference or not candidate:
        return 0.0
    return len(reference & candidate) / len(reference | candidate)


def weak_area_match(tags: list[ContentTag], struggles: Iterable[str]) -> tuple[float, list[str]]:
    """Share of tags in a struggle category, and the categories matched."""
    struggle_set = set(struggles)
    if not tags or not struggle_set:
        return 0.0, []
    matching = [tag for tag in tags if tag.category.value in struggle_set]
    categories = list(dict.fromkeys(tag.category.value for tag in matching))
    return len(matching) / len(tags), categories


def _has_any(tags: list[ContentTag], selected: list[ContentTag]) -> bool:
    selected_ids = {tag.id for tag in selected}
    return any(tag.id in selected_ids for tag in tags)


def _weak_area_weight(weights: ScoringWeights, settings: RecommendationSettings) -> float:
    if settings.prefer_target_weak_areas:
        return weights.weak_area_preferred
    return weights.weak_area_default


def _finalize(
    score: float,
    reasons: list[str],
    tags: list[ContentTag],
    weights: ScoringWeights,
    settings: RecommendationSettings,
) -> ScoredCandidate:
    # The exclusion penalty applies to the capped score, so an excluded
    # candidate always lands at most 50 below its otherwise-computed score.
    score = min(100.0, score)
    if settings.exclude_tags and _has_any(tags, settings.exclude_tags):
        score -= weights.excluded_tag_penalty
    score = max(0.0, score)
    return ScoredCandidate(
        score=int(math.floor(score + 0.5)),
        reasons=reasons or [FALLBACK_REASON],
    )


def _apply_preferred_tags(
    score: float,
    reasons: list[str],
    tags: list[ContentTag],
    weights: ScoringWeights,
    settings: RecommendationSettings,
) -> float:
    if settings.preferred_tags and _has_any(tags, settings.preferred_tags):
        reasons.append("includes topics you are interested in")
        return score + weights.preferred_tag_bonus
    return score


def score_course(course: CourseItem, ctx: ScoringContext) -> ScoredCandidate:
    weights = WEIGHTS[ContentKind.COURSE]
    settings = ctx.settings
    score = 0.0
    reasons: list[str] = []

    fit = difficulty_fit(ctx.target_difficulty, course.difficulty)
    score += fit * weights.difficulty
    if fit > 0.7:
        reasons.append("difficulty matches your preferred level")

    if ctx.weak_area_enabled:
        proportion, matched = weak_area_match(course.tags, ctx.struggles)
        if matched:
            score += proportion * _weak_area_weight(weights, settings)
            reasons.append(f"covers {', '.join(matched)} skills you need to improve")

    if settings.prefer_similar_to_recently_studied and ctx.recent_tag_ids:
        similarity = tag_similarity(ctx.recent_tag_ids, course.tags)
        score += similarity * weights.similarity
        if similarity > 0.3:
            reasons.append("related to what you studied recently")

    score += (course.popularity / 100) * weights.popularity
    if course.popularity > 90:
        reasons.append("popular course with high ratings")

    score = _apply_preferred_tags(score, reasons, course.tags, weights, settings)
    return _finalize(score, reasons, course.tags, weights, settings)


def score_lesson(lesson: LessonItem, ctx: ScoringContext) -> ScoredCandidate:
    weights = WEIGHTS[ContentKind.LESSON]
    settings = ctx.settings
    score = 0.0
    reasons: list[str] = []

    fit = difficulty_fit(ctx.target_difficulty, lesson.difficulty)
    score += fit * weights.difficulty
    if fit > 0.7:
        reasons.append("difficulty suits your current level")

    if ctx.weak_area_enabled:
        proportion, matched = weak_area_match(lesson.tags, ctx.struggles)
        if matched:
            score += proportion * _weak_area_weight(weights, settings)
            reasons.append(f"helps improve your {', '.join(matched)} ability")

    score = _apply_preferred_tags(score, reasons, lesson.tags, weights, settings)

    if lesson.estimated_time_minutes <= weights.brevity_threshold_minutes:
        score += weights.brevity
        reasons.append(f"short and focused, only {lesson.estimated_time_minutes:g} minutes")

    return _finalize(score, reasons, lesson.tags, weights, settings)


def score_practice(practice: PracticeItem, ctx: ScoringContext) -> ScoredCandidate:
    weights = WEIGHTS[ContentKind.PRACTICE]
    settings = ctx.settings
    score = 0.0
    reasons: list[str] = []

    fit = difficulty_fit(ctx.target_difficulty, practice.difficulty)
    score += fit * weights.difficulty
    if fit > 0.7:
        reasons.append("difficulty suits your current level")

    if ctx.weak_area_enabled and practice.target_skill in ctx.struggles:
        score += _weak_area_weight(weights, settings)
        reasons.append(f"targets your {practice.target_skill} skill, which needs work")

    try:
        level = ctx.profile.skill_level(SkillTag(practice.activity_type))
    except ValueError:
        level = DEFAULT_PRACTICE_SKILL_LEVEL
    if level < PRACTICE_SKILL_GAP_LEVEL:
        score += (PRACTICE_SKILL_GAP_LEVEL - level) * PRACTICE_SKILL_GAP_WEIGHT
        reasons.append(f"helps raise your {practice.activity_type} level")

    if practice.estimated_time_minutes <= weights.brevity_threshold_minutes:
        score += weights.brevity
        reasons.append(f"quick practice, only {practice.estimated_time_minutes:g} minutes")

    score = _apply_preferred_tags(score, reasons, practice.tags, weights, settings)
    return _finalize(score, reasons, practice.tags, weights, settings)
