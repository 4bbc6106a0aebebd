"""Ranked course, lesson and practice recommendations for a learner."""

import math
from collections.abc import Iterable, Sequence

import structlog

from english_learning_engine.engine.service import AdaptiveLearningService
from english_learning_engine.models.content import (
    ContentCatalog,
    CourseRecommendation,
    LessonRecommendation,
    MixedRecommendations,
    PracticeRecommendation,
    RecommendationSettings,
)
from english_learning_engine.models.position import LearningPosition
from english_learning_engine.recommendation.scoring import (
    ScoringContext,
    build_context,
    score_course,
    score_lesson,
    score_practice,
)

logger = structlog.get_logger()

MIN_PRACTICE_REASONS = 2


def allocate_counts(settings: RecommendationSettings) -> tuple[int, int, int]:
    """Split ``max_recommendations`` across courses, lessons and practices.

    All three kinds split 4:3:1 (remainder to practices); pairs split 6:4,
    7:3 and 8:2; a single kind gets everything.

    Returns:
        (courses, lessons, practices) counts.
    """
    total = settings.max_recommendations
    flags = (settings.include_courses, settings.include_lessons, settings.include_practices)

    if flags == (True, True, True):
        courses = math.floor(total * 0.4)
        lessons = math.floor(total * 0.3)
        return courses, lessons, total - courses - lessons
    if flags == (True, True, False):
        courses = math.floor(total * 0.6)
        return courses, total - courses, 0
    if flags == (True, False, True):
        courses = math.floor(total * 0.7)
        return courses, 0, total - courses
    if flags == (False, True, True):
        lessons = math.floor(total * 0.8)
        return 0, lessons, total - lessons

    if settings.include_courses:
        return total, 0, 0
    if settings.include_lessons:
        return 0, total, 0
    if settings.include_practices:
        return 0, 0, total
    return 0, 0, 0


def recent_tag_ids(catalog: ContentCatalog, positions: Iterable[LearningPosition]) -> set[str]:
    """Tags of the lessons (or, failing that, courses) behind recent positions."""
    tag_ids: set[str] = set()
    for position in positions:
        lesson = catalog.find_lesson(position.lesson_id)
        if lesson is not None:
            tag_ids.update(tag.id for tag in lesson.tags)
            continue
        course = catalog.find_course(position.course_id)
        if course is not None:
            tag_ids.update(tag.id for tag in course.tags)
    return tag_ids


def rank_courses(
    catalog: ContentCatalog, ctx: ScoringContext, limit: int
) -> list[CourseRecommendation]:
    scored = []
    for course in catalog.courses:
        result = score_course(course, ctx)
        if result.score <= 0:
            continue
        scored.append(
            CourseRecommendation(
                course_id=course.id,
                title=course.title,
                description=course.description,
                match_score=result.score,
                tags=course.tags,
                difficulty=course.difficulty,
                reasons=result.reasons,
            )
        )
    scored.sort(key=lambda r: r.match_score, reverse=True)
    return scored[:limit]


def rank_lessons(
    catalog: ContentCatalog, ctx: ScoringContext, limit: int
) -> list[LessonRecommendation]:
    scored = []
    for lesson in catalog.lessons:
        result = score_lesson(lesson, ctx)
        if result.score <= 0:
            continue
        scored.append(
            LessonRecommendation(
                lesson_id=lesson.id,
                course_id=lesson.course_id,
                title=lesson.title,
                description=lesson.description,
                match_score=result.score,
                tags=lesson.tags,
                difficulty=lesson.difficulty,
                estimated_time_minutes=lesson.estimated_time_minutes,
                reasons=result.reasons,
            )
        )
    scored.sort(key=lambda r: r.match_score, reverse=True)
    return scored[:limit]


def rank_practices(
    catalog: ContentCatalog, ctx: ScoringContext, limit: int
) -> list[PracticeRecommendation]:
    scored = []
    for practice in catalog.practices:
        result = score_practice(practice, ctx)
        if result.score <= 0 or len(result.reasons) < MIN_PRACTICE_REASONS:
            continue
        scored.append(
            PracticeRecommendation(
                id=practice.id,
                title=practice.title,
                description=practice.description,
                activity_type=practice.activity_type,
                target_skill=practice.target_skill,
                match_score=result.score,
                tags=practice.tags,
                difficulty=practice.difficulty,
                estimated_time_minutes=practice.estimated_time_minutes,
                reasons=result.reasons,
            )
        )
    scored.sort(key=lambda r: r.match_score, reverse=True)
    return scored[:limit]


class RecommendationEngine:
    """Scores a content catalog against a learner's profile.

    Args:
        catalog: Candidate content.
        learning_service: Source of learner profiles and evaluations.
    """

    def __init__(self, catalog: ContentCatalog, learning_service: AdaptiveLearningService):
        self.catalog = catalog
        self.learning_service = learning_service

    def _context(
        self,
        user_id: str,
        settings: RecommendationSettings,
        recent_positions: Sequence[LearningPosition],
    ) -> ScoringContext:
        profile = self.learning_service.get_learner_profile(user_id)
        evaluations = self.learning_service.evaluate_all(user_id)
        tags: set[str] = set()
        if settings.prefer_similar_to_recently_studied:
            tags = recent_tag_ids(self.catalog, recent_positions)
        return build_context(profile, settings, evaluations, tags)

    def recommend_courses(
        self,
        user_id: str,
        settings: RecommendationSettings | None = None,
        recent_positions: Sequence[LearningPosition] = (),
    ) -> list[CourseRecommendation]:
        settings = settings or RecommendationSettings(max_recommendations=3)
        ctx = self._context(user_id, settings, recent_positions)
        return rank_courses(self.catalog, ctx, settings.max_recommendations)

    def recommend_lessons(
        self,
        user_id: str,
        settings: RecommendationSettings | None = None,
    ) -> list[LessonRecommendation]:
        settings = settings or RecommendationSettings(max_recommendations=5)
        ctx = self._context(user_id, settings, ())
        return rank_lessons(self.catalog, ctx, settings.max_recommendations)

    def recommend_practices(
        self,
        user_id: str,
        settings: RecommendationSettings | None = None,
    ) -> list[PracticeRecommendation]:
        settings = settings or RecommendationSettings(max_recommendations=3)
        ctx = self._context(user_id, settings, ())
        return rank_practices(self.catalog, ctx, settings.max_recommendations)

    def recommend(
        self,
        user_id: str,
        settings: RecommendationSettings | None = None,
        recent_positions: Sequence[LearningPosition] = (),
    ) -> MixedRecommendations:
        """Mixed recommendations across all enabled content kinds."""
        settings = settings or RecommendationSettings()
        course_count, lesson_count, practice_count = allocate_counts(settings)
        ctx = self._context(user_id, settings, recent_positions)

        result = MixedRecommendations(
            courses=rank_courses(self.catalog, ctx, course_count) if course_count else [],
            lessons=rank_lessons(self.catalog, ctx, lesson_count) if lesson_count else [],
            practices=(
                rank_practices(self.catalog, ctx, practice_count) if practice_count else []
            ),
        )
        logger.info(
            "recommendations_generated",
            user_id=user_id,
            courses=len(result.courses),
            lessons=len(result.lessons),
            practices=len(result.practices),
        )
        return result
