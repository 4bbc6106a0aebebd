"""REST API routes for learner profiles, recommendations and resume positions."""

import functools
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from english_learning_engine.config import get_settings
from english_learning_engine.engine.service import AdaptiveLearningService
from english_learning_engine.exceptions import InvalidObservationError, InvalidPositionError
from english_learning_engine.models.content import MixedRecommendations, RecommendationSettings
from english_learning_engine.models.evaluation import (
    AdjustmentRecommendation,
    LearningPathSuggestion,
    PerformanceEvaluation,
)
from english_learning_engine.models.learner import (
    DifficultyLevel,
    LearnerProfile,
    LearningSpeed,
    SkillTag,
)
from english_learning_engine.models.position import (
    CourseResumeInfo,
    LearningPosition,
    ResumeRecommendation,
)
from english_learning_engine.recommendation.catalog import load_catalog
from english_learning_engine.recommendation.engine import RecommendationEngine
from english_learning_engine.storage.profile_store import JsonProfileStorage, LearnerProfileStore
from english_learning_engine.tracking.resume import ResumeTracker, build_position_backend

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class PreferencesUpdate(BaseModel):
    preferred_difficulty: DifficultyLevel | None = None
    adaptive_mode: bool | None = None
    learning_speed: LearningSpeed | None = None


@functools.lru_cache
def get_learning_service() -> AdaptiveLearningService:
    settings = get_settings()
    store = LearnerProfileStore(JsonProfileStorage(settings.profiles_dir))
    return AdaptiveLearningService(
        store,
        history_limit=settings.history_limit,
        evaluation_window=settings.evaluation_window,
    )


@functools.lru_cache
def get_recommendation_engine() -> RecommendationEngine:
    catalog = load_catalog(get_settings().resolved_catalog_path)
    return RecommendationEngine(catalog, get_learning_service())


@functools.lru_cache
def get_resume_tracker() -> ResumeTracker:
    settings = get_settings()
    return ResumeTracker(
        build_position_backend(settings),
        recommendations_ttl=settings.recommendations_ttl_seconds,
    )


@router.get("/learners/{user_id}")
async def get_learner(
    user_id: str, service: AdaptiveLearningService = Depends(get_learning_service)
) -> LearnerProfile:
    """Return the learner's profile, creating defaults on first access."""
    return service.get_learner_profile(user_id)


@router.post("/learners/{user_id}/performance")
async def record_performance(
    user_id: str,
    observation: dict[str, Any] = Body(...),
    service: AdaptiveLearningService = Depends(get_learning_service),
) -> dict:
    """Apply one performance observation to the learner's skill levels."""
    try:
        new_level = service.record_performance(user_id, observation)
    except InvalidObservationError as e:
        logger.info("observation_rejected", user_id=user_id, errors=len(e.errors))
        raise HTTPException(status_code=422, detail=e.to_dict()) from e
    activity_type = observation.get("activityType", observation.get("activity_type"))
    return {"user_id": user_id, "activity_type": activity_type, "skill_level": new_level}


@router.patch("/learners/{user_id}/preferences")
async def update_preferences(
    user_id: str,
    update: PreferencesUpdate,
    service: AdaptiveLearningService = Depends(get_learning_service),
) -> LearnerProfile:
    return service.store.update_preferences(
        user_id,
        preferred_difficulty=update.preferred_difficulty,
        adaptive_mode=update.adaptive_mode,
        learning_speed=update.learning_speed,
    )


@router.get("/learners/{user_id}/evaluation/{activity_type}")
async def get_evaluation(
    user_id: str,
    activity_type: SkillTag,
    service: AdaptiveLearningService = Depends(get_learning_service),
) -> PerformanceEvaluation:
    return service.evaluate_performance(user_id, activity_type)


@router.get("/learners/{user_id}/difficulty/{activity_type}")
async def get_difficulty(
    user_id: str,
    activity_type: SkillTag,
    service: AdaptiveLearningService = Depends(get_learning_service),
) -> AdjustmentRecommendation:
    return service.recommend_content_difficulty(user_id, activity_type)


@router.get("/learners/{user_id}/path")
async def get_learning_path(
    user_id: str, service: AdaptiveLearningService = Depends(get_learning_service)
) -> LearningPathSuggestion:
    return service.generate_learning_path(user_id)


@router.post("/learners/{user_id}/recommendations")
async def get_recommendations(
    user_id: str,
    settings: RecommendationSettings | None = None,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    tracker: ResumeTracker = Depends(get_resume_tracker),
) -> MixedRecommendations:
    """Mixed course, lesson and practice recommendations."""
    settings = settings or RecommendationSettings()
    recent = []
    if settings.prefer_similar_to_recently_studied:
        recent = await tracker.get_recent_positions(user_id)
    return engine.recommend(user_id, settings, recent)


@router.post("/positions")
async def save_position(
    position: dict[str, Any] = Body(...),
    tracker: ResumeTracker = Depends(get_resume_tracker),
) -> LearningPosition:
    """Record where the learner stopped."""
    try:
        return await tracker.save_position(position)
    except InvalidPositionError as e:
        raise HTTPException(status_code=422, detail=e.to_dict()) from e


@router.get("/learners/{user_id}/resume")
async def get_resume_recommendations(
    user_id: str,
    limit: int = Query(default=3, ge=1),
    force_fresh: bool = False,
    tracker: ResumeTracker = Depends(get_resume_tracker),
) -> list[ResumeRecommendation]:
    return await tracker.get_recommendations(user_id, limit=limit, force_fresh=force_fresh)


@router.get("/learners/{user_id}/in-progress")
async def get_in_progress(
    user_id: str,
    force_fresh: bool = False,
    tracker: ResumeTracker = Depends(get_resume_tracker),
) -> list[CourseResumeInfo]:
    return await tracker.get_in_progress_courses(user_id, force_fresh=force_fresh)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
