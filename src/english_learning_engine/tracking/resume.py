"""Resume-learning tracker: last positions, continue suggestions, in-progress courses."""

import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any
from urllib.parse import quote

import structlog
from pydantic import ValidationError

from english_learning_engine.config import Settings
from english_learning_engine.exceptions import InvalidPositionError
from english_learning_engine.models.position import (
    CourseResumeInfo,
    LearningPosition,
    ResumeRecommendation,
)
from english_learning_engine.storage.positions import (
    FallbackPositionBackend,
    LocalPositionBackend,
    PositionBackend,
    RemotePositionBackend,
)

logger = structlog.get_logger()

DEFAULT_RECOMMENDATIONS_TTL = 600.0
REQUIRED_KEYS = ("user_id", "course_id", "lesson_id")
_CAMEL_KEYS = {"user_id": "userId", "course_id": "courseId", "lesson_id": "lessonId"}


def build_position_backend(settings: Settings) -> PositionBackend:
    """Local store, fronted by the remote API when a backend URL is configured."""
    local = LocalPositionBackend(prefix=settings.position_storage_prefix)
    if not settings.position_backend_url:
        return local
    remote = RemotePositionBackend(
        settings.position_backend_url, timeout=settings.position_backend_timeout
    )
    return FallbackPositionBackend(remote, local)


def _missing_keys(data: Mapping[str, Any]) -> list[str]:
    return [
        key for key in REQUIRED_KEYS if not (data.get(key) or data.get(_CAMEL_KEYS[key]))
    ]


def generate_resume_url(
    course_id: str | None, lesson_id: str | None, mode: str | None, position: int = 0
) -> str:
    """Deep link back into a lesson, or the course list when incomplete."""
    if not (course_id and lesson_id and mode):
        return "/my-courses"
    course, lesson = quote(course_id, safe=""), quote(lesson_id, safe="")
    url = f"/courses/{course}/lessons/{lesson}/{quote(mode, safe='')}"
    if position > 0:
        url += f"?position={position}"
    return url


class ResumeTracker:
    """Tracks where learners stopped and what they should continue.

    Last positions are cached per (user, course, lesson). Continue
    recommendations and in-progress courses are cached per user for
    ``recommendations_ttl`` seconds; saving a position clears the user's
    derived caches.

    Args:
        backend: Position storage.
        recommendations_ttl: Seconds a derived view stays fresh.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        backend: PositionBackend | None = None,
        recommendations_ttl: float = DEFAULT_RECOMMENDATIONS_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend if backend is not None else LocalPositionBackend()
        self.recommendations_ttl = recommendations_ttl
        self._clock = clock
        self._positions: dict[tuple[str, str, str | None], LearningPosition] = {}
        self._recommendations: dict[
            tuple[str, int], tuple[float, list[ResumeRecommendation]]
        ] = {}
        self._in_progress: dict[str, tuple[float, list[CourseResumeInfo]]] = {}

    def _fresh(self, stored_at: float) -> bool:
        return self._clock() - stored_at < self.recommendations_ttl

    async def save_position(
        self, position: LearningPosition | Mapping[str, Any]
    ) -> LearningPosition:
        """Store a position stamped with the current time.

        Raises:
            InvalidPositionError: If user, course or lesson id is missing.
        """
        now = datetime.now()
        if isinstance(position, LearningPosition):
            missing = _missing_keys(position.model_dump())
            if missing:
                raise InvalidPositionError(missing)
            position = position.model_copy(update={"timestamp": now})
        else:
            missing = _missing_keys(position)
            if missing:
                raise InvalidPositionError(missing)
            data = {k: v for k, v in position.items() if k != "timestamp"}
            try:
                position = LearningPosition.model_validate({**data, "timestamp": now})
            except ValidationError as e:
                raise InvalidPositionError(
                    [".".join(str(p) for p in err["loc"]) for err in e.errors()]
                ) from e

        self._positions[(position.user_id, position.course_id, position.lesson_id)] = position
        self._positions[(position.user_id, position.course_id, None)] = position
        saved = await self.backend.save(position)
        self.clear_user_cache(position.user_id, keep_positions=True)
        logger.info(
            "position_saved",
            user_id=position.user_id,
            course_id=position.course_id,
            lesson_id=position.lesson_id,
            position=position.position,
        )
        return saved

    async def get_last_position(
        self, user_id: str, course_id: str, lesson_id: str | None = None
    ) -> LearningPosition | None:
        """Most specific stored position; without a lesson, the newest for the course."""
        key = (user_id, course_id, lesson_id)
        cached = self._positions.get(key)
        if cached is not None:
            return cached
        position = await self.backend.fetch_position(user_id, course_id, lesson_id)
        if position is not None:
            self._positions[key] = position
        return position

    async def get_recommendations(
        self, user_id: str, limit: int = 3, force_fresh: bool = False
    ) -> list[ResumeRecommendation]:
        cached = self._recommendations.get((user_id, limit))
        if cached is not None and not force_fresh and self._fresh(cached[0]):
            return cached[1]

        recommendations = await self.backend.fetch_recommendations(user_id, limit)
        recommendations = recommendations[:limit]
        self._recommendations[(user_id, limit)] = (self._clock(), recommendations)
        return recommendations

    async def get_in_progress_courses(
        self, user_id: str, force_fresh: bool = False
    ) -> list[CourseResumeInfo]:
        cached = self._in_progress.get(user_id)
        if cached is not None and not force_fresh and self._fresh(cached[0]):
            return cached[1]

        courses = await self.backend.fetch_in_progress(user_id)
        self._in_progress[user_id] = (self._clock(), courses)
        return courses

    async def get_recent_positions(
        self, user_id: str, limit: int = 5
    ) -> list[LearningPosition]:
        positions = await self.backend.list_positions(user_id)
        positions.sort(key=lambda p: p.timestamp, reverse=True)
        return positions[:limit]

    def generate_resume_url(
        self,
        course_id: str | None,
        lesson_id: str | None,
        mode: str | None,
        position: int = 0,
    ) -> str:
        return generate_resume_url(course_id, lesson_id, mode, position)

    def clear_user_cache(self, user_id: str, keep_positions: bool = False) -> None:
        """Forget cached views for one user."""
        for key in [k for k in self._recommendations if k[0] == user_id]:
            del self._recommendations[key]
        self._in_progress.pop(user_id, None)
        if not keep_positions:
            for key in [k for k in self._positions if k[0] == user_id]:
                del self._positions[key]
