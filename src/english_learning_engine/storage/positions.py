"""Learning position persistence: remote API, local key-value store, and fallback.

``FallbackPositionBackend`` composes the two: every save is mirrored into
the local store, and any remote failure is logged and answered from the
local store instead.
"""

import json
from collections.abc import MutableMapping
from datetime import datetime
from typing import Any, Protocol, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from english_learning_engine.exceptions import BackendUnavailableError
from english_learning_engine.models.position import (
    CourseResumeInfo,
    LearningPosition,
    ResumeRecommendation,
)

logger = structlog.get_logger()

DEFAULT_PREFIX = "eng_learn_"

ModelT = TypeVar("ModelT", bound=BaseModel)

# (max hours since last study, priority)
RECENCY_BUCKETS: list[tuple[float, int]] = [
    (24, 10),
    (72, 8),
    (168, 6),
    (336, 4),
]
OLDEST_PRIORITY = 2


def calculate_priority(timestamp: datetime, now: datetime | None = None) -> int:
    """Priority 2-10 from how long ago a position was saved."""
    now = now or datetime.now()
    if timestamp.tzinfo is not None and now.tzinfo is None:
        timestamp = timestamp.astimezone().replace(tzinfo=None)
    hours_since = (now - timestamp).total_seconds() / 3600
    for max_hours, priority in RECENCY_BUCKETS:
        if hours_since < max_hours:
            return priority
    return OLDEST_PRIORITY


class PositionBackend(Protocol):
    """Storage for learning positions and the views derived from them."""

    async def save(self, position: LearningPosition) -> LearningPosition: ...

    async def fetch_position(
        self, user_id: str, course_id: str, lesson_id: str | None = None
    ) -> LearningPosition | None: ...

    async def fetch_recommendations(
        self, user_id: str, limit: int
    ) -> list[ResumeRecommendation]: ...

    async def fetch_in_progress(self, user_id: str) -> list[CourseResumeInfo]: ...

    async def list_positions(self, user_id: str) -> list[LearningPosition]: ...


class LocalPositionBackend:
    """Key-value position store.

    Positions are stored as JSON under ``<prefix>position_<user>_<course>_<lesson>``
    with a ``<prefix>latest_<user>_<course>`` pointer to the most recently
    saved lesson of each course.

    Args:
        store: Backing mapping. Defaults to a new dict.
        prefix: Key prefix.
    """

    def __init__(
        self,
        store: MutableMapping[str, str] | None = None,
        prefix: str = DEFAULT_PREFIX,
    ):
        self.store = store if store is not None else {}
        self.prefix = prefix

    def position_key(self, user_id: str, course_id: str, lesson_id: str) -> str:
        return f"{self.prefix}position_{user_id}_{course_id}_{lesson_id}"

    def latest_key(self, user_id: str, course_id: str) -> str:
        return f"{self.prefix}latest_{user_id}_{course_id}"

    def _read(self, key: str) -> LearningPosition | None:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return LearningPosition.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("local_position_corrupt", key=key)
            return None

    async def save(self, position: LearningPosition) -> LearningPosition:
        key = self.position_key(position.user_id, position.course_id, position.lesson_id)
        self.store[key] = position.model_dump_json()
        self.store[self.latest_key(position.user_id, position.course_id)] = position.lesson_id
        return position

    async def fetch_position(
        self, user_id: str, course_id: str, lesson_id: str | None = None
    ) -> LearningPosition | None:
        if lesson_id is None:
            lesson_id = self.store.get(self.latest_key(user_id, course_id))
            if lesson_id is None:
                return None
        return self._read(self.position_key(user_id, course_id, lesson_id))

    async def list_positions(self, user_id: str) -> list[LearningPosition]:
        position_prefix = f"{self.prefix}position_"
        positions = []
        for key in list(self.store):
            if not key.startswith(position_prefix):
                continue
            position = self._read(key)
            if position is not None and position.user_id == user_id:
                positions.append(position)
        return positions

    async def fetch_recommendations(
        self, user_id: str, limit: int
    ) -> list[ResumeRecommendation]:
        """Continue-learning suggestions ranked by recency priority."""
        now = datetime.now()
        positions = sorted(
            await self.list_positions(user_id), key=lambda p: p.timestamp, reverse=True
        )
        recommendations = [
            ResumeRecommendation(
                type="continue",
                course_id=p.course_id,
                lesson_id=p.lesson_id,
                mode=p.mode,
                title="Continue where you left off",
                description="Pick up from the last place you stopped",
                reason="based on locally saved learning history",
                priority=calculate_priority(p.timestamp, now),
            )
            for p in positions
        ]
        # Stable sort keeps newer positions first within a priority bucket
        recommendations.sort(key=lambda r: r.priority, reverse=True)
        return recommendations[:limit]

    async def fetch_in_progress(self, user_id: str) -> list[CourseResumeInfo]:
        """One entry per course, built from its most recent position."""
        latest: dict[str, LearningPosition] = {}
        for position in await self.list_positions(user_id):
            current = latest.get(position.course_id)
            if current is None or position.timestamp > current.timestamp:
                latest[position.course_id] = position

        courses = [
            CourseResumeInfo(
                course_id=p.course_id,
                lesson_id=p.lesson_id,
                mode=p.mode,
                title=f"Course {p.course_id}",
                lesson_title=f"Lesson {p.lesson_id}",
                last_position=p.position,
                last_studied=p.timestamp,
            )
            for p in latest.values()
        ]
        courses.sort(key=lambda c: c.last_studied, reverse=True)
        return courses


class RemotePositionBackend:
    """REST client for the learning position API.

    Transport errors, HTTP errors and malformed payloads all surface as
    ``BackendUnavailableError``. A 404 means "nothing stored".

    Args:
        base_url: API root, e.g. ``https://api.example.com``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body, or None on 404."""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, url, **kwargs)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json() if response.content else None
        except httpx.HTTPError as e:
            raise BackendUnavailableError(operation, str(e)) from e
        except ValueError as e:
            raise BackendUnavailableError(operation, f"invalid JSON: {e}") from e

    @staticmethod
    def _parse_list(operation: str, model: type[ModelT], data: Any) -> list[ModelT]:
        try:
            return [model.model_validate(item) for item in data or []]
        except (TypeError, ValidationError) as e:
            raise BackendUnavailableError(operation, f"invalid payload: {e}") from e

    async def save(self, position: LearningPosition) -> LearningPosition:
        data = await self._request(
            "save",
            "POST",
            "/api/learning/position",
            json=position.model_dump(mode="json", by_alias=True),
        )
        if not data:
            return position
        try:
            return LearningPosition.model_validate(data)
        except ValidationError as e:
            raise BackendUnavailableError("save", f"invalid payload: {e}") from e

    async def fetch_position(
        self, user_id: str, course_id: str, lesson_id: str | None = None
    ) -> LearningPosition | None:
        params = {"userId": user_id, "courseId": course_id}
        if lesson_id:
            params["lessonId"] = lesson_id
        data = await self._request(
            "fetch_position", "GET", "/api/learning/position", params=params
        )
        if not data:
            return None
        try:
            return LearningPosition.model_validate(data)
        except ValidationError as e:
            raise BackendUnavailableError("fetch_position", f"invalid payload: {e}") from e

    async def fetch_recommendations(
        self, user_id: str, limit: int
    ) -> list[ResumeRecommendation]:
        data = await self._request(
            "fetch_recommendations",
            "GET",
            "/api/learning/recommendations",
            params={"userId": user_id, "limit": limit},
        )
        return self._parse_list("fetch_recommendations", ResumeRecommendation, data)

    async def fetch_in_progress(self, user_id: str) -> list[CourseResumeInfo]:
        data = await self._request(
            "fetch_in_progress",
            "GET",
            "/api/learning/in-progress",
            params={"userId": user_id},
        )
        return self._parse_list("fetch_in_progress", CourseResumeInfo, data)

    async def list_positions(self, user_id: str) -> list[LearningPosition]:
        data = await self._request(
            "list_positions",
            "GET",
            "/api/learning/positions",
            params={"userId": user_id},
        )
        return self._parse_list("list_positions", LearningPosition, data)


class FallbackPositionBackend:
    """Remote backend with a local mirror that answers when the remote fails.

    Args:
        primary: Remote backend.
        fallback: Local backend, written on every save.
    """

    def __init__(self, primary: PositionBackend, fallback: PositionBackend):
        self.primary = primary
        self.fallback = fallback

    async def save(self, position: LearningPosition) -> LearningPosition:
        await self.fallback.save(position)
        try:
            return await self.primary.save(position)
        except BackendUnavailableError as e:
            logger.warning("position_backend_unavailable", **e.details)
            return position

    async def fetch_position(
        self, user_id: str, course_id: str, lesson_id: str | None = None
    ) -> LearningPosition | None:
        try:
            return await self.primary.fetch_position(user_id, course_id, lesson_id)
        except BackendUnavailableError as e:
            logger.warning("position_backend_unavailable", **e.details)
            return await self.fallback.fetch_position(user_id, course_id, lesson_id)

    async def fetch_recommendations(
        self, user_id: str, limit: int
    ) -> list[ResumeRecommendation]:
        try:
            return await self.primary.fetch_recommendations(user_id, limit)
        except BackendUnavailableError as e:
            logger.warning("position_backend_unavailable", **e.details)
            return await self.fallback.fetch_recommendations(user_id, limit)

    async def fetch_in_progress(self, user_id: str) -> list[CourseResumeInfo]:
        try:
            return await self.primary.fetch_in_progress(user_id)
        except BackendUnavailableError as e:
            logger.warning("position_backend_unavailable", **e.details)
            return await self.fallback.fetch_in_progress(user_id)

    async def list_positions(self, user_id: str) -> list[LearningPosition]:
        try:
            return await self.primary.list_positions(user_id)
        except BackendUnavailableError as e:
            logger.warning("position_backend_unavailable", **e.details)
            return await self.fallback.list_positions(user_id)
