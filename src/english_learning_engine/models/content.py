"""Content catalog and recommendation models."""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from english_learning_engine.models.learner import DifficultyLevel

CatalogDifficulty = Annotated[int, Field(ge=1, le=5)]


class TagCategory(StrEnum):
    """Categories a content tag can belong to."""

    GRAMMAR = "grammar"
    VOCABULARY = "vocabulary"
    PRONUNCIATION = "pronunciation"
    LISTENING = "listening"
    SPEAKING = "speaking"
    READING = "reading"
    WRITING = "writing"
    CULTURE = "culture"


class ContentKind(StrEnum):
    COURSE = "course"
    LESSON = "lesson"
    PRACTICE = "practice"


class ContentTag(BaseModel):
    model_config = {"frozen": True}

    id: str
    name: str
    category: TagCategory


class CourseItem(BaseModel):
    kind: Literal["course"] = "course"
    id: str
    title: str
    description: str = ""
    tags: list[ContentTag] = Field(default_factory=list)
    difficulty: CatalogDifficulty
    popularity: float = Field(default=0.0, ge=0, le=100)


class LessonItem(BaseModel):
    kind: Literal["lesson"] = "lesson"
    id: str
    course_id: str
    title: str
    description: str = ""
    tags: list[ContentTag] = Field(default_factory=list)
    difficulty: CatalogDifficulty
    estimated_time_minutes: float = Field(ge=0)


class PracticeItem(BaseModel):
    kind: Literal["practice"] = "practice"
    id: str
    title: str
    description: str = ""
    activity_type: str
    target_skill: str
    tags: list[ContentTag] = Field(default_factory=list)
    difficulty: CatalogDifficulty
    estimated_time_minutes: float = Field(ge=0)


CatalogItem = Annotated[CourseItem | LessonItem | PracticeItem, Field(discriminator="kind")]


class ContentCatalog(BaseModel):
    """Read-only candidate content supplied by the content-management side."""

    courses: list[CourseItem] = Field(default_factory=list)
    lessons: list[LessonItem] = Field(default_factory=list)
    practices: list[PracticeItem] = Field(default_factory=list)

    def find_course(self, course_id: str) -> CourseItem | None:
        return next((c for c in self.courses if c.id == course_id), None)

    def find_lesson(self, lesson_id: str) -> LessonItem | None:
        return next((lesson for lesson in self.lessons if lesson.id == lesson_id), None)


class RecommendationSettings(BaseModel):
    """Caller-controlled knobs for a recommendation request."""

    max_recommendations: int = Field(default=8, ge=0)
    include_courses: bool = True
    include_lessons: bool = True
    include_practices: bool = True
    preferred_tags: list[ContentTag] = Field(default_factory=list)
    exclude_tags: list[ContentTag] = Field(default_factory=list)
    prefer_similar_to_recently_studied: bool = False
    prefer_target_weak_areas: bool = True
    difficulty: DifficultyLevel | Literal["adaptive"] | CatalogDifficulty = "adaptive"


class CourseRecommendation(BaseModel):
    course_id: str
    title: str
    description: str = ""
    match_score: int = Field(ge=0, le=100)
    tags: list[ContentTag]
    difficulty: int
    reasons: list[str] = Field(min_length=1)


class LessonRecommendation(BaseModel):
    lesson_id: str
    course_id: str
    title: str
    description: str = ""
    match_score: int = Field(ge=0, le=100)
    tags: list[ContentTag]
    difficulty: int
    estimated_time_minutes: float
    reasons: list[str] = Field(min_length=1)


class PracticeRecommendation(BaseModel):
    id: str
    title: str
    description: str = ""
    activity_type: str
    target_skill: str
    match_score: int = Field(ge=0, le=100)
    tags: list[ContentTag]
    difficulty: int
    estimated_time_minutes: float
    reasons: list[str] = Field(min_length=1)


class MixedRecommendations(BaseModel):
    courses: list[CourseRecommendation] = Field(default_factory=list)
    lessons: list[LessonRecommendation] = Field(default_factory=list)
    practices: list[PracticeRecommendation] = Field(default_factory=list)
