"""Resume-learning position models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LearningPosition(BaseModel):
    """Last place a user stopped inside a lesson."""

    model_config = _WIRE_CONFIG

    user_id: str
    course_id: str
    lesson_id: str
    mode: str = ""
    position: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)
    context_data: dict[str, Any] | None = None


class CourseResumeInfo(BaseModel):
    model_config = _WIRE_CONFIG

    course_id: str
    lesson_id: str
    mode: str = ""
    title: str
    lesson_title: str
    progress: float = 0.0
    last_position: int = 0
    last_studied: datetime
    estimated_time_to_complete: float = Field(default=0.0, description="Minutes")


class ResumeRecommendation(BaseModel):
    model_config = _WIRE_CONFIG

    type: Literal["continue", "review", "new"] = "continue"
    course_id: str
    lesson_id: str
    mode: str = ""
    title: str
    description: str = ""
    reason: str = ""
    priority: int = Field(ge=1, le=10)
