"""
Progress tracking schemas for Prepper.

Defines Pydantic models for learner progress including:
- Current position within a topic
- Per-topic progress tree (sparse completion maps, saved editor code)
- Versioned on-disk envelopes (legacy flat v1, topic-scoped v2)
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Any, Iterator, Literal, Optional
from enum import Enum


LEGACY_VERSION = 1
SCOPED_VERSION = 2

# Fields that identify a flat single-topic record
LEGACY_FIELDS = (
    "completedLessons",
    "completedChallenges",
    "lessonCode",
    "challengeCode",
    "currentLesson",
)


class ItemType(str, Enum):
    LESSON = "lesson"
    CHALLENGE = "challenge"


class Position(BaseModel):
    section: int = Field(0, ge=0)
    lesson: int = Field(0, ge=0)


def _indexed(value: Any) -> Iterator[tuple[int, Any]]:
    """Entries of a JSON object keyed by non-negative integer indices."""
    if not isinstance(value, dict):
        return
    for key, item in value.items():
        try:
            index = int(key)
        except (TypeError, ValueError):
            continue
        if index >= 0:
            yield index, item


class ProgressTree(BaseModel):
    """
    Progress for one topic.

    Completion maps are sparse: an entry is present only when the item is
    completed, and its value is always True. Code maps are independent of
    completion. Unreadable leaves are dropped one by one; an unreadable
    position falls back to the start of the topic.
    """
    model_config = ConfigDict(populate_by_name=True)

    completed_lessons: dict[int, dict[int, bool]] = Field(
        default_factory=dict, alias="completedLessons"
    )
    completed_challenges: dict[int, bool] = Field(
        default_factory=dict, alias="completedChallenges"
    )
    lesson_code: dict[int, dict[int, str]] = Field(default_factory=dict, alias="lessonCode")
    challenge_code: dict[int, str] = Field(default_factory=dict, alias="challengeCode")
    current_lesson: Position = Field(default_factory=Position, alias="currentLesson")

    @field_validator("completed_lessons", mode="before")
    @classmethod
    def keep_completed_lessons(cls, v: Any) -> dict[int, dict[int, bool]]:
        sparse = {}
        for section, lessons in _indexed(v):
            done = {lesson: True for lesson, flag in _indexed(lessons) if flag is True}
            if done:
                sparse[section] = done
        return sparse

    @field_validator("completed_challenges", mode="before")
    @classmethod
    def keep_completed_challenges(cls, v: Any) -> dict[int, bool]:
        return {section: True for section, flag in _indexed(v) if flag is True}

    @field_validator("lesson_code", mode="before")
    @classmethod
    def keep_lesson_code(cls, v: Any) -> dict[int, dict[int, str]]:
        code = {}
        for section, lessons in _indexed(v):
            texts = {lesson: text for lesson, text in _indexed(lessons) if isinstance(text, str)}
            if texts:
                code[section] = texts
        return code

    @field_validator("challenge_code", mode="before")
    @classmethod
    def keep_challenge_code(cls, v: Any) -> dict[int, str]:
        return {section: text for section, text in _indexed(v) if isinstance(text, str)}

    @field_validator("current_lesson", mode="before")
    @classmethod
    def position_or_start(cls, v: Any) -> Position:
        if isinstance(v, Position):
            return v
        try:
            return Position.model_validate(v)
        except ValidationError:
            return Position()

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NextItem(BaseModel):
    """First item a forward scan finds uncompleted."""
    type: ItemType
    section: int
    lesson: Optional[int] = None


class LegacyProgress(ProgressTree):
    """Flat single-topic record written by older releases."""
    version: Literal[1] = LEGACY_VERSION


class ScopedProgress(BaseModel):
    """Current on-disk shape: one progress tree per topic id."""
    model_config = ConfigDict(populate_by_name=True)

    version: Literal[2] = SCOPED_VERSION
    active_topic: Optional[str] = Field(None, alias="activeTopic")
    topic_progress: dict[str, ProgressTree] = Field(default_factory=dict, alias="topicProgress")

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
