"""
Curriculum schemas for Prepper.

Defines Pydantic models for the curriculum structure consumed by the resolver:
- Lessons and section challenges (free-form content, extra fields kept)
- Sections with an ordered lesson list and an optional challenge
- CurriculumDocument: full and shortlist curricula for one topic
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


# -----------------------------------------------------------------------------
# Content items
# -----------------------------------------------------------------------------


class Lesson(BaseModel):
    """A single lesson. Body fields (sections, examples...) pass through untouched."""
    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""


class Challenge(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""


class Section(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""
    lessons: list[Lesson] = []
    challenge: Optional[Challenge] = None


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------


class CurriculumDocument(BaseModel):
    """
    Resolved curriculum for one topic.

    Both lists are ordered; sections are addressed 1-based by the resolver
    accessors and 0-based everywhere else.
    """
    model_config = ConfigDict(populate_by_name=True)

    curriculum: list[Section] = []
    shortlist_curriculum: list[Section] = Field(default=[], alias="shortlistCurriculum")

    @property
    def is_empty(self) -> bool:
        return not self.curriculum and not self.shortlist_curriculum

    def countable_items(self) -> int:
        """Lessons plus section challenges across the full curriculum."""
        return sum(
            len(section.lessons) + (1 if section.challenge else 0)
            for section in self.curriculum
        )


def empty_document() -> CurriculumDocument:
    """The default document returned when every resolution path fails."""
    return CurriculumDocument(curriculum=[], shortlist_curriculum=[])
