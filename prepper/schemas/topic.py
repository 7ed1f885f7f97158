"""
Topic catalog for Prepper.

A topic is a top-level subject area with its own curriculum and progress tree.
"""

from pydantic import BaseModel, ConfigDict


class TopicDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


AVAILABLE_TOPICS: tuple[TopicDescriptor, ...] = (
    TopicDescriptor(id="javascript", label="JavaScript"),
    TopicDescriptor(id="csharp", label="C# .NET"),
    TopicDescriptor(id="typescript", label="TypeScript"),
    TopicDescriptor(id="react", label="React"),
    TopicDescriptor(id="devops", label="Azure DevOps"),
    TopicDescriptor(id="ai", label="AI Concepts"),
)

# Topics shipped with a curriculum; trusted without probing
DEFAULT_TOPICS: tuple[str, ...] = ("javascript", "csharp", "ai", "typescript", "react", "devops")

DEFAULT_TOPIC = "javascript"

SHORT_NAMES = {
    "javascript": "JS",
    "typescript": "TS",
    "csharp": "C#",
    "react": "React",
    "devops": "DevOps",
    "ai": "AI",
}
