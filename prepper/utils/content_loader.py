"""
Curriculum artifact loader for Prepper.

Loads YAML curriculum artifacts from a per-topic directory layout:

    <curriculum_dir>/<topic>/curriculum.yaml             root document
    <curriculum_dir>/<topic>/sections/section1.yaml      first section
    <curriculum_dir>/<topic>/interview_questions.yaml    question list
"""

from pathlib import Path
from typing import Any
import yaml


ROOT_DOCUMENT = "curriculum.yaml"
FIRST_SECTION_DOCUMENT = Path("sections") / "section1.yaml"
QUESTIONS_DOCUMENT = "interview_questions.yaml"


def load_document(file_path: Path) -> Any:
    """
    Load one YAML artifact.

    Args:
        file_path: Path to a .yaml file

    Returns:
        Parsed YAML content (mapping or list)

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Curriculum artifact not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def topic_artifacts(curriculum_dir: Path, topic: str) -> dict[str, Path]:
    """
    List the artifacts present for one topic.

    Returns:
        Dict with any of the keys "root", "first_section", "questions"
    """
    topic_dir = curriculum_dir / topic
    candidates = {
        "root": topic_dir / ROOT_DOCUMENT,
        "first_section": topic_dir / FIRST_SECTION_DOCUMENT,
        "questions": topic_dir / QUESTIONS_DOCUMENT,
    }
    return {kind: path for kind, path in candidates.items() if path.exists()}


def get_available_topics(curriculum_dir: Path) -> list[str]:
    """
    List topic directories under curriculum_dir.

    Returns:
        Sorted topic ids (directory names)
    """
    if not curriculum_dir.exists():
        return []
    return sorted(p.name for p in curriculum_dir.iterdir() if p.is_dir())
