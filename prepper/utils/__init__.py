"""Prepper utilities."""

from .content_loader import load_document, topic_artifacts, get_available_topics

__all__ = [
    "load_document",
    "topic_artifacts",
    "get_available_topics",
]
