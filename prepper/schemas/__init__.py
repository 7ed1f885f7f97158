"""
Prepper Schemas - Pydantic models for the curriculum viewer core.

This module exports all schema classes for:
- Curriculum: lessons, challenges, sections, resolved documents
- Progress: per-topic progress trees and versioned storage envelopes
- Assistant: provider catalog, settings, cached responses, chat conversations
- Topic: topic catalog
"""

# Curriculum schemas
from .curriculum import (
    Lesson,
    Challenge,
    Section,
    CurriculumDocument,
    empty_document,
)

# Progress schemas
from .progress import (
    LEGACY_FIELDS,
    LEGACY_VERSION,
    SCOPED_VERSION,
    ItemType,
    Position,
    ProgressTree,
    NextItem,
    LegacyProgress,
    ScopedProgress,
)

# Assistant schemas
from .assistant import (
    CUSTOM_PROVIDER,
    DEFAULT_PROVIDER,
    DEFAULT_VERSION,
    DEFAULT_CONVERSATION_ID,
    NEW_CONVERSATION_TITLE,
    PROVIDER_ENDPOINTS,
    MODEL_MAPPINGS,
    PROVIDER_LABELS,
    AISettings,
    AIResponseRecord,
    ChatMessage,
    Conversation,
    is_known_provider,
)

# Topic schemas
from .topic import (
    TopicDescriptor,
    AVAILABLE_TOPICS,
    DEFAULT_TOPICS,
    DEFAULT_TOPIC,
    SHORT_NAMES,
)

__all__ = [
    # Curriculum
    'Lesson',
    'Challenge',
    'Section',
    'CurriculumDocument',
    'empty_document',
    # Progress
    'LEGACY_FIELDS',
    'LEGACY_VERSION',
    'SCOPED_VERSION',
    'ItemType',
    'Position',
    'ProgressTree',
    'NextItem',
    'LegacyProgress',
    'ScopedProgress',
    # Assistant
    'CUSTOM_PROVIDER',
    'DEFAULT_PROVIDER',
    'DEFAULT_VERSION',
    'DEFAULT_CONVERSATION_ID',
    'NEW_CONVERSATION_TITLE',
    'PROVIDER_ENDPOINTS',
    'MODEL_MAPPINGS',
    'PROVIDER_LABELS',
    'AISettings',
    'AIResponseRecord',
    'ChatMessage',
    'Conversation',
    'is_known_provider',
    # Topic
    'TopicDescriptor',
    'AVAILABLE_TOPICS',
    'DEFAULT_TOPICS',
    'DEFAULT_TOPIC',
    'SHORT_NAMES',
]
