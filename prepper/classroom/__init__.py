"""
Prepper Classroom - Runtime components for progress and curriculum state.

This module provides:
- StorageTier: two-tier key/value persistence with graceful degradation
- CurriculumResolver: topic -> curriculum resolution and indexed access
- TopicRegistry: active topic and curriculum availability
- ProgressLedger: per-topic progress with legacy migration
- AISettingsStore / ResponseCache: assistant settings and cached responses
- ConversationStore: persisted assistant chat threads
- ThemePreference: persisted dark-mode flag
"""

from .storage import (
    StorageTier,
    SQLiteTier,
    StorageQuotaExceeded,
    reduce_to_active_topic,
    PROGRESS_STORAGE_KEY,
    SETTINGS_STORAGE_KEY,
    RESPONSES_STORAGE_KEY,
    TOPIC_STORAGE_KEY,
    THEME_STORAGE_KEY,
    CONVERSATIONS_STORAGE_KEY,
)

from .resolver import (
    CurriculumManifest,
    CurriculumResolver,
    CurriculumSource,
    CurriculumUnavailable,
    CurriculumNotFound,
    ResolutionFailure,
    TopicLoaders,
    python_module_loader,
)

from .topics import (
    TopicContext,
    TopicRegistry,
)

from .progress import (
    ProgressLedger,
    migrate_progress_record,
)

from .assistant import (
    AISettingsStore,
    ResponseCache,
    validate_api_key,
)

from .chat import ConversationStore

from .theme import ThemePreference

__all__ = [
    # Storage
    "StorageTier",
    "SQLiteTier",
    "StorageQuotaExceeded",
    "reduce_to_active_topic",
    "PROGRESS_STORAGE_KEY",
    "SETTINGS_STORAGE_KEY",
    "RESPONSES_STORAGE_KEY",
    "TOPIC_STORAGE_KEY",
    "THEME_STORAGE_KEY",
    "CONVERSATIONS_STORAGE_KEY",
    # Resolver
    "CurriculumManifest",
    "CurriculumResolver",
    "CurriculumSource",
    "CurriculumUnavailable",
    "CurriculumNotFound",
    "ResolutionFailure",
    "TopicLoaders",
    "python_module_loader",
    # Topics
    "TopicContext",
    "TopicRegistry",
    # Progress
    "ProgressLedger",
    "migrate_progress_record",
    # Assistant
    "AISettingsStore",
    "ResponseCache",
    "validate_api_key",
    # Chat
    "ConversationStore",
    # Theme
    "ThemePreference",
]
