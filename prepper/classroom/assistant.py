"""
Assistant settings and response cache.

Provides:
- AISettingsStore: provider/credential settings persisted as one record
- ResponseCache: assistant responses keyed by "{topic}-section-{sectionId}"
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from prepper.schemas import (
    CUSTOM_PROVIDER,
    DEFAULT_VERSION,
    MODEL_MAPPINGS,
    PROVIDER_ENDPOINTS,
    PROVIDER_LABELS,
    AIResponseRecord,
    AISettings,
)

from .storage import StorageTier, RESPONSES_STORAGE_KEY, SETTINGS_STORAGE_KEY
from .topics import TopicContext


logger = logging.getLogger(__name__)

GEMINI_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_api_key(provider: str, api_key: str) -> bool:
    """Cheap format check of an API key for the given provider."""
    if not api_key or not api_key.strip():
        return False
    if provider == CUSTOM_PROVIDER:
        return True
    if provider.startswith("claude") and not api_key.startswith("sk-ant"):
        return False
    if provider.startswith("gpt") and not api_key.startswith("sk-"):
        return False
    if provider == "mistral-large" and not api_key.startswith("mis_"):
        return False
    if provider == "gemini-1.5-pro":
        return len(api_key) > 20 and bool(GEMINI_KEY_PATTERN.match(api_key))
    return len(api_key) > 20


class AISettingsStore:
    """Load, edit and persist the assistant settings record."""

    def __init__(self, storage: StorageTier, storage_key: str = SETTINGS_STORAGE_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self.settings = AISettings()
        self.is_loaded = False

    def load_settings(self) -> AISettings:
        """Restore settings; an unreadable record falls back to defaults."""
        data = self.storage.load(self.storage_key)
        if isinstance(data, dict):
            try:
                self.settings = AISettings.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid assistant settings: {e.error_count()} errors")
                self.settings = AISettings()
        self.is_loaded = True
        return self.settings

    def save_settings(self) -> bool:
        return self.storage.save(self.storage_key, self.settings.to_record())

    def _update(self, **changes):
        # validate_assignment rejects unknown providers before anything is saved
        for field, value in changes.items():
            setattr(self.settings, field, value)
        self.save_settings()

    def set_provider(self, provider: str):
        """
        Select a provider from the catalog.

        Raises:
            ValueError: If provider is not in the catalog
        """
        self._update(provider=provider)

    def set_api_key(self, api_key: str):
        self._update(api_key=api_key)

    def set_version(self, version: str):
        self._update(version=version)

    def set_custom_model(self, model: str):
        self._update(custom_model=model)

    def set_custom_endpoint(self, endpoint: str):
        self._update(custom_endpoint=endpoint)

    def set_custom_headers(self, headers: str):
        self._update(custom_headers=headers)

    def set_system_prompt(self, prompt: str):
        self._update(system_prompt=prompt)

    def set_active_conversation(self, conversation_id: str):
        self._update(active_conversation_id=conversation_id)

    def accept_terms(self):
        self._update(terms_accepted=True)

    def delete_api_key(self):
        """Forget the key and every custom connection setting; provider and terms stay."""
        self._update(
            api_key="",
            custom_model="",
            custom_endpoint="",
            custom_headers="",
            version=DEFAULT_VERSION,
            system_prompt="",
        )

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def provider(self) -> str:
        return self.settings.provider

    @property
    def is_custom_provider(self) -> bool:
        return self.settings.provider == CUSTOM_PROVIDER

    @property
    def has_api_key(self) -> bool:
        return bool(self.settings.api_key.strip())

    @property
    def current_provider_label(self) -> str:
        return PROVIDER_LABELS.get(self.settings.provider, "Unknown Provider")

    @property
    def endpoint(self) -> str:
        """Request endpoint; the custom provider uses its configured endpoint."""
        if self.is_custom_provider:
            return self.settings.custom_endpoint
        return PROVIDER_ENDPOINTS[self.settings.provider]

    @property
    def model(self) -> str:
        """
        Model name to request.

        Priority:
        1. Custom model for the custom provider
        2. Explicit version if not "latest"
        3. Catalog mapping for the provider
        """
        if self.is_custom_provider:
            return self.settings.custom_model
        if self.settings.version and self.settings.version != DEFAULT_VERSION:
            return self.settings.version
        return MODEL_MAPPINGS[self.settings.provider]


class ResponseCache:
    """
    Cached assistant responses, scoped by topic and section.

    All entries live in one record; keys are "{topic}-section-{sectionId}".
    """

    def __init__(
        self,
        storage: StorageTier,
        context: TopicContext,
        settings: AISettingsStore,
        storage_key: str = RESPONSES_STORAGE_KEY,
    ):
        self.storage = storage
        self.context = context
        self.settings = settings
        self.storage_key = storage_key
        self.saved_responses: dict[str, dict] = {}

    @staticmethod
    def response_key(topic: str, section_id) -> str:
        return f"{topic}-section-{section_id}"

    def _persist(self) -> bool:
        return self.storage.save(self.storage_key, self.saved_responses)

    def load_saved_responses(self) -> int:
        """Load the cache record. Returns the number of entries."""
        data = self.storage.load(self.storage_key)
        self.saved_responses = data if isinstance(data, dict) else {}
        return len(self.saved_responses)

    def save_response(self, section_id, response: str, code: Optional[str] = None) -> Optional[AIResponseRecord]:
        """
        Upsert the response for section_id under the current topic.

        Returns:
            The stored record, or None if response or section_id is empty
        """
        if not response or section_id in (None, ""):
            return None

        topic = self.context.current_topic
        record = AIResponseRecord(
            response=response,
            code=code,
            timestamp=datetime.now(timezone.utc),
            provider=self.settings.provider,
            topic=topic,
            section_id=str(section_id),
        )
        self.saved_responses[self.response_key(topic, section_id)] = record.to_record()
        self._persist()
        return record

    def get_saved_response(self, section_id) -> Optional[AIResponseRecord]:
        """Cached response for section_id under the current topic, if any."""
        data = self.saved_responses.get(self.response_key(self.context.current_topic, section_id))
        if data is None:
            return None
        try:
            return AIResponseRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached response: {e.error_count()} errors")
            return None

    def clear_saved_response(self, section_id) -> bool:
        key = self.response_key(self.context.current_topic, section_id)
        if key not in self.saved_responses:
            return False
        del self.saved_responses[key]
        self._persist()
        return True

    def clear_topic_responses(self) -> int:
        """
        Remove every response of the current topic.

        An entry must match the full "{topic}-section-" prefix and carry the
        same topic, so "javascript" never sweeps "javascriptx" entries and
        "a" never sweeps entries of a topic named "a-section-b".

        Returns:
            Number of entries removed
        """
        topic = self.context.current_topic
        prefix = self.response_key(topic, "")
        doomed = [
            key for key, data in self.saved_responses.items()
            if key.startswith(prefix) and isinstance(data, dict) and data.get("topic") == topic
        ]
        for key in doomed:
            del self.saved_responses[key]
        if doomed:
            self._persist()
        return len(doomed)

    def clear_all_saved_responses(self):
        self.saved_responses = {}
        self._persist()
