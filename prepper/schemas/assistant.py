"""
AI assistant schemas for Prepper.

Defines the provider catalog plus Pydantic models for:
- Assistant settings (provider, credentials, custom endpoint)
- Cached assistant responses keyed by topic and section
- Chat conversations and their messages
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


CUSTOM_PROVIDER = "other"
DEFAULT_PROVIDER = "claude-3-7-sonnet"
DEFAULT_VERSION = "latest"
DEFAULT_CONVERSATION_ID = "default"
NEW_CONVERSATION_TITLE = "New Conversation"

PROVIDER_ENDPOINTS = {
    "claude-3-5-sonnet": "https://api.anthropic.com/v1/messages",
    "claude-3-7-sonnet": "https://api.anthropic.com/v1/messages",
    "claude-3-opus": "https://api.anthropic.com/v1/messages",
    "claude-3-haiku": "https://api.anthropic.com/v1/messages",
    "gpt-4": "https://api.openai.com/v1/chat/completions",
    "gpt-4o": "https://api.openai.com/v1/chat/completions",
    "gpt-o1": "https://api.openai.com/v1/chat/completions",
    "deepseek-reasoner": "https://api.deepseek.com/chat/completions",
    "grok-3": "https://api.grok.xai.com/v1/completions",
    "mistral-large": "https://api.mistral.ai/v1/chat/completions",
    "llama-3": "https://api.llama.ai/v1/chat/completions",
    "gemini-1.5-pro": "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-pro",
}

MODEL_MAPPINGS = {
    "claude-3-5-sonnet": "claude-3-5-sonnet-20240620",
    "claude-3-7-sonnet": "claude-3-7-sonnet-20250219",
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-haiku": "claude-3-haiku-20240307",
    "gpt-4": "gpt-4-turbo-2024-04-09",
    "gpt-4o": "gpt-4o-2024-05-13",
    "gpt-o1": "gpt-o1-2024-05-13",
    "deepseek-reasoner": "deepseek-reasoner:latest",
    "grok-3": "grok-3",
    "mistral-large": "mistral-large-latest",
    "llama-3": "llama-3-70b-8192",
    "gemini-1.5-pro": "gemini-1.5-pro-latest",
}

PROVIDER_LABELS = {
    "claude-3-5-sonnet": "Claude 3.5 Sonnet",
    "claude-3-7-sonnet": "Claude 3.7 Sonnet",
    "claude-3-opus": "Claude 3 Opus",
    "claude-3-haiku": "Claude 3 Haiku",
    "gpt-4": "GPT-4 Turbo",
    "gpt-4o": "GPT-4o",
    "gpt-o1": "GPT-o1",
    "deepseek-reasoner": "DeepSeek-R1",
    "grok-3": "Grok 3",
    "mistral-large": "Mistral Large",
    "llama-3": "Llama 3",
    "gemini-1.5-pro": "Gemini 1.5 Pro",
    CUSTOM_PROVIDER: "Other...",
}


def is_known_provider(provider: str) -> bool:
    return provider == CUSTOM_PROVIDER or provider in PROVIDER_ENDPOINTS


class AISettings(BaseModel):
    """Assistant configuration, persisted as one record."""
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    provider: str = DEFAULT_PROVIDER
    api_key: str = Field("", alias="apiKey")
    version: str = DEFAULT_VERSION
    custom_model: str = Field("", alias="customModel")
    custom_endpoint: str = Field("", alias="customEndpoint")
    custom_headers: str = Field("", alias="customHeaders")
    system_prompt: str = Field("", alias="systemPrompt")
    terms_accepted: bool = Field(False, alias="termsAccepted")
    active_conversation_id: str = Field(DEFAULT_CONVERSATION_ID, alias="activeConversationId")

    @field_validator("provider")
    @classmethod
    def provider_in_catalog(cls, v: str) -> str:
        if not is_known_provider(v):
            raise ValueError(f"Unknown AI provider: {v}")
        return v

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class AIResponseRecord(BaseModel):
    """One cached assistant response. Replaced whole, never patched."""
    model_config = ConfigDict(populate_by_name=True)

    response: str
    code: Optional[str] = None
    timestamp: datetime
    provider: str
    topic: str
    section_id: str = Field(alias="sectionId")

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime


class Conversation(BaseModel):
    """One chat thread; timestamp tracks the latest message."""
    id: str
    title: str = NEW_CONVERSATION_TITLE
    messages: list[ChatMessage] = []
    timestamp: datetime

    def to_record(self) -> dict:
        return self.model_dump(mode="json")
