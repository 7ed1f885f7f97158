"""
ConversationStore - Persisted assistant chat threads.

Conversations are stored as one list under CONVERSATIONS_STORAGE_KEY; the id
of the active conversation lives in the assistant settings record. Sending a
message to a provider is not handled here: outgoing_messages() only builds
the payload.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from prepper.schemas import (
    DEFAULT_CONVERSATION_ID,
    NEW_CONVERSATION_TITLE,
    ChatMessage,
    Conversation,
)

from .assistant import AISettingsStore
from .storage import StorageTier, CONVERSATIONS_STORAGE_KEY


logger = logging.getLogger(__name__)

# Auto-titles keep this many characters of the first user message
TITLE_LENGTH = 30

# Context is prepended only while a conversation is this short
CONTEXT_MESSAGE_LIMIT = 2


def _now() -> datetime:
    return datetime.now(timezone.utc)


def default_conversation() -> Conversation:
    return Conversation(id=DEFAULT_CONVERSATION_ID, timestamp=_now())


def title_from(content: str) -> str:
    if len(content) > TITLE_LENGTH:
        return content[:TITLE_LENGTH] + "..."
    return content


class ConversationStore:
    """
    Chat conversations for the assistant panel.

    There is always at least one conversation. Deleting the last one creates
    a fresh conversation in its place.
    """

    def __init__(
        self,
        storage: StorageTier,
        settings: AISettingsStore,
        storage_key: str = CONVERSATIONS_STORAGE_KEY,
    ):
        """
        Initialize store.

        Args:
            storage: StorageTier for persistence
            settings: Settings store that records the active conversation id
            storage_key: Key of the conversation list
        """
        self.storage = storage
        self.settings = settings
        self.storage_key = storage_key
        self.conversations: list[Conversation] = [default_conversation()]
        self.conversation_context = ""
        self.is_loaded = False

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load_conversations(self) -> int:
        """
        Restore conversations from storage.

        Unreadable entries are skipped; an empty or unreadable list keeps the
        default conversation.

        Returns:
            Number of conversations held after loading
        """
        data = self.storage.load(self.storage_key)
        if isinstance(data, list):
            restored = []
            for entry in data:
                try:
                    restored.append(Conversation.model_validate(entry))
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable conversation: {e.error_count()} errors")
            if restored:
                self.conversations = restored
        elif data is not None:
            logger.warning(f"Ignoring conversation record of type {type(data).__name__}")
        self.is_loaded = True
        return len(self.conversations)

    def save_conversations(self) -> bool:
        return self.storage.save(self.storage_key, [c.to_record() for c in self.conversations])

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def active_conversation_id(self) -> str:
        return self.settings.settings.active_conversation_id

    def find(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    @property
    def active_conversation(self) -> Conversation:
        """The active conversation, or the first one if the id is stale."""
        return self.find(self.active_conversation_id) or self.conversations[0]

    @property
    def messages(self) -> list[ChatMessage]:
        conversation = self.find(self.active_conversation_id)
        return conversation.messages if conversation else []

    @property
    def chat_history(self) -> list[ChatMessage]:
        """User and assistant turns only; system notices are left out."""
        return [m for m in self.messages if m.role in ("user", "assistant")]

    @property
    def sorted_conversations(self) -> list[Conversation]:
        """Newest activity first."""
        return sorted(self.conversations, key=lambda c: c.timestamp, reverse=True)

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    def _next_id(self) -> str:
        stamp = int(time.time() * 1000)
        while self.find(f"conv-{stamp}") is not None:
            stamp += 1
        return f"conv-{stamp}"

    def create_new_conversation(self) -> str:
        """Append an empty conversation and make it active. Returns its id."""
        conversation = Conversation(id=self._next_id(), timestamp=_now())
        self.conversations.append(conversation)
        self.save_conversations()
        self.settings.set_active_conversation(conversation.id)
        return conversation.id

    def switch_conversation(self, conversation_id: str) -> bool:
        if self.find(conversation_id) is None:
            return False
        self.settings.set_active_conversation(conversation_id)
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        """
        Remove a conversation.

        If it was active, the first remaining conversation becomes active, or
        a new one is created when none remain.

        Returns:
            True if the conversation existed
        """
        conversation = self.find(conversation_id)
        if conversation is None:
            return False

        self.conversations.remove(conversation)
        if self.active_conversation_id == conversation_id:
            if self.conversations:
                self.settings.set_active_conversation(self.conversations[0].id)
            else:
                self.create_new_conversation()
        self.save_conversations()
        return True

    def update_conversation_title(self, conversation_id: str, title: str) -> bool:
        conversation = self.find(conversation_id)
        if conversation is None:
            return False
        conversation.title = title
        self.save_conversations()
        return True

    def clear_active_conversation(self) -> bool:
        """Empty the active conversation and reset its title."""
        conversation = self.find(self.active_conversation_id)
        if conversation is None:
            return False
        conversation.messages = []
        conversation.title = NEW_CONVERSATION_TITLE
        self.save_conversations()
        return True

    def clear_all_conversations(self):
        """Replace every conversation with a single empty default one."""
        self.conversations = [default_conversation()]
        self.save_conversations()
        self.settings.set_active_conversation(DEFAULT_CONVERSATION_ID)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def add_message(self, role: str, content: str) -> Optional[ChatMessage]:
        """
        Append a message to the active conversation.

        The first user message also titles an untitled conversation.

        Returns:
            The stored message, or None if no conversation is active

        Raises:
            ValueError: If role is not user, assistant or system
        """
        conversation = self.find(self.active_conversation_id)
        if conversation is None:
            return None

        message = ChatMessage(role=role, content=content, timestamp=_now())
        conversation.messages.append(message)
        conversation.timestamp = message.timestamp
        if conversation.title == NEW_CONVERSATION_TITLE and role == "user":
            conversation.title = title_from(content)
        self.save_conversations()
        return message

    def set_conversation_context(self, context: str):
        """Session-only context (e.g. the lesson on screen); never persisted."""
        self.conversation_context = context

    def outgoing_messages(self) -> list[dict]:
        """
        Messages to send for the active conversation, oldest first.

        While the conversation is short, a system message carrying the
        conversation context is put in front.
        """
        payload = [{"role": m.role, "content": m.content} for m in self.messages]
        if self.conversation_context and len(self.messages) <= CONTEXT_MESSAGE_LIMIT:
            payload.insert(0, {
                "role": "system",
                "content": (
                    f"Current context: {self.conversation_context}\n\n"
                    "Please use this context to answer questions accurately."
                ),
            })
        return payload
