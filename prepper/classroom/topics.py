"""
TopicRegistry - Active topic selection and curriculum availability.

Provides:
- TopicContext: the "current topic" value shared by one learner session
- Persisted topic preference
- Probing which catalog topics have a loadable curriculum
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from prepper.schemas import (
    AVAILABLE_TOPICS,
    DEFAULT_TOPIC,
    DEFAULT_TOPICS,
    SHORT_NAMES,
    TopicDescriptor,
)

from .resolver import CurriculumResolver, CurriculumUnavailable
from .storage import StorageTier, TOPIC_STORAGE_KEY


logger = logging.getLogger(__name__)


@dataclass
class TopicContext:
    """
    Current topic for one session.

    Registry, ledger and response cache built for the same session share one
    context; separate contexts never see each other's selection.
    """
    current_topic: str = DEFAULT_TOPIC


class TopicRegistry:
    """
    Track the active topic and which topics have a resolvable curriculum.

    Selection and resolution are independent: set_topic() accepts any id,
    whether or not its curriculum has been confirmed.
    """

    def __init__(
        self,
        storage: StorageTier,
        resolver: CurriculumResolver,
        context: Optional[TopicContext] = None,
        catalog: Iterable[TopicDescriptor] = AVAILABLE_TOPICS,
        default_topics: Iterable[str] = DEFAULT_TOPICS,
    ):
        """
        Initialize registry.

        Args:
            storage: StorageTier holding the topic preference
            resolver: CurriculumResolver used for probing
            context: Shared session context (a fresh one if omitted)
            catalog: Static topic catalog
            default_topics: Topics trusted to have a curriculum
        """
        self.storage = storage
        self.resolver = resolver
        self.context = context or TopicContext()
        self.available_topics: tuple[TopicDescriptor, ...] = tuple(catalog)
        self.default_topics: tuple[str, ...] = tuple(default_topics)
        self.resolved_topics: list[str] = list(self.default_topics)
        self.is_loaded = False

    # -------------------------------------------------------------------------
    # Current topic
    # -------------------------------------------------------------------------

    @property
    def current_topic(self) -> str:
        return self.context.current_topic

    @property
    def current_topic_name(self) -> str:
        """Display label of the current topic."""
        for topic in self.available_topics:
            if topic.id == self.current_topic:
                return topic.label
        return "JavaScript"

    @property
    def topic_short_name(self) -> str:
        """Abbreviated label for narrow displays."""
        if self.current_topic in SHORT_NAMES:
            return SHORT_NAMES[self.current_topic]
        for topic in self.available_topics:
            if topic.id == self.current_topic:
                return topic.label[:2]
        return "JS"

    @property
    def has_curriculum(self) -> bool:
        return self.current_topic in self.resolved_topics

    def set_topic(self, topic: str):
        """Select topic and persist the preference, resolved or not."""
        self.context.current_topic = topic
        self.save_topic_preference()

    def save_topic_preference(self) -> bool:
        return self.storage.save(TOPIC_STORAGE_KEY, {"currentTopic": self.current_topic})

    def load_topic_preference(self) -> str:
        """Restore the current topic from storage, falling back to the default."""
        data = self.storage.load(TOPIC_STORAGE_KEY)
        topic = data.get("currentTopic") if isinstance(data, dict) else None
        self.context.current_topic = topic if isinstance(topic, str) and topic else DEFAULT_TOPIC
        self.is_loaded = True
        return self.current_topic

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    def _mark_resolved(self, topic: str):
        if topic not in self.resolved_topics:
            self.resolved_topics.append(topic)

    async def check_topic_curriculum(self, topic: str) -> bool:
        """
        Check whether topic has a loadable curriculum.

        Tries the root document, then the first-section document. On success
        the topic joins resolved_topics; on failure nothing changes.

        Returns:
            True if either path produced a document
        """
        try:
            await self.resolver.load_root(topic)
        except CurriculumUnavailable as root_error:
            try:
                await self.resolver.load_first_section(topic)
            except CurriculumUnavailable as section_error:
                logger.warning(f"Curriculum not found for topic {topic!r}: {root_error}; {section_error}")
                return False
        self._mark_resolved(topic)
        return True

    async def _check(self, topic: str) -> bool:
        try:
            return await self.check_topic_curriculum(topic)
        except Exception as e:
            logger.warning(f"Curriculum check for topic {topic!r} failed: {e}")
            return False

    async def initialize_topics(self) -> dict[str, bool]:
        """
        Seed the default topics, then check the rest of the catalog.

        Checks run concurrently and fail independently.

        Returns:
            Check outcome per checked topic id
        """
        for topic in self.default_topics:
            self._mark_resolved(topic)

        pending = [t.id for t in self.available_topics if t.id not in self.resolved_topics]
        outcomes = await asyncio.gather(*(self._check(topic) for topic in pending))
        return dict(zip(pending, outcomes))
