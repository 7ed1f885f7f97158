"""
ProgressLedger - Track learner progress per topic through the StorageTier.

Stores one progress tree per topic inside a single versioned record:
- Lesson and challenge completion (sparse maps)
- Saved editor code for lessons and challenges
- Current position

Legacy flat records (one tree, no topic scoping) are adopted into the active
topic once and rewritten in the scoped shape.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from prepper.schemas import (
    LEGACY_FIELDS,
    LEGACY_VERSION,
    SCOPED_VERSION,
    ItemType,
    LegacyProgress,
    NextItem,
    Position,
    ProgressTree,
    ScopedProgress,
)

from .resolver import CurriculumResolver
from .storage import StorageTier, PROGRESS_STORAGE_KEY
from .topics import TopicContext


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Migration
# -----------------------------------------------------------------------------


def _first_completed_position(tree: ProgressTree) -> Position:
    if not tree.completed_lessons:
        return Position()
    section = min(tree.completed_lessons)
    return Position(section=section, lesson=min(tree.completed_lessons[section]))


def migrate_progress_record(raw: Any, active_topic: str) -> tuple[ScopedProgress, bool]:
    """
    Bring a stored progress record to the scoped (v2) shape.

    Precedence when a record carries both shapes: topicProgress wins and the
    flat fields are discarded. Topic entries that are not progress objects are
    dropped; unreadable leaves inside a tree are dropped by ProgressTree.

    Args:
        raw: Value loaded from storage (any shape, possibly None)
        active_topic: Topic that adopts a legacy flat tree

    Returns:
        Tuple of (scoped progress, whether storage must be rewritten)
    """
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning(f"Ignoring progress record of type {type(raw).__name__}")
        return ScopedProgress(active_topic=active_topic), raw is not None

    scoped = raw.get("topicProgress")
    has_flat = raw.get("version") == LEGACY_VERSION or any(f in raw for f in LEGACY_FIELDS)

    if isinstance(scoped, dict):
        rewrite = raw.get("version") != SCOPED_VERSION
        if has_flat:
            logger.warning("Progress record holds both scoped and flat data; keeping scoped data")
            rewrite = True

        topics = {}
        for topic, tree in scoped.items():
            try:
                topics[topic] = ProgressTree.model_validate(tree)
            except ValidationError as e:
                logger.warning(f"Dropping unreadable progress for topic {topic!r}: {e.error_count()} errors")
                rewrite = True

        stored_active = raw.get("activeTopic")
        return ScopedProgress(
            active_topic=stored_active if isinstance(stored_active, str) else active_topic,
            topic_progress=topics,
        ), rewrite

    if has_flat:
        flat = {k: v for k, v in raw.items() if k in LEGACY_FIELDS}
        legacy = LegacyProgress.model_validate({**flat, "version": LEGACY_VERSION})
        tree = ProgressTree.model_validate(legacy.model_dump(exclude={"version"}))
        # Older releases left the position at section 0 while recording completions
        if tree.completed_lessons and tree.current_lesson.section == 0:
            tree.current_lesson = _first_completed_position(tree)

        logger.info(f"Migrated legacy progress into topic {active_topic!r}")
        return ScopedProgress(active_topic=active_topic, topic_progress={active_topic: tree}), True

    if raw:
        logger.warning(f"Ignoring progress record with unknown keys: {sorted(raw)}")
    return ScopedProgress(active_topic=active_topic), bool(raw)


# -----------------------------------------------------------------------------
# Ledger
# -----------------------------------------------------------------------------


class ProgressLedger:
    """
    Per-topic progress backed by the StorageTier.

    Section and lesson indices are 0-based throughout. Every mutation is
    persisted in a single write of the whole scoped record.
    """

    def __init__(
        self,
        storage: StorageTier,
        resolver: CurriculumResolver,
        context: TopicContext,
        storage_key: str = PROGRESS_STORAGE_KEY,
    ):
        """
        Initialize ledger.

        Args:
            storage: StorageTier for persistence
            resolver: CurriculumResolver for structure-dependent queries
            context: Session context naming the active topic
            storage_key: Key of the scoped progress record
        """
        self.storage = storage
        self.resolver = resolver
        self.context = context
        self.storage_key = storage_key
        self.topic_progress: dict[str, ProgressTree] = {}
        self.is_loaded = False

    @property
    def topic(self) -> str:
        return self.context.current_topic

    def tree_for(self, topic: str) -> ProgressTree:
        """Progress tree for topic, created empty on first access."""
        if topic not in self.topic_progress:
            self.topic_progress[topic] = ProgressTree()
        return self.topic_progress[topic]

    @property
    def progress(self) -> ProgressTree:
        """Progress tree of the active topic."""
        return self.tree_for(self.topic)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load_progress(self) -> bool:
        """
        Load progress from storage, migrating a legacy record if present.

        Returns:
            True if the stored record was rewritten into the scoped shape
        """
        raw = self.storage.load(self.storage_key)
        scoped, rewrite = migrate_progress_record(raw, self.topic)
        self.topic_progress = scoped.topic_progress
        self.tree_for(self.topic)
        self.is_loaded = True
        self.save_progress()
        return rewrite

    def save_progress(self) -> bool:
        record = ScopedProgress(active_topic=self.topic, topic_progress=self.topic_progress)
        return self.storage.save(self.storage_key, record.to_record())

    # -------------------------------------------------------------------------
    # Lessons
    # -------------------------------------------------------------------------

    def complete_lesson(self, section: int, lesson: int):
        """Mark a lesson completed and make it the current position."""
        position = Position(section=section, lesson=lesson)
        tree = self.progress
        tree.completed_lessons.setdefault(section, {})[lesson] = True
        tree.current_lesson = position
        self.save_progress()

    def uncomplete_lesson(self, section: int, lesson: int):
        tree = self.progress
        lessons = tree.completed_lessons.get(section)
        if lessons is not None:
            lessons.pop(lesson, None)
            if not lessons:
                del tree.completed_lessons[section]
        self.save_progress()

    def is_lesson_completed(self, section: int, lesson: int) -> bool:
        return bool(self.progress.completed_lessons.get(section, {}).get(lesson))

    def save_lesson_code(self, section: int, lesson: int, code: str):
        self.progress.lesson_code.setdefault(section, {})[lesson] = code
        self.save_progress()

    def get_lesson_code(self, section: int, lesson: int) -> str:
        return self.progress.lesson_code.get(section, {}).get(lesson, "")

    # -------------------------------------------------------------------------
    # Challenges
    # -------------------------------------------------------------------------

    async def complete_challenge(self, section: int):
        """
        Mark a section challenge completed.

        Advances the current position to the first lesson of the next section
        when the resolved curriculum has one.
        """
        topic = self.topic
        curriculum = await self.resolver.get_curriculum(topic)
        tree = self.tree_for(topic)
        tree.completed_challenges[section] = True
        if section < len(curriculum) - 1:
            tree.current_lesson = Position(section=section + 1, lesson=0)
        self.save_progress()

    def uncomplete_challenge(self, section: int):
        self.progress.completed_challenges.pop(section, None)
        self.save_progress()

    def is_challenge_completed(self, section: int) -> bool:
        return bool(self.progress.completed_challenges.get(section))

    def save_challenge_code(self, section: int, code: str):
        self.progress.challenge_code[section] = code
        self.save_progress()

    def get_challenge_code(self, section: int) -> str:
        return self.progress.challenge_code.get(section, "")

    # -------------------------------------------------------------------------
    # Position
    # -------------------------------------------------------------------------

    @property
    def current_position(self) -> Position:
        return self.progress.current_lesson

    def update_current_position(self, section: int, lesson: int):
        self.progress.current_lesson = Position(section=section, lesson=lesson)
        self.save_progress()

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    def has_any_progress(self) -> bool:
        tree = self.progress
        return (
            tree.current_lesson.section > 0
            or bool(tree.completed_lessons)
            or bool(tree.completed_challenges)
        )

    async def overall_progress(self) -> float:
        """
        Completed fraction of the active topic's curriculum.

        Counts every lesson and every section challenge; 0.0 when the
        curriculum has nothing to count.
        """
        topic = self.topic
        curriculum = await self.resolver.get_curriculum(topic)
        tree = self.tree_for(topic)

        total = 0
        completed = 0
        for section_index, section in enumerate(curriculum):
            done = tree.completed_lessons.get(section_index, {})
            for lesson_index in range(len(section.lessons)):
                total += 1
                if done.get(lesson_index):
                    completed += 1
            if section.challenge is not None:
                total += 1
                if tree.completed_challenges.get(section_index):
                    completed += 1

        return completed / total if total > 0 else 0.0

    async def next_uncompleted_item(self) -> Optional[NextItem]:
        """
        First uncompleted item in curriculum order.

        Scans sections ascending; within a section, lessons ascending and
        then the challenge. Returns None when everything is completed or no
        curriculum resolves.
        """
        topic = self.topic
        curriculum = await self.resolver.get_curriculum(topic)
        tree = self.tree_for(topic)

        for section_index, section in enumerate(curriculum):
            done = tree.completed_lessons.get(section_index, {})
            for lesson_index in range(len(section.lessons)):
                if not done.get(lesson_index):
                    return NextItem(type=ItemType.LESSON, section=section_index, lesson=lesson_index)
            if section.challenge is not None and not tree.completed_challenges.get(section_index):
                return NextItem(type=ItemType.CHALLENGE, section=section_index)
        return None

    async def is_section_completed(self, section: int) -> bool:
        """
        True when every lesson and the challenge (if any) are completed.

        A section without lessons never counts as completed.
        """
        topic = self.topic
        curriculum = await self.resolver.get_curriculum(topic)
        if section < 0 or section >= len(curriculum):
            return False
        target = curriculum[section]
        if not target.lessons:
            return False

        tree = self.tree_for(topic)
        done = tree.completed_lessons.get(section, {})
        if not all(done.get(i) for i in range(len(target.lessons))):
            return False
        if target.challenge is not None and not tree.completed_challenges.get(section):
            return False
        return True

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset_progress(self):
        """Reset progress for the active topic only."""
        self.topic_progress[self.topic] = ProgressTree()
        self.save_progress()

    def reset_all_progress(self):
        self.topic_progress = {}
        self.tree_for(self.topic)
        self.save_progress()
