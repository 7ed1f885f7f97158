"""
CurriculumResolver - Resolve a topic id to its curriculum document.

Provides:
- CurriculumManifest: explicit table of per-topic loader callables
- Resolution chain: root document -> first-section document -> empty default
- Indexed accessors (1-based ids) over the resolved document
"""

import asyncio
import importlib
import inspect
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from prepper.config import DEFAULT_RESOLVE_TIMEOUT
from prepper.schemas import CurriculumDocument, Lesson, Section, empty_document
from prepper.utils.content_loader import load_document, topic_artifacts, get_available_topics


logger = logging.getLogger(__name__)

# A loader is a zero-argument callable, sync or async, returning an artifact
Loader = Callable[[], Any]


class ResolutionFailure(str, Enum):
    """Why one resolution path did not produce a document."""
    NOT_REGISTERED = "not_registered"   # No loader for this path
    LOAD_FAILED = "load_failed"         # Loader raised
    INVALID = "invalid"                 # Loader returned an unusable artifact
    TIMEOUT = "timeout"                 # Loader exceeded resolve_timeout


class CurriculumUnavailable(Exception):
    """A single resolution path failed for a topic."""

    def __init__(self, topic: str, path: str, reason: ResolutionFailure, detail: str = ""):
        self.topic = topic
        self.path = path
        self.reason = reason
        message = f"{path} curriculum for {topic!r} unavailable: {reason.value}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class CurriculumNotFound(LookupError):
    """An accessor was asked for a section or lesson that does not exist."""


@dataclass
class TopicLoaders:
    """Loaders registered for one topic."""
    root: Optional[Loader] = None
    first_section: Optional[Loader] = None
    questions: Optional[Loader] = None


@dataclass
class CurriculumSource:
    """
    A resolved curriculum plus any accessors its artifact exported.

    origin is "root", "section" or "default" depending on which path won.
    """
    document: CurriculumDocument
    get_section: Optional[Callable[[int], Any]] = None
    get_shortlist_section: Optional[Callable[[int], Any]] = None
    origin: str = "default"


# -----------------------------------------------------------------------------
# Manifest
# -----------------------------------------------------------------------------


class CurriculumManifest:
    """Lookup table from topic id to its loaders."""

    def __init__(self):
        self._entries: dict[str, TopicLoaders] = {}

    def register(
        self,
        topic: str,
        root: Optional[Loader] = None,
        first_section: Optional[Loader] = None,
        questions: Optional[Loader] = None,
    ):
        """Register loaders for topic; slots left as None keep earlier registrations."""
        entry = self._entries.setdefault(topic, TopicLoaders())
        if root is not None:
            entry.root = root
        if first_section is not None:
            entry.first_section = first_section
        if questions is not None:
            entry.questions = questions

    def unregister(self, topic: str):
        self._entries.pop(topic, None)

    def get(self, topic: str) -> Optional[TopicLoaders]:
        return self._entries.get(topic)

    def topics(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, topic: str) -> bool:
        return topic in self._entries

    @classmethod
    def from_directory(cls, curriculum_dir: Path) -> "CurriculumManifest":
        """
        Register YAML loaders for every topic directory under curriculum_dir.

        Only artifacts that exist are registered; a topic with none of them
        is left out of the manifest.
        """
        manifest = cls()
        curriculum_dir = Path(curriculum_dir)
        for topic in get_available_topics(curriculum_dir):
            artifacts = topic_artifacts(curriculum_dir, topic)
            if not artifacts:
                continue
            manifest.register(
                topic,
                root=_yaml_loader(artifacts["root"]) if "root" in artifacts else None,
                first_section=(
                    _yaml_loader(artifacts["first_section"])
                    if "first_section" in artifacts else None
                ),
                questions=_yaml_loader(artifacts["questions"]) if "questions" in artifacts else None,
            )
        return manifest


def _yaml_loader(path: Path) -> Loader:
    def load():
        return load_document(path)
    return load


def python_module_loader(module_name: str) -> Loader:
    """
    Loader for a Python module exposing curriculum attributes.

    The module may define `curriculum`, `shortlist_curriculum` and the
    optional accessors `get_section(id)` / `get_shortlist_section(id)`.
    """
    def load():
        return importlib.import_module(module_name)
    return load


# -----------------------------------------------------------------------------
# Artifact coercion
# -----------------------------------------------------------------------------


def _callable_attr(obj: Any, *names: str) -> Optional[Callable]:
    for name in names:
        attr = getattr(obj, name, None)
        if callable(attr):
            return attr
    return None


def _to_source(artifact: Any, origin: str) -> CurriculumSource:
    """Turn whatever a root loader returned into a CurriculumSource."""
    if isinstance(artifact, CurriculumSource):
        return artifact
    if isinstance(artifact, CurriculumDocument):
        return CurriculumSource(artifact, origin=origin)
    if isinstance(artifact, Mapping):
        return CurriculumSource(CurriculumDocument.model_validate(artifact), origin=origin)

    curriculum = getattr(artifact, "curriculum", None)
    shortlist = getattr(artifact, "shortlist_curriculum", None)
    if shortlist is None:
        shortlist = getattr(artifact, "shortlistCurriculum", None)
    if curriculum is None and shortlist is None:
        raise ValueError(f"{type(artifact).__name__} exposes no curriculum")

    document = CurriculumDocument(curriculum=curriculum or [], shortlist_curriculum=shortlist or [])
    return CurriculumSource(
        document,
        get_section=_callable_attr(artifact, "get_section", "getSection"),
        get_shortlist_section=_callable_attr(artifact, "get_shortlist_section", "getShortlistSection"),
        origin=origin,
    )


def _section_lessons(artifact: Any) -> list:
    if isinstance(artifact, Section):
        return list(artifact.lessons)
    if isinstance(artifact, Mapping):
        lessons = artifact.get("lessons")
    else:
        lessons = getattr(artifact, "lessons", None)
        section = getattr(artifact, "section", None)
        if lessons is None and section is not None:
            return _section_lessons(section)
    if lessons is None:
        raise ValueError("section artifact has no lessons")
    return list(lessons)


def _as_section(value: Any) -> Section:
    if isinstance(value, Section):
        return value
    return Section.model_validate(value)


def _run_detached(loader: Loader) -> asyncio.Future:
    """
    Run a sync loader on a daemon thread and expose its outcome as a future.

    The thread is never joined, so a loader still blocked after its timeout
    timed out holds up neither asyncio.run() nor interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result: Any, error: Optional[Exception]):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def work():
        result, error = None, None
        try:
            result = loader()
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            # Loop closed after the lookup timed out; nobody is waiting
            logger.debug("Discarding outcome of an abandoned curriculum loader")

    threading.Thread(target=work, name="curriculum-loader", daemon=True).start()
    return future


# -----------------------------------------------------------------------------
# Resolver
# -----------------------------------------------------------------------------


class CurriculumResolver:
    """
    Resolve topics to curriculum documents through the manifest.

    Every loader call is bounded by resolve_timeout seconds. Successful
    resolutions are cached per topic until invalidate() is called.
    """

    def __init__(self, manifest: CurriculumManifest, resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT):
        """
        Initialize resolver.

        Args:
            manifest: Loader table for all known topics
            resolve_timeout: Seconds allowed for a single loader call
        """
        self.manifest = manifest
        self.resolve_timeout = resolve_timeout
        self._cache: dict[str, CurriculumSource] = {}

    def invalidate(self, topic: Optional[str] = None):
        """Drop the cached resolution for topic, or for every topic."""
        if topic is None:
            self._cache.clear()
        else:
            self._cache.pop(topic, None)

    async def _call(self, topic: str, path: str, loader: Optional[Loader]) -> Any:
        if loader is None:
            raise CurriculumUnavailable(topic, path, ResolutionFailure.NOT_REGISTERED)
        try:
            if inspect.iscoroutinefunction(loader):
                result = await asyncio.wait_for(loader(), self.resolve_timeout)
            else:
                result = await asyncio.wait_for(_run_detached(loader), self.resolve_timeout)
                if inspect.isawaitable(result):
                    result = await asyncio.wait_for(result, self.resolve_timeout)
        except asyncio.TimeoutError:
            raise CurriculumUnavailable(
                topic, path, ResolutionFailure.TIMEOUT, f"exceeded {self.resolve_timeout}s"
            )
        except Exception as e:
            raise CurriculumUnavailable(topic, path, ResolutionFailure.LOAD_FAILED, str(e)) from e
        if result is None:
            raise CurriculumUnavailable(topic, path, ResolutionFailure.INVALID, "loader returned None")
        return result

    # -------------------------------------------------------------------------
    # Resolution paths
    # -------------------------------------------------------------------------

    async def load_root(self, topic: str) -> CurriculumSource:
        """
        Primary path: the topic's root curriculum document.

        Raises:
            CurriculumUnavailable: If the root artifact is missing or unusable
        """
        entry = self.manifest.get(topic)
        artifact = await self._call(topic, "root", entry.root if entry else None)
        try:
            return _to_source(artifact, origin="root")
        except (ValidationError, TypeError, ValueError) as e:
            raise CurriculumUnavailable(topic, "root", ResolutionFailure.INVALID, str(e)) from e

    async def load_first_section(self, topic: str) -> CurriculumSource:
        """
        Secondary path: the first-section artifact wrapped as a one-section document.

        Raises:
            CurriculumUnavailable: If the section artifact is missing or unusable
        """
        entry = self.manifest.get(topic)
        artifact = await self._call(topic, "section", entry.first_section if entry else None)
        try:
            section = Section(
                title=f"{topic[:1].upper()}{topic[1:]} Section 1",
                description="First section of the curriculum",
                lessons=_section_lessons(artifact),
            )
        except (ValidationError, TypeError, ValueError) as e:
            raise CurriculumUnavailable(topic, "section", ResolutionFailure.INVALID, str(e)) from e
        document = CurriculumDocument(curriculum=[section], shortlist_curriculum=[])
        return CurriculumSource(document, origin="section")

    async def resolve(self, topic: str) -> CurriculumSource:
        """
        Resolve topic through root -> section -> empty default.

        Never raises; the empty default is returned (and not cached) when
        both paths fail.
        """
        cached = self._cache.get(topic)
        if cached is not None:
            return cached

        try:
            source = await self.load_root(topic)
        except CurriculumUnavailable as root_error:
            logger.info(f"{root_error}; trying section fallback")
            try:
                source = await self.load_first_section(topic)
            except CurriculumUnavailable as section_error:
                logger.warning(f"Failed to load curriculum for topic {topic!r}: {section_error}")
                return CurriculumSource(empty_document(), origin="default")

        self._cache[topic] = source
        return source

    async def get_document(self, topic: str) -> CurriculumDocument:
        source = await self.resolve(topic)
        return source.document

    async def get_curriculum(self, topic: str) -> list[Section]:
        return (await self.get_document(topic)).curriculum

    async def get_shortlist_curriculum(self, topic: str) -> list[Section]:
        return (await self.get_document(topic)).shortlist_curriculum

    # -------------------------------------------------------------------------
    # Accessors (1-based ids)
    # -------------------------------------------------------------------------

    async def get_section(self, topic: str, section_id: int) -> Section:
        """
        Get a section by 1-based id.

        Raises:
            CurriculumNotFound: If the section does not exist
        """
        source = await self.resolve(topic)
        if source.get_section is not None:
            return self._from_accessor(source.get_section, section_id, f"Section {section_id}", topic)
        return self._index(source.document.curriculum, section_id, f"Section {section_id}", topic)

    async def get_shortlist_section(self, topic: str, section_id: int) -> Section:
        """
        Get a shortlist section by 1-based id.

        Raises:
            CurriculumNotFound: If the shortlist section does not exist
        """
        source = await self.resolve(topic)
        label = f"Shortlist section {section_id}"
        if source.get_shortlist_section is not None:
            return self._from_accessor(source.get_shortlist_section, section_id, label, topic)
        return self._index(source.document.shortlist_curriculum, section_id, label, topic)

    async def get_lesson(self, topic: str, section_id: int, lesson_id: int) -> Lesson:
        """
        Get a lesson by 1-based section and lesson ids.

        Raises:
            CurriculumNotFound: If the section or lesson does not exist
        """
        section = await self.get_section(topic, section_id)
        return self._index(
            section.lessons, lesson_id, f"Lesson {lesson_id} in section {section_id}", topic
        )

    @staticmethod
    def _index(items: list, item_id: int, label: str, topic: str):
        if item_id < 1 or item_id > len(items):
            raise CurriculumNotFound(
                f"{label} not found in {topic} curriculum (valid range: 1-{len(items)})"
            )
        return items[item_id - 1]

    @staticmethod
    def _from_accessor(accessor: Callable[[int], Any], item_id: int, label: str, topic: str) -> Section:
        try:
            value = accessor(item_id)
        except (LookupError, ValueError, TypeError) as e:
            raise CurriculumNotFound(f"{label} not found in {topic} curriculum: {e}") from e
        if value is None:
            raise CurriculumNotFound(f"{label} not found in {topic} curriculum")
        try:
            return _as_section(value)
        except ValidationError as e:
            raise CurriculumNotFound(f"{label} in {topic} curriculum is malformed: {e}") from e

    # -------------------------------------------------------------------------
    # Interview questions
    # -------------------------------------------------------------------------

    async def get_interview_questions(self, topic: str) -> list:
        """Question list for topic; empty when missing or unusable."""
        entry = self.manifest.get(topic)
        try:
            questions = await self._call(topic, "questions", entry.questions if entry else None)
        except CurriculumUnavailable as e:
            logger.warning(f"Failed to load interview questions: {e}")
            return []
        if isinstance(questions, Mapping):
            questions = questions.get("questions", [])
        elif not isinstance(questions, list):
            questions = getattr(questions, "questions", None) or getattr(questions, "default", [])
        return list(questions) if isinstance(questions, list) else []
