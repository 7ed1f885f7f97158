"""
Progress ledger tests.

Covers sparse completion maps, position updates, derived progress, the
forward scan for the next item, cross-topic isolation and legacy migration.
"""

import asyncio

import pytest

from prepper.classroom import (
    CurriculumManifest,
    CurriculumResolver,
    ProgressLedger,
    PROGRESS_STORAGE_KEY,
    TopicContext,
    migrate_progress_record,
)
from prepper.schemas import ItemType, NextItem, Position


def run(coro):
    return asyncio.run(coro)


LEGACY_RECORD = {
    "completedLessons": {"0": {"0": True, "1": True}},
    "completedChallenges": {"0": True},
    "lessonCode": {"0": {"0": "let x = 1"}},
    "challengeCode": {"0": "function calc() {}"},
    "currentLesson": {"section": 1, "lesson": 0},
}


def reload(storage, resolver, topic="javascript") -> ProgressLedger:
    ledger = ProgressLedger(storage, resolver, TopicContext(topic))
    ledger.load_progress()
    return ledger


class TestLessons:

    def test_complete_lesson_sets_entry_and_position(self, ledger):
        ledger.complete_lesson(1, 0)
        assert ledger.is_lesson_completed(1, 0)
        assert ledger.current_position == Position(section=1, lesson=0)

    def test_completion_and_position_persist_together(self, ledger, storage, resolver):
        ledger.complete_lesson(2, 1)
        restored = reload(storage, resolver)
        assert restored.is_lesson_completed(2, 1)
        assert restored.current_position == Position(section=2, lesson=1)

    def test_uncomplete_lesson_prunes_empty_section(self, ledger, storage):
        ledger.complete_lesson(0, 0)
        ledger.uncomplete_lesson(0, 0)
        assert not ledger.is_lesson_completed(0, 0)
        assert 0 not in ledger.progress.completed_lessons
        stored = storage.load(PROGRESS_STORAGE_KEY)
        assert stored["topicProgress"]["javascript"]["completedLessons"] == {}

    def test_uncomplete_missing_lesson_is_harmless(self, ledger):
        ledger.uncomplete_lesson(5, 5)
        assert ledger.progress.completed_lessons == {}

    def test_no_false_entries_persisted(self, ledger, storage):
        ledger.complete_lesson(0, 0)
        ledger.complete_lesson(0, 1)
        ledger.uncomplete_lesson(0, 1)
        stored = storage.load(PROGRESS_STORAGE_KEY)
        assert stored["topicProgress"]["javascript"]["completedLessons"] == {"0": {"0": True}}

    def test_code_is_independent_of_completion(self, ledger, storage, resolver):
        ledger.save_lesson_code(0, 1, "const y = 2")
        assert not ledger.is_lesson_completed(0, 1)
        assert reload(storage, resolver).get_lesson_code(0, 1) == "const y = 2"

    def test_missing_code_is_empty(self, ledger):
        assert ledger.get_lesson_code(3, 3) == ""
        assert ledger.get_challenge_code(3) == ""


class TestChallenges:

    def test_complete_challenge_advances_to_next_section(self, ledger):
        run(ledger.complete_challenge(0))
        assert ledger.is_challenge_completed(0)
        assert ledger.current_position == Position(section=1, lesson=0)

    def test_complete_last_challenge_keeps_position(self, ledger):
        ledger.complete_lesson(2, 1)
        run(ledger.complete_challenge(2))
        assert ledger.current_position == Position(section=2, lesson=1)

    def test_complete_challenge_without_curriculum_keeps_position(self, ledger, context):
        context.current_topic = "cobol"
        run(ledger.complete_challenge(0))
        assert ledger.is_challenge_completed(0)
        assert ledger.current_position == Position()

    def test_uncomplete_challenge(self, ledger, storage, resolver):
        run(ledger.complete_challenge(1))
        ledger.uncomplete_challenge(1)
        assert not ledger.is_challenge_completed(1)
        assert not reload(storage, resolver).is_challenge_completed(1)

    def test_challenge_code(self, ledger, storage, resolver):
        ledger.save_challenge_code(1, "const memo = new Map()")
        assert reload(storage, resolver).get_challenge_code(1) == "const memo = new Map()"


class TestOverallProgress:
    """The sample curriculum has 5 lessons and 2 challenges."""

    def test_nothing_completed(self, ledger):
        assert run(ledger.overall_progress()) == 0.0

    def test_counts_lessons_and_challenges(self, ledger):
        ledger.complete_lesson(0, 0)
        run(ledger.complete_challenge(0))
        assert run(ledger.overall_progress()) == pytest.approx(2 / 7)

    def test_everything_completed(self, ledger):
        for section, lessons in [(0, 2), (1, 1), (2, 2)]:
            for lesson in range(lessons):
                ledger.complete_lesson(section, lesson)
        run(ledger.complete_challenge(0))
        run(ledger.complete_challenge(1))
        assert run(ledger.overall_progress()) == 1.0

    def test_monotonic_without_uncompletes(self, ledger):
        steps = [
            lambda: ledger.complete_lesson(0, 0),
            lambda: ledger.complete_lesson(0, 0),
            lambda: run(ledger.complete_challenge(1)),
            lambda: ledger.complete_lesson(2, 1),
            lambda: ledger.complete_lesson(9, 9),
        ]
        previous = run(ledger.overall_progress())
        for step in steps:
            step()
            current = run(ledger.overall_progress())
            assert current >= previous
            previous = current

    def test_uncomplete_restores_prior_ratio(self, ledger):
        ledger.complete_lesson(0, 0)
        before = run(ledger.overall_progress())
        ledger.complete_lesson(1, 0)
        ledger.uncomplete_lesson(1, 0)
        assert run(ledger.overall_progress()) == before

    def test_entries_outside_curriculum_are_ignored(self, ledger):
        ledger.complete_lesson(7, 0)
        assert run(ledger.overall_progress()) == 0.0

    def test_empty_curriculum_is_zero(self, ledger, context):
        context.current_topic = "cobol"
        ledger.complete_lesson(0, 0)
        assert run(ledger.overall_progress()) == 0.0


class TestNextUncompletedItem:

    def test_first_lesson(self, ledger):
        item = run(ledger.next_uncompleted_item())
        assert item == NextItem(type=ItemType.LESSON, section=0, lesson=0)

    def test_challenge_after_lessons(self, ledger):
        ledger.complete_lesson(0, 0)
        ledger.complete_lesson(0, 1)
        item = run(ledger.next_uncompleted_item())
        assert item == NextItem(type=ItemType.CHALLENGE, section=0)
        assert item.lesson is None

    def test_skips_completed_gaps(self, ledger):
        ledger.complete_lesson(0, 1)
        item = run(ledger.next_uncompleted_item())
        assert item == NextItem(type=ItemType.LESSON, section=0, lesson=0)

    def test_moves_to_next_section(self, ledger):
        ledger.complete_lesson(0, 0)
        ledger.complete_lesson(0, 1)
        run(ledger.complete_challenge(0))
        item = run(ledger.next_uncompleted_item())
        assert item == NextItem(type=ItemType.LESSON, section=1, lesson=0)

    def test_everything_done(self, ledger):
        for section, lessons in [(0, 2), (1, 1), (2, 2)]:
            for lesson in range(lessons):
                ledger.complete_lesson(section, lesson)
        run(ledger.complete_challenge(0))
        run(ledger.complete_challenge(1))
        assert run(ledger.next_uncompleted_item()) is None

    def test_no_curriculum(self, ledger, context):
        context.current_topic = "cobol"
        assert run(ledger.next_uncompleted_item()) is None


class TestSectionCompletion:

    def test_requires_lessons_and_challenge(self, ledger):
        ledger.complete_lesson(0, 0)
        ledger.complete_lesson(0, 1)
        assert run(ledger.is_section_completed(0)) is False
        run(ledger.complete_challenge(0))
        assert run(ledger.is_section_completed(0)) is True

    def test_section_without_challenge(self, ledger):
        ledger.complete_lesson(2, 0)
        assert run(ledger.is_section_completed(2)) is False
        ledger.complete_lesson(2, 1)
        assert run(ledger.is_section_completed(2)) is True

    def test_out_of_range(self, ledger):
        assert run(ledger.is_section_completed(3)) is False
        assert run(ledger.is_section_completed(-1)) is False

    def test_section_without_lessons_is_never_completed(self, storage):
        manifest = CurriculumManifest()
        manifest.register("go", root=lambda: {
            "curriculum": [
                {"title": "Empty", "lessons": []},
                {"title": "Challenge only", "lessons": [], "challenge": {"title": "Ship it"}},
            ]
        })
        ledger = ProgressLedger(storage, CurriculumResolver(manifest), TopicContext("go"))
        ledger.load_progress()
        run(ledger.complete_challenge(1))
        assert run(ledger.is_section_completed(0)) is False
        assert run(ledger.is_section_completed(1)) is False


class TestTopicIsolation:

    def test_progress_is_scoped_by_topic(self, ledger, context):
        ledger.complete_lesson(0, 0)
        context.current_topic = "csharp"
        assert not ledger.is_lesson_completed(0, 0)
        assert run(ledger.overall_progress()) == 0.0

        ledger.complete_lesson(0, 0)
        assert run(ledger.overall_progress()) == pytest.approx(1 / 2)

        context.current_topic = "javascript"
        assert run(ledger.overall_progress()) == pytest.approx(1 / 7)

    def test_all_topics_persisted(self, ledger, context, storage, resolver):
        ledger.complete_lesson(0, 0)
        context.current_topic = "csharp"
        ledger.save_lesson_code(0, 0, "int x = 1;")

        restored = reload(storage, resolver, topic="csharp")
        assert restored.get_lesson_code(0, 0) == "int x = 1;"
        assert restored.tree_for("javascript").completed_lessons == {0: {0: True}}

    def test_reset_progress_only_touches_current_topic(self, ledger, context):
        ledger.complete_lesson(0, 0)
        context.current_topic = "csharp"
        ledger.complete_lesson(0, 0)
        ledger.reset_progress()
        assert not ledger.is_lesson_completed(0, 0)
        context.current_topic = "javascript"
        assert ledger.is_lesson_completed(0, 0)

    def test_reset_all_progress(self, ledger, context, storage, resolver):
        ledger.complete_lesson(0, 0)
        context.current_topic = "csharp"
        ledger.complete_lesson(0, 0)
        ledger.reset_all_progress()
        assert list(ledger.topic_progress) == ["csharp"]
        assert not reload(storage, resolver).is_lesson_completed(0, 0)

    def test_has_any_progress(self, ledger):
        assert not ledger.has_any_progress()
        ledger.save_lesson_code(0, 0, "x")
        assert not ledger.has_any_progress()
        ledger.update_current_position(1, 0)
        assert ledger.has_any_progress()


class TestMigration:

    def test_legacy_record_adopted_by_active_topic(self, storage, resolver):
        storage.save(PROGRESS_STORAGE_KEY, LEGACY_RECORD)
        ledger = ProgressLedger(storage, resolver, TopicContext("csharp"))

        assert ledger.load_progress() is True
        assert list(ledger.topic_progress) == ["csharp"]
        assert ledger.is_lesson_completed(0, 1)
        assert ledger.is_challenge_completed(0)
        assert ledger.get_lesson_code(0, 0) == "let x = 1"
        assert ledger.current_position == Position(section=1, lesson=0)

    def test_storage_rewritten_in_scoped_shape(self, storage, resolver):
        storage.save(PROGRESS_STORAGE_KEY, LEGACY_RECORD)
        reload(storage, resolver)
        stored = storage.load(PROGRESS_STORAGE_KEY)
        assert stored["version"] == 2
        assert "completedLessons" not in stored
        assert list(stored["topicProgress"]) == ["javascript"]

    def test_migration_happens_once(self, storage, resolver):
        storage.save(PROGRESS_STORAGE_KEY, LEGACY_RECORD)
        first = ProgressLedger(storage, resolver, TopicContext("javascript"))
        assert first.load_progress() is True

        second = ProgressLedger(storage, resolver, TopicContext("react"))
        assert second.load_progress() is False
        # react gets an empty tree; the legacy data stays with javascript only
        assert second.tree_for("javascript").completed_lessons == {0: {0: True, 1: True}}
        assert second.topic_progress["react"].completed_lessons == {}

        third = ProgressLedger(storage, resolver, TopicContext("javascript"))
        assert third.load_progress() is False
        assert sorted(third.topic_progress) == ["javascript", "react"]

    def test_explicit_version_1(self):
        scoped, rewrite = migrate_progress_record({"version": 1, **LEGACY_RECORD}, "javascript")
        assert rewrite is True
        assert scoped.topic_progress["javascript"].completed_challenges == {0: True}

    def test_legacy_without_position_starts_at_first_completed(self):
        raw = {"completedLessons": {"2": {"1": True}, "3": {"0": True}}}
        scoped, _ = migrate_progress_record(raw, "javascript")
        assert scoped.topic_progress["javascript"].current_lesson == Position(section=2, lesson=1)

    def test_scoped_data_wins_over_flat_fields(self):
        raw = {
            "topicProgress": {"react": {"completedChallenges": {"4": True}}},
            **LEGACY_RECORD,
        }
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is True
        assert list(scoped.topic_progress) == ["react"]

    def test_unversioned_scoped_record_is_rewritten(self):
        raw = {"topicProgress": {"react": {}}}
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is True
        assert list(scoped.topic_progress) == ["react"]

    def test_current_scoped_record_is_untouched(self):
        raw = {"version": 2, "activeTopic": "react", "topicProgress": {"react": {}}}
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is False
        assert scoped.active_topic == "react"

    def test_unreadable_topic_entry_is_dropped(self):
        raw = {
            "version": 2,
            "topicProgress": {
                "react": "garbage",
                "javascript": {"completedChallenges": {"0": True}},
            },
        }
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is True
        assert list(scoped.topic_progress) == ["javascript"]

    def test_bad_position_in_scoped_tree_keeps_the_tree(self):
        raw = {
            "version": 2,
            "topicProgress": {
                "javascript": {
                    "completedLessons": {"0": {"0": True}},
                    "currentLesson": None,
                },
                "react": {"currentLesson": {"section": -4, "lesson": 0}},
            },
        }
        scoped, _ = migrate_progress_record(raw, "javascript")
        assert scoped.topic_progress["javascript"].completed_lessons == {0: {0: True}}
        assert scoped.topic_progress["javascript"].current_lesson == Position()
        assert scoped.topic_progress["react"].current_lesson == Position()

    def test_null_code_leaf_keeps_legacy_progress(self, storage, resolver):
        raw = {
            "completedLessons": {"0": {"0": True, "1": True}, "1": {"0": True}},
            "lessonCode": {"0": {"0": None, "1": "let y"}},
            "challengeCode": {"0": None},
            "currentLesson": {"section": 1, "lesson": 0},
        }
        storage.save(PROGRESS_STORAGE_KEY, raw)

        ledger = reload(storage, resolver)
        assert ledger.progress.completed_lessons == {0: {0: True, 1: True}, 1: {0: True}}
        assert ledger.get_lesson_code(0, 0) == ""
        assert ledger.get_lesson_code(0, 1) == "let y"
        assert ledger.get_challenge_code(0) == ""

        stored = storage.load(PROGRESS_STORAGE_KEY)
        assert stored["topicProgress"]["javascript"]["completedLessons"] == {
            "0": {"0": True, "1": True}, "1": {"0": True}
        }

    def test_unreadable_legacy_field_is_dropped(self):
        raw = {"completedLessons": "garbage", "completedChallenges": {"2": True}}
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is True
        tree = scoped.topic_progress["javascript"]
        assert tree.completed_lessons == {}
        assert tree.completed_challenges == {2: True}

    def test_legacy_position_at_section_zero_moves_to_first_completed(self):
        raw = {
            "completedLessons": {"2": {"1": True}},
            "currentLesson": {"section": 0, "lesson": 3},
        }
        scoped, _ = migrate_progress_record(raw, "javascript")
        assert scoped.topic_progress["javascript"].current_lesson == Position(section=2, lesson=1)

    def test_legacy_null_position_moves_to_first_completed(self):
        raw = {"completedLessons": {"1": {"0": True}}, "currentLesson": None}
        scoped, _ = migrate_progress_record(raw, "javascript")
        assert scoped.topic_progress["javascript"].current_lesson == Position(section=1, lesson=0)

    @pytest.mark.parametrize("raw", [None, {}])
    def test_empty_storage(self, raw):
        scoped, rewrite = migrate_progress_record(raw, "javascript")
        assert rewrite is False
        assert scoped.topic_progress == {}

    def test_non_dict_record(self):
        scoped, rewrite = migrate_progress_record(["junk"], "javascript")
        assert rewrite is True
        assert scoped.topic_progress == {}
