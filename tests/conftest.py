"""Shared fixtures: temporary storage, an in-memory manifest and a resolver over it."""

import pytest

from prepper.classroom import (
    CurriculumManifest,
    CurriculumResolver,
    ProgressLedger,
    StorageTier,
    TopicContext,
)


JAVASCRIPT_CURRICULUM = {
    "curriculum": [
        {
            "title": "JavaScript Fundamentals",
            "lessons": [{"title": "Variables"}, {"title": "Types"}],
            "challenge": {"title": "Build a calculator"},
        },
        {
            "title": "Functional Programming",
            "lessons": [{"title": "Closures"}],
            "challenge": {"title": "Memoize"},
        },
        {
            "title": "Asynchronous JavaScript",
            "lessons": [{"title": "Promises"}, {"title": "Async/await"}],
        },
    ],
    "shortlistCurriculum": [
        {"title": "Minicourse JS Recapper", "lessons": [{"title": "20 Essential Concepts"}]},
    ],
}

CSHARP_CURRICULUM = {
    "curriculum": [
        {
            "title": "C# Basics",
            "lessons": [{"title": "Value types"}],
            "challenge": {"title": "FizzBuzz"},
        },
    ],
    "shortlistCurriculum": [],
}


@pytest.fixture
def storage(tmp_path):
    return StorageTier.at(tmp_path / "data")


@pytest.fixture
def manifest():
    manifest = CurriculumManifest()
    manifest.register("javascript", root=lambda: JAVASCRIPT_CURRICULUM)
    manifest.register("csharp", root=lambda: CSHARP_CURRICULUM)
    return manifest


@pytest.fixture
def resolver(manifest):
    return CurriculumResolver(manifest, resolve_timeout=2.0)


@pytest.fixture
def context():
    return TopicContext("javascript")


@pytest.fixture
def ledger(storage, resolver, context):
    ledger = ProgressLedger(storage, resolver, context)
    ledger.load_progress()
    return ledger
