#!/usr/bin/env python3
"""
progress_report.py - Summarize stored learner progress.

Reads the progress record from the data directory (migrating a legacy record
if one is found), resolves each topic's curriculum and prints completion
ratios plus the next uncompleted item.

Usage:
  python scripts/progress_report.py
  python scripts/progress_report.py --topic typescript
  python scripts/progress_report.py --all
  python scripts/progress_report.py --data-dir /tmp/prepper --curriculum-dir data/topics
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from prepper.config import configure_logging, load_settings
from prepper.classroom import (
    CurriculumManifest,
    CurriculumResolver,
    ProgressLedger,
    StorageTier,
    TopicContext,
    TopicRegistry,
)

logger = logging.getLogger(__name__)


async def topic_report(ledger: ProgressLedger, topic: str) -> dict:
    ledger.context.current_topic = topic
    ratio = await ledger.overall_progress()
    next_item = await ledger.next_uncompleted_item()
    return {
        "topic": topic,
        "percent": round(ratio * 100, 1),
        "position": ledger.current_position,
        "next": next_item,
    }


def format_report(report: dict) -> str:
    position = report["position"]
    line = (
        f"{report['topic']:<12} {report['percent']:>5}%  "
        f"at section {position.section + 1}, lesson {position.lesson + 1}"
    )
    item = report["next"]
    if item is None:
        return line + "  (nothing left)"
    target = f"section {item.section + 1}"
    if item.lesson is not None:
        target += f", lesson {item.lesson + 1}"
    return line + f"  next: {item.type.value} ({target})"


async def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.data_dir:
        settings.data_dir = args.data_dir
    if args.curriculum_dir:
        settings.curriculum_dir = args.curriculum_dir
    configure_logging(settings.log_level)

    storage = StorageTier.from_settings(settings)
    resolver = CurriculumResolver(
        CurriculumManifest.from_directory(settings.curriculum_dir),
        resolve_timeout=settings.resolve_timeout,
    )
    context = TopicContext()
    registry = TopicRegistry(storage, resolver, context)
    registry.load_topic_preference()

    ledger = ProgressLedger(storage, resolver, context)
    if ledger.load_progress():
        logger.info("Progress record was rewritten in the scoped format")

    if args.all:
        topics = sorted(ledger.topic_progress)
    else:
        topics = [args.topic or registry.current_topic]

    for topic in topics:
        print(format_report(await topic_report(ledger, topic)))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Summarize stored learner progress")
    parser.add_argument("--topic", help="Topic id (default: saved topic preference)")
    parser.add_argument("--all", action="store_true", help="Report every topic with stored progress")
    parser.add_argument("--data-dir", type=Path, help="Override PREPPER_DATA_DIR")
    parser.add_argument("--curriculum-dir", type=Path, help="Override PREPPER_CURRICULUM_DIR")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
