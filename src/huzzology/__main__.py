"""Command-line entry point: python -m huzzology {classify,emerging,influence}."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from huzzology.classification.clustering import FixedSeed, SystemEntropy
from huzzology.classification.orchestrator import ClassificationOrchestrator, build_orchestrator
from huzzology.classification.sql_store import SqlContentStore
from huzzology.classification.store import ContentStore, InMemoryContentStore
from huzzology.config import get_settings
from huzzology.database import dispose_engine, get_session
from huzzology.errors import HuzzologyError
from huzzology.schemas.classification import ContentItem
from huzzology.services.classification_settings import (
    ClassificationSettings,
    load_classification_settings,
)

logger = logging.getLogger("huzzology")


def read_content_items(path: str) -> list[ContentItem]:
    """Parse JSON Lines content items from ``path`` ('-' reads stdin). Blank lines are skipped."""
    if path == "-":
        lines = sys.stdin.read().splitlines()
    else:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    items = []
    for lineno, line in enumerate(lines, 1):
        if not line.strip():
            continue
        try:
            items.append(ContentItem.model_validate_json(line))
        except ValueError as exc:
            raise ValueError(f"{path}:{lineno}: invalid content item: {exc}") from exc
    return items


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="huzzology", description="Archetype classification pipeline")
    parser.add_argument("--dry-run", action="store_true", help="use an in-memory store instead of the database")
    parser.add_argument("--seed", type=int, default=None, help="fixed K-means seed for reproducible clusters")
    sub = parser.add_subparsers(dest="command", required=True)

    classify = sub.add_parser("classify", help="classify content against existing archetypes")
    classify.add_argument("input", help="JSON Lines file of content items, or '-' for stdin")

    emerging = sub.add_parser("emerging", help="cluster content and propose emerging archetypes")
    emerging.add_argument("input", help="JSON Lines file of content items, or '-' for stdin")

    sub.add_parser("influence", help="recompute influence scores for every archetype")
    return parser


async def _execute(orchestrator: ClassificationOrchestrator, args: argparse.Namespace) -> Any:
    if args.command == "classify":
        result = await orchestrator.process_content(read_content_items(args.input))
        return result.model_dump(mode="json")
    if args.command == "emerging":
        emerging = await orchestrator.identify_emerging_archetypes(read_content_items(args.input))
        return [e.model_dump(mode="json") for e in emerging]
    return await orchestrator.update_influence_scores()


async def _run_with_store(
    store: ContentStore, classification: ClassificationSettings, args: argparse.Namespace
) -> Any:
    random_source = FixedSeed(args.seed) if args.seed is not None else SystemEntropy()
    orchestrator = build_orchestrator(store, classification, settings=get_settings(), random_source=random_source)
    try:
        return await _execute(orchestrator, args)
    finally:
        await orchestrator.close()


async def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logger.info("Starting huzzology %s", args.command)
    try:
        if args.dry_run:
            report = await _run_with_store(InMemoryContentStore(), ClassificationSettings(), args)
        else:
            try:
                async with get_session() as session:
                    classification = await load_classification_settings(session)
                    report = await _run_with_store(SqlContentStore(session), classification, args)
            finally:
                await dispose_engine()
    except (HuzzologyError, ValueError, OSError) as exc:
        logger.error("huzzology %s failed: %s", args.command, exc)
        return 1

    print(json.dumps(report, indent=2, default=str))
    return 0


def run() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
