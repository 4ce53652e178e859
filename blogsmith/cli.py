"""Command line interface for article generation and batch enrichment."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

import structlog
from dotenv import load_dotenv

from .config import PipelineConfig, load_config
from .enrich import enrich_pending_articles
from .errors import AuthenticationFailed, PipelineAborted
from .images import UnsplashClient
from .llm import CompletionGateway
from .pipeline import ArticlePipeline
from .records import article_to_record
from .schemas import GenerationRequest

logger = structlog.get_logger()


def configure_logging(level_name: Optional[str] = None) -> None:
    level_name = (level_name or os.environ.get("BLOGSMITH_LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="blogsmith", description="Generate long-form articles")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Run the generation pipeline")
    generate.add_argument("topic", help="Article topic")
    generate.add_argument("--primary", nargs="*", default=[], help="Primary keywords")
    generate.add_argument("--secondary", nargs="*", default=[], help="Secondary keywords")
    generate.add_argument("--reference", action="append", default=[], help="Reference text or URL")
    generate.add_argument("--reference-file", action="append", default=[], help="File with one reference per line")
    generate.add_argument("--stored-references", action="store_true", help="Load reference material from the store")
    generate.add_argument("--save", action="store_true", help="Upsert the article into the store")
    generate.add_argument("--key", help="Store key (defaults to the slug)")

    enrich = subparsers.add_parser("enrich", help="Enrich stored articles with their reference material")
    enrich.add_argument("--limit", type=int)

    return parser.parse_args(argv)


def _read_reference_files(paths: List[str]) -> List[str]:
    entries: List[str] = []
    for path in paths:
        with open(path, "r", encoding="utf-8") as handle:
            entries.extend(line.strip() for line in handle if line.strip())
    return entries


def _image_search(config: PipelineConfig) -> Optional[UnsplashClient]:
    if not config.unsplash_access_key:
        logger.warning("unsplash_not_configured")
        return None
    return UnsplashClient.from_config(config)


async def _generate(args, config: PipelineConfig) -> dict:
    store = None
    if args.save or args.stored_references:
        from blogstore.article_store import ArticleStore
        store = ArticleStore()

    reference_material = list(args.reference) + _read_reference_files(args.reference_file)
    if args.stored_references:
        reference_material.extend(await store.get_reference_material())

    request = GenerationRequest(
        topic=args.topic,
        primary_keywords=args.primary,
        secondary_keywords=args.secondary,
        reference_material=reference_material,
    )

    image_search = _image_search(config)
    try:
        async with CompletionGateway.from_config(config) as gateway:
            result = await ArticlePipeline(gateway, config, image_search).run(request)
    finally:
        if image_search is not None:
            await image_search.close()

    output = result.model_dump()
    if args.save:
        record = article_to_record(result, request)
        key = args.key or record["slug"]
        inserted = await store.upsert_article(key, record)
        output["stored"] = {"key": key, "inserted": inserted}
    return output


async def _enrich(args, config: PipelineConfig) -> dict:
    from blogstore.article_store import ArticleStore

    async with CompletionGateway.from_config(config) as gateway:
        report = await enrich_pending_articles(ArticleStore(), gateway, config, limit=args.limit)
    return {
        "processed": report.processed,
        "succeeded": report.succeeded,
        "failed": report.failed,
        "failed_keys": report.failed_keys,
        "usage": report.usage.model_dump(),
    }


def main(argv=None):
    load_dotenv()
    configure_logging()
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    config = load_config()

    runner = _generate if args.command == "generate" else _enrich
    try:
        output = asyncio.run(runner(args, config))
    except PipelineAborted as e:
        print(f"error ({e.kind}, stage={e.stage}): {e}", file=sys.stderr)
        return 1
    except AuthenticationFailed as e:
        print(f"error (credentials): {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
