"""
Batch enrichment of stored articles.

Each pending article is rewritten once with its reference material woven in,
sequentially, with a fixed pause between calls to stay clear of provider-side
throttling. One failing article never stops the batch.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from .config import PipelineConfig
from .errors import CompletionError
from .llm import CompletionGateway, complete_text
from .prompts import ENRICH_ARTICLE_PROMPT
from .schemas import CompletionUsage, UsageTotals
from .usage import UsageAccumulator

logger = structlog.get_logger()


class EnrichmentStore(Protocol):
    async def list_pending_enrichment(self, limit: Optional[int] = None) -> List[dict]:
        ...

    async def set_long_article(self, key: str, text: str) -> None:
        ...


@dataclass
class EnrichmentReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_keys: List[str] = field(default_factory=list)
    usage: UsageTotals = field(default_factory=UsageTotals)


async def enrich_article(
    post: dict,
    gateway: CompletionGateway,
    config: PipelineConfig,
    usages: List[CompletionUsage],
) -> str:
    """Return the enriched markdown for one stored article."""
    prompt = ENRICH_ARTICLE_PROMPT.format(
        reference_material="\n".join(str(r) for r in post.get("reference_material") or []),
        article=post["full_article"],
    )
    text = await complete_text(gateway, prompt, config.enrichment, usages)
    return text.strip()


async def enrich_pending_articles(
    store: EnrichmentStore,
    gateway: CompletionGateway,
    config: PipelineConfig,
    limit: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> EnrichmentReport:
    """
    Enrich every pending article in the store.

    `sleep` is injectable so tests can observe the pacing without waiting.
    """
    accumulator = UsageAccumulator.from_config(config)
    report = EnrichmentReport()

    posts = await store.list_pending_enrichment(limit=limit)
    logger.info("enrichment_batch_started", count=len(posts))

    for position, post in enumerate(posts):
        key = post["id"]
        report.processed += 1
        usages: List[CompletionUsage] = []
        try:
            enriched = await enrich_article(post, gateway, config, usages)
            await store.set_long_article(key, enriched)
            report.succeeded += 1
            logger.info(
                "article_enriched",
                key=key,
                original_length=len(post["full_article"]),
                enriched_length=len(enriched),
            )
        except (CompletionError, SQLAlchemyError, KeyError) as e:
            report.failed += 1
            report.failed_keys.append(key)
            logger.error("article_enrichment_failed", key=key, error=str(e))
        finally:
            accumulator.accumulate_all(usages)

        if position < len(posts) - 1:
            await sleep(config.enrichment_delay_seconds)

    report.usage = accumulator.total()
    logger.info(
        "enrichment_batch_finished",
        processed=report.processed,
        succeeded=report.succeeded,
        failed=report.failed,
        total_tokens=report.usage.total_tokens,
    )
    return report
