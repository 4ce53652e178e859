"""
Multi-stage article generation pipeline.

Stages run strictly in order:

    style_analysis -> structure -> introduction -> sections (fan-out) -> assembly -> polish

Image enrichment starts once the introduction exists, runs alongside the
section fan-out, and is joined at the very end.

Failure policy per stage:
- style_analysis: neutral default guide, continue
- structure / introduction: abort the run (no partial article)
- sections: placeholder per failed section, continue
- assembly: abort if no section produced real content
- polish: keep the assembled markdown
- images: empty set, continue

Every absorbed failure is logged and recorded in Article.degradations.
"""
import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from .config import PipelineConfig
from .errors import (
    AssemblyFailed,
    CompletionError,
    IntroductionGenerationFailed,
    MalformedResponse,
    PipelineAborted,
    StructureGenerationFailed,
)
from .images import ImageEnrichment, ImageSearch, enrich_images
from .llm import CompletionGateway, complete_text, complete_validated
from .prompts import (
    INTRODUCTION_PROMPT,
    JSON_ONLY_SYSTEM_PROMPT,
    NEUTRAL_STYLE_GUIDE,
    POLISH_PROMPT,
    SECTION_PROMPT,
    STRUCTURE_PROMPT,
    STYLE_ANALYSIS_PROMPT,
)
from .schemas import (
    Article,
    CompletionUsage,
    GenerationRequest,
    GenerationResult,
    IntroductionContract,
    Outline,
    OutlineSection,
    PolishContract,
    SectionContract,
    SectionDraft,
    StructureContract,
)
from .usage import UsageAccumulator

logger = structlog.get_logger()


class StepTimer:
    """Context manager to log stage durations."""

    def __init__(self, name: str):
        self.name = name
        self.start = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        duration = time.perf_counter() - self.start
        logger.info(
            "stage_completed" if exc_type is None else "stage_failed",
            stage=self.name,
            duration_s=round(duration, 3),
        )


@dataclass
class SectionOutcome:
    """Result of one section task, returned to the join point."""
    index: int
    draft: SectionDraft
    usages: List[CompletionUsage] = field(default_factory=list)
    error: Optional[str] = None


def build_outline(contract: StructureContract, request: GenerationRequest) -> Outline:
    """
    Validate the structure response and apply caller keywords.

    Caller-supplied keyword lists win unchanged; an empty list falls back to
    the model's suggestion.

    Raises:
        StructureGenerationFailed: fewer than 2 entries, or not exactly one h1
    """
    entries = contract.outline
    if len(entries) < 2:
        raise StructureGenerationFailed(
            f"outline has {len(entries)} entries, at least 2 are required"
        )
    h1_count = sum(1 for entry in entries if entry.type == "h1")
    if h1_count != 1:
        raise StructureGenerationFailed(
            f"outline must contain exactly one h1 entry, found {h1_count}"
        )
    return Outline(
        headline=contract.headline,
        primary_keywords=list(request.primary_keywords) or list(contract.primary_keywords),
        secondary_keywords=list(request.secondary_keywords) or list(contract.secondary_keywords),
        sections=list(entries),
    )


async def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


def assemble_markdown(headline: str, introduction: str, sections: List[SectionDraft]) -> str:
    """H1 headline, introduction, then one H2 block per section in order."""
    parts = [f"# {headline}", introduction.strip()]
    for section in sections:
        parts.append(f"## {section.title}\n{section.content.strip()}")
    return "\n\n".join(parts)


class ArticlePipeline:
    """
    Runs one article generation per call to run().

    Collaborators are injected so tests can stub the completion gateway and
    the image search.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        config: Optional[PipelineConfig] = None,
        image_search: Optional[ImageSearch] = None,
    ):
        self.gateway = gateway
        self.config = config or PipelineConfig()
        self.image_search = image_search

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def analyze_style(
        self,
        request: GenerationRequest,
        usages: List[CompletionUsage],
        degradations: List[str],
    ) -> str:
        """Derive a style guide from reference material. Never fatal."""
        if not request.reference_material:
            logger.info("style_analysis_skipped", reason="no reference material")
            return NEUTRAL_STYLE_GUIDE

        prompt = STYLE_ANALYSIS_PROMPT.format(
            reference_material="\n".join(request.reference_material),
        )
        try:
            guide = await complete_text(self.gateway, prompt, self.config.style_analysis, usages)
        except CompletionError as e:
            logger.warning("style_analysis_failed", error=str(e), fallback="neutral")
            degradations.append("style_analysis")
            return NEUTRAL_STYLE_GUIDE
        return guide.strip()

    async def generate_structure(
        self,
        request: GenerationRequest,
        style_guide: str,
        usages: List[CompletionUsage],
    ) -> Outline:
        prompt = STRUCTURE_PROMPT.format(
            topic=request.topic,
            primary_keywords=", ".join(request.primary_keywords) or "(none supplied)",
            secondary_keywords=", ".join(request.secondary_keywords) or "(none supplied)",
            style_guide=style_guide,
        )
        try:
            contract = await complete_validated(
                self.gateway,
                prompt,
                self.config.structure,
                StructureContract,
                usages,
                system_prompt=JSON_ONLY_SYSTEM_PROMPT,
                max_retries=self.config.contract_retries,
            )
        except (CompletionError, MalformedResponse) as e:
            raise StructureGenerationFailed("Failed to generate blog structure", cause=e) from e

        outline = build_outline(contract, request)
        logger.info(
            "outline_generated",
            headline=outline.headline,
            sections=len(outline.sections),
            body_sections=len(outline.body_sections),
        )
        return outline

    async def generate_introduction(
        self,
        request: GenerationRequest,
        outline: Outline,
        style_guide: str,
        usages: List[CompletionUsage],
    ) -> str:
        prompt = INTRODUCTION_PROMPT.format(
            topic=request.topic,
            headline=outline.headline,
            keywords=", ".join(outline.primary_keywords),
            section_titles=", ".join(s.title for s in outline.body_sections),
            style_guide=style_guide,
        )
        try:
            contract = await complete_validated(
                self.gateway,
                prompt,
                self.config.introduction,
                IntroductionContract,
                usages,
                max_retries=self.config.contract_retries,
            )
        except (CompletionError, MalformedResponse) as e:
            raise IntroductionGenerationFailed("Failed to generate introduction", cause=e) from e
        return contract.introduction.strip()

    async def generate_section(
        self,
        index: int,
        total: int,
        section: OutlineSection,
        request: GenerationRequest,
        outline: Outline,
        style_guide: str,
    ) -> SectionOutcome:
        """Generate one body section. Failures become a placeholder draft."""
        outcome = SectionOutcome(index=index, draft=SectionDraft.unavailable(section.title))
        prompt = SECTION_PROMPT.format(
            position=index + 1,
            total=total,
            topic=request.topic,
            section_json=json.dumps(section.model_dump(by_alias=True), indent=2),
            title=section.title,
            key_points=json.dumps(section.key_points),
            keywords=", ".join(outline.combined_keywords),
            style_guide=style_guide,
        )
        try:
            contract = await complete_validated(
                self.gateway,
                prompt,
                self.config.section,
                SectionContract,
                outcome.usages,
                system_prompt=JSON_ONLY_SYSTEM_PROMPT,
                max_retries=self.config.contract_retries,
            )
        except (CompletionError, MalformedResponse) as e:
            logger.warning("section_generation_failed", index=index, title=section.title, error=str(e))
            outcome.error = str(e)
            return outcome

        generated = contract.sections[0]
        title = generated.title.strip() or section.title
        if title != section.title:
            # Accepted as returned; enforcing equality would need another call
            logger.info("section_title_mismatch", index=index, expected=section.title, got=title)
        outcome.draft = SectionDraft(title=title, content=generated.content.strip())
        return outcome

    async def generate_sections(
        self,
        request: GenerationRequest,
        outline: Outline,
        style_guide: str,
    ) -> List[SectionOutcome]:
        """
        Fan out one request per body section and join once.

        gather() returns results by submission position, so the list follows
        outline order whatever order the calls finish in.
        """
        body = outline.body_sections
        tasks = [
            self.generate_section(i, len(body), section, request, outline, style_guide)
            for i, section in enumerate(body)
        ]
        return list(await asyncio.gather(*tasks))

    async def polish(
        self,
        assembled: str,
        outline: Outline,
        usages: List[CompletionUsage],
        degradations: List[str],
    ) -> str:
        """Improve flow across sections. Falls back to the assembled text."""
        prompt = POLISH_PROMPT.format(
            article=assembled,
            keywords=", ".join(outline.combined_keywords),
        )
        try:
            contract = await complete_validated(
                self.gateway,
                prompt,
                self.config.polish,
                PolishContract,
                usages,
                max_retries=self.config.contract_retries,
            )
        except (CompletionError, MalformedResponse) as e:
            logger.warning("polish_failed", error=str(e), fallback="assembled")
            degradations.append("polish")
            return assembled
        return contract.full_article.strip()

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def _start_images(self, request: GenerationRequest, holder: ImageEnrichment) -> Optional[asyncio.Task]:
        if self.image_search is None:
            logger.info("image_enrichment_skipped", reason="no image search configured")
            return None
        return asyncio.create_task(
            enrich_images(
                request.topic,
                list(request.primary_keywords),
                list(request.secondary_keywords),
                self.gateway,
                self.image_search,
                self.config,
                result=holder,
            )
        )

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate one article.

        Raises:
            StructureGenerationFailed, IntroductionGenerationFailed, AssemblyFailed:
                fatal stage failures; `.usage` holds the totals spent so far
        """
        accumulator = UsageAccumulator.from_config(self.config)
        degradations: List[str] = []
        images = ImageEnrichment()
        image_task: Optional[asyncio.Task] = None

        logger.info(
            "pipeline_started",
            topic=request.topic,
            primary_keywords=len(request.primary_keywords),
            secondary_keywords=len(request.secondary_keywords),
            reference_items=len(request.reference_material),
        )

        try:
            usages: List[CompletionUsage] = []
            with StepTimer("style_analysis"):
                try:
                    style_guide = await self.analyze_style(request, usages, degradations)
                finally:
                    accumulator.accumulate_all(usages)

            usages = []
            with StepTimer("structure"):
                try:
                    outline = await self.generate_structure(request, style_guide, usages)
                finally:
                    accumulator.accumulate_all(usages)

            usages = []
            with StepTimer("introduction"):
                try:
                    introduction = await self.generate_introduction(request, outline, style_guide, usages)
                finally:
                    accumulator.accumulate_all(usages)

            image_task = self._start_images(request, images)

            with StepTimer("sections"):
                outcomes = await self.generate_sections(request, outline, style_guide)
            # Single fan-in point for section usage
            for outcome in outcomes:
                accumulator.accumulate_all(outcome.usages)
                if outcome.draft.placeholder:
                    degradations.append(f"section:{outcome.index}")
            sections = [outcome.draft for outcome in outcomes]

            with StepTimer("assembly"):
                real_sections = sum(1 for s in sections if not s.placeholder)
                if real_sections < 1:
                    raise AssemblyFailed(
                        f"none of {len(sections)} sections produced content"
                    )
                assembled = assemble_markdown(outline.headline, introduction, sections)

            usages = []
            with StepTimer("polish"):
                try:
                    polished = await self.polish(assembled, outline, usages, degradations)
                finally:
                    accumulator.accumulate_all(usages)

            if image_task is not None:
                with StepTimer("images"):
                    try:
                        await image_task
                    except Exception as e:
                        logger.warning("image_enrichment_failed", error=str(e), error_type=type(e).__name__)
                        images.images = []
                        images.degradations.append("images")
                degradations.extend(images.degradations)
            accumulator.accumulate_all(images.usages)

        except PipelineAborted as e:
            await _cancel(image_task)
            accumulator.accumulate_all(images.usages)
            e.usage = accumulator.total()
            logger.error(
                "pipeline_aborted",
                stage=e.stage,
                kind=e.kind,
                error=str(e),
                total_tokens=e.usage.total_tokens,
            )
            raise
        finally:
            await _cancel(image_task)

        article = Article(
            headline=outline.headline,
            outline=outline,
            introduction=introduction,
            sections=sections,
            assembled_markdown=assembled,
            polished_markdown=polished,
            image_set=images.images,
            style_guide=style_guide,
            degradations=degradations,
        )
        totals = accumulator.total()
        logger.info(
            "pipeline_completed",
            headline=article.headline,
            sections=len(sections),
            images=len(article.image_set),
            degradations=degradations,
            total_tokens=totals.total_tokens,
            estimated_cost=round(totals.estimated_cost, 6),
        )
        return GenerationResult(article=article, usage=totals)


async def generate_article(
    request: GenerationRequest,
    config: PipelineConfig,
    gateway: Optional[CompletionGateway] = None,
    image_search: Optional[ImageSearch] = None,
) -> GenerationResult:
    """Convenience entry point that owns the gateway when none is passed."""
    if gateway is not None:
        return await ArticlePipeline(gateway, config, image_search).run(request)
    async with CompletionGateway.from_config(config) as owned:
        return await ArticlePipeline(owned, config, image_search).run(request)
