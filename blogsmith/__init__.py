"""
Multi-stage long-form article generation.

Chains completion calls (style analysis, outline, introduction, parallel
sections, polish) with image enrichment and token usage accounting.
"""

from .config import LLMConfig, PipelineConfig, load_config
from .errors import (
    AssemblyFailed,
    AuthenticationFailed,
    BlogsmithError,
    CompletionError,
    EmptyResponse,
    ImageSearchFailed,
    IntroductionGenerationFailed,
    MalformedResponse,
    PipelineAborted,
    RateLimited,
    ServiceUnavailable,
    StructureGenerationFailed,
)
from .images import UnsplashClient, enrich_images
from .json_contract import extract_json, parse_contract
from .llm import CompletionGateway
from .pipeline import ArticlePipeline, generate_article
from .records import article_to_record, slugify
from .schemas import (
    Article,
    GenerationRequest,
    GenerationResult,
    ImageRef,
    Outline,
    OutlineSection,
    SectionDraft,
    UsageTotals,
)
from .usage import UsageAccumulator

__all__ = [
    "LLMConfig",
    "PipelineConfig",
    "load_config",
    "AssemblyFailed",
    "AuthenticationFailed",
    "BlogsmithError",
    "CompletionError",
    "EmptyResponse",
    "ImageSearchFailed",
    "IntroductionGenerationFailed",
    "MalformedResponse",
    "PipelineAborted",
    "RateLimited",
    "ServiceUnavailable",
    "StructureGenerationFailed",
    "UnsplashClient",
    "enrich_images",
    "extract_json",
    "parse_contract",
    "CompletionGateway",
    "ArticlePipeline",
    "generate_article",
    "article_to_record",
    "slugify",
    "Article",
    "GenerationRequest",
    "GenerationResult",
    "ImageRef",
    "Outline",
    "OutlineSection",
    "SectionDraft",
    "UsageTotals",
    "UsageAccumulator",
]
