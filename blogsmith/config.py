"""
Runtime configuration for the pipeline.

Resolution order (first non-None wins):
1. Explicit overrides passed to load_config()
2. Environment variables (.env is loaded by the CLI)
3. Defaults below
"""
import os
from typing import Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

T = TypeVar("T")

# Large model for planning stages, small model for bulk prose
DEFAULT_PLANNING_MODEL = "gpt-4o"
DEFAULT_WRITING_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.7

# Per-token prices in currency units (€0.03 / €0.06 per 1K tokens)
DEFAULT_PRICE_PER_PROMPT_TOKEN = 0.00003
DEFAULT_PRICE_PER_COMPLETION_TOKEN = 0.00006

STAGES = (
    "style_analysis",
    "structure",
    "introduction",
    "section",
    "polish",
    "image_queries",
    "enrichment",
)


class LLMConfig(BaseModel):
    """
    Model selection for a single stage.

    Example:
        LLMConfig(model="gpt-4o", temperature=0)
    """
    model: str = Field(
        default=DEFAULT_PLANNING_MODEL,
        description="Model identifier sent to the chat completions endpoint",
    )
    temperature: float = Field(
        default=DEFAULT_TEMPERATURE,
        ge=0,
        le=2,
        description="Sampling temperature (0=deterministic, 2=max creativity)",
    )
    max_tokens: Optional[int] = Field(
        default=None,
        gt=0,
        description="Completion token cap; None lets the provider decide",
    )


def _writing(temperature: float = DEFAULT_TEMPERATURE) -> LLMConfig:
    return LLMConfig(model=DEFAULT_WRITING_MODEL, temperature=temperature)


class PipelineConfig(BaseModel):
    """Everything the pipeline needs from the outside world."""

    # Text generation service
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    request_timeout: float = Field(default=120.0, gt=0)

    # Per-stage models
    style_analysis: LLMConfig = Field(default_factory=LLMConfig)
    structure: LLMConfig = Field(default_factory=LLMConfig)
    introduction: LLMConfig = Field(default_factory=LLMConfig)
    section: LLMConfig = Field(default_factory=_writing)
    polish: LLMConfig = Field(default_factory=_writing)
    image_queries: LLMConfig = Field(default_factory=LLMConfig)
    enrichment: LLMConfig = Field(default_factory=LLMConfig)

    # Usage pricing
    price_per_prompt_token: float = Field(default=DEFAULT_PRICE_PER_PROMPT_TOKEN, ge=0)
    price_per_completion_token: float = Field(default=DEFAULT_PRICE_PER_COMPLETION_TOKEN, ge=0)

    # Re-asks after a contract violation (0 = every stage is single-shot)
    contract_retries: int = Field(default=0, ge=0)

    # Image search
    unsplash_access_key: Optional[str] = None
    unsplash_base_url: str = "https://api.unsplash.com"
    image_query_count: int = Field(default=3, ge=1)

    # Batch enrichment pacing between sequential calls
    enrichment_delay_seconds: float = Field(default=1.0, ge=0)

    def stage(self, name: str) -> LLMConfig:
        if name not in STAGES:
            raise KeyError(f"Unknown stage: {name}")
        return getattr(self, name)


def _env_number(
    name: str,
    cast: Callable[[str], T],
    default: T,
    valid: Optional[Callable[[T], bool]] = None,
) -> T:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("config_value_unparseable", variable=name, value=raw, default=default)
        return default
    if valid is not None and not valid(value):
        logger.warning("config_value_out_of_range", variable=name, value=raw, default=default)
        return default
    return value


def _positive(value) -> bool:
    return value > 0


def _non_negative(value) -> bool:
    return value >= 0


def _stage_from_env(stage: str, default: LLMConfig) -> LLMConfig:
    prefix = f"BLOGSMITH_{stage.upper()}"
    return LLMConfig(
        model=os.environ.get(f"{prefix}_MODEL") or default.model,
        temperature=_env_number(
            f"{prefix}_TEMPERATURE", float, default.temperature, valid=lambda t: 0 <= t <= 2
        ),
        max_tokens=_env_number(f"{prefix}_MAX_TOKENS", int, default.max_tokens, valid=_positive),
    )


def load_config(overrides: Optional[dict] = None) -> PipelineConfig:
    """Build a PipelineConfig from the environment with optional overrides."""
    defaults = PipelineConfig()

    values = {
        "api_key": os.environ.get("OPENAI_API_KEY") or None,
        "base_url": os.environ.get("OPENAI_BASE_URL") or defaults.base_url,
        "request_timeout": _env_number("BLOGSMITH_REQUEST_TIMEOUT", float, defaults.request_timeout, valid=_positive),
        "price_per_prompt_token": _env_number(
            "BLOGSMITH_PRICE_PROMPT_TOKEN", float, defaults.price_per_prompt_token, valid=_non_negative
        ),
        "price_per_completion_token": _env_number(
            "BLOGSMITH_PRICE_COMPLETION_TOKEN", float, defaults.price_per_completion_token, valid=_non_negative
        ),
        "contract_retries": _env_number("BLOGSMITH_CONTRACT_RETRIES", int, defaults.contract_retries, valid=_non_negative),
        "unsplash_access_key": (os.environ.get("UNSPLASH_ACCESS_KEY") or "").strip() or None,
        "image_query_count": _env_number("BLOGSMITH_IMAGE_QUERY_COUNT", int, defaults.image_query_count, valid=_positive),
        "enrichment_delay_seconds": _env_number(
            "BLOGSMITH_ENRICHMENT_DELAY", float, defaults.enrichment_delay_seconds, valid=_non_negative
        ),
    }
    for stage in STAGES:
        values[stage] = _stage_from_env(stage, getattr(defaults, stage))

    if overrides:
        for key, value in overrides.items():
            if key not in PipelineConfig.model_fields:
                raise AttributeError(f"Unknown config option: {key}")
            values[key] = value

    config = PipelineConfig(**values)
    logger.debug(
        "config_loaded",
        has_api_key=bool(config.api_key),
        has_unsplash_key=bool(config.unsplash_access_key),
        models={stage: config.stage(stage).model for stage in STAGES},
    )
    return config
