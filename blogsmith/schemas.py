"""
Pydantic schemas for the article generation pipeline.

Three groups live here:
- Domain models that flow between stages (GenerationRequest, Outline, Article...)
- LLM response contracts, validated after JSON extraction
- Usage records reported by the completion gateway
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# USAGE
# =============================================================================

class CompletionUsage(BaseModel):
    """Token usage reported for a single completion call."""
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class Completion(BaseModel):
    """Text and usage returned by the completion gateway."""
    text: str
    usage: CompletionUsage = Field(default_factory=CompletionUsage)


class UsageTotals(BaseModel):
    """Aggregated usage for one pipeline run, with derived cost."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0


# =============================================================================
# REQUEST
# =============================================================================

class GenerationRequest(BaseModel):
    """Caller input. Frozen once the pipeline starts."""
    model_config = ConfigDict(frozen=True)

    topic: str = Field(min_length=1)
    primary_keywords: List[str] = Field(default_factory=list)
    secondary_keywords: List[str] = Field(default_factory=list)
    reference_material: List[str] = Field(default_factory=list)

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("topic must not be blank")
        return v

    @property
    def combined_keywords(self) -> List[str]:
        """Primary then secondary keywords, verbatim, duplicates kept."""
        return [*self.primary_keywords, *self.secondary_keywords]


# =============================================================================
# OUTLINE
# =============================================================================

class OutlineSection(BaseModel):
    """One entry of the outline. `h1` marks the introduction slot."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    type: Literal["h1", "h2"]
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        """Accept 'H2', ' h2 ' and similar."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("key_points", mode="before")
    @classmethod
    def ensure_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class Outline(BaseModel):
    """The structural plan driving every later stage."""
    headline: str
    primary_keywords: List[str] = Field(default_factory=list)
    secondary_keywords: List[str] = Field(default_factory=list)
    sections: List[OutlineSection] = Field(default_factory=list)

    @property
    def introduction_slot(self) -> OutlineSection:
        return next(s for s in self.sections if s.type == "h1")

    @property
    def body_sections(self) -> List[OutlineSection]:
        """Non-introduction entries, in outline order."""
        return [s for s in self.sections if s.type != "h1"]

    @property
    def combined_keywords(self) -> List[str]:
        return [*self.primary_keywords, *self.secondary_keywords]


# =============================================================================
# ARTICLE
# =============================================================================

SECTION_PLACEHOLDER = "content unavailable"


class SectionDraft(BaseModel):
    """Generated body section. Title is taken from the model as returned."""
    title: str
    content: str
    placeholder: bool = False

    @classmethod
    def unavailable(cls, title: str) -> "SectionDraft":
        return cls(title=title, content=SECTION_PLACEHOLDER, placeholder=True)


class ImageRef(BaseModel):
    """An image resolved for the article.

    source_tags_matched is True when the alt text came from the provider's own
    description fields, False when it fell back to the search term.
    """
    url: str
    alt_text: str
    source_tags_matched: bool = False
    query: Optional[str] = None


class Article(BaseModel):
    """Final article produced by one pipeline run."""
    headline: str
    outline: Outline
    introduction: str
    sections: List[SectionDraft] = Field(default_factory=list)
    assembled_markdown: str
    polished_markdown: str
    image_set: List[ImageRef] = Field(default_factory=list)
    style_guide: str = ""
    degradations: List[str] = Field(
        default_factory=list,
        description="Stage labels whose failure was absorbed with a fallback value",
    )


class GenerationResult(BaseModel):
    """What the pipeline hands back to the caller for persistence."""
    article: Article
    usage: UsageTotals


# =============================================================================
# LLM RESPONSE CONTRACTS
# =============================================================================

def _not_blank(value: str, name: str) -> str:
    if not value.strip():
        raise ValueError(f"{name} must not be blank")
    return value.strip()


class StructureContract(BaseModel):
    """Expected response for the structure stage."""
    model_config = ConfigDict(populate_by_name=True)

    headline: str = Field(min_length=1)
    primary_keywords: List[str] = Field(default_factory=list, alias="primaryKeywords")
    secondary_keywords: List[str] = Field(default_factory=list, alias="secondaryKeywords")
    outline: List[OutlineSection]

    @field_validator("headline")
    @classmethod
    def headline_not_blank(cls, v: str) -> str:
        return _not_blank(v, "headline")


class IntroductionContract(BaseModel):
    """Expected response for the introduction stage."""
    introduction: str = Field(min_length=1)

    @field_validator("introduction")
    @classmethod
    def introduction_not_blank(cls, v: str) -> str:
        return _not_blank(v, "introduction")


class SectionContent(BaseModel):
    title: str = ""
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        return _not_blank(v, "content")


class SectionContract(BaseModel):
    """Expected response for one section. Only the first entry is used."""
    sections: List[SectionContent] = Field(min_length=1)


class PolishContract(BaseModel):
    """Expected response for the polish stage."""
    full_article: str = Field(min_length=1)

    @field_validator("full_article")
    @classmethod
    def article_not_blank(cls, v: str) -> str:
        return _not_blank(v, "full_article")


class ImageQueryContract(BaseModel):
    """Expected response for image search term derivation."""
    queries: List[str] = Field(default_factory=list)

    @field_validator("queries", mode="before")
    @classmethod
    def drop_blank(cls, v):
        if isinstance(v, list):
            return [q.strip() for q in v if isinstance(q, str) and q.strip()]
        return v
