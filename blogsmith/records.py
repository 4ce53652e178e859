"""
Convert a pipeline result into the record shape written to the article store.
"""
import re
import unicodedata
from typing import Any, Dict

from .schemas import GenerationRequest, GenerationResult


def slugify(value: str) -> str:
    """Lowercase ASCII slug: 'Solar & Wind: 2025!' -> 'solar-wind-2025'."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return value.strip("-")


def article_to_record(result: GenerationResult, request: GenerationRequest) -> Dict[str, Any]:
    """Field names here are the only schema the core relies on."""
    article = result.article
    return {
        "slug": slugify(article.headline),
        "topic": request.topic,
        "headline": article.headline,
        "primary_keywords": list(article.outline.primary_keywords),
        "secondary_keywords": list(article.outline.secondary_keywords),
        "outline": [s.model_dump(by_alias=True) for s in article.outline.sections],
        "introduction": article.introduction,
        "sections": [{"title": s.title, "content": s.content} for s in article.sections],
        "body_copy": "\n".join(s.content for s in article.sections),
        "assembled_article": article.assembled_markdown,
        "full_article": article.polished_markdown,
        "image_urls": [image.url for image in article.image_set],
        "alt_image_texts": [image.alt_text for image in article.image_set],
        "reference_material": list(request.reference_material),
        "degradations": list(article.degradations),
        "usage": result.usage.model_dump(),
        "published": True,
    }
