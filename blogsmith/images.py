"""
Image enrichment: derive search terms, resolve them against a photo search.

Nothing here is fatal. A failed term derivation falls back to the topic, a
term with no result contributes nothing, and the set may end up empty.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog

from .config import PipelineConfig
from .errors import AuthenticationFailed, CompletionError, ImageSearchFailed, MalformedResponse
from .llm import CompletionGateway, complete_validated
from .prompts import IMAGE_QUERIES_PROMPT, JSON_ONLY_SYSTEM_PROMPT
from .schemas import CompletionUsage, ImageQueryContract, ImageRef

logger = structlog.get_logger()


class ImageSearch(Protocol):
    """Lookup-by-query capability returning zero or one image."""

    async def search(self, query: str) -> Optional[ImageRef]:
        ...


class UnsplashClient:
    """
    Photo search against the Unsplash API.

    Only the first ranked result is used; an empty result list is a normal
    outcome and returns None.
    """

    def __init__(
        self,
        access_key: Optional[str],
        base_url: str = "https://api.unsplash.com",
        timeout: int = 30,
        page_size: int = 1,
        orientation: str = "landscape",
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not access_key or not access_key.strip():
            raise AuthenticationFailed("UNSPLASH_ACCESS_KEY not set")
        self.access_key = access_key.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.orientation = orientation
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: PipelineConfig, client: Optional[httpx.AsyncClient] = None) -> "UnsplashClient":
        return cls(access_key=config.unsplash_access_key, base_url=config.unsplash_base_url, client=client)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept-Version": "v1"},
            )
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "UnsplashClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def search(self, query: str) -> Optional[ImageRef]:
        """
        Return the top photo for `query`, or None when nothing matches.

        Raises:
            ImageSearchFailed: transport error or error status
        """
        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/search/photos",
                params={
                    "query": query,
                    "per_page": self.page_size,
                    "orientation": self.orientation,
                },
                headers={"Authorization": f"Client-ID {self.access_key}"},
            )
        except httpx.RequestError as e:
            raise ImageSearchFailed(f"Unsplash request failed: {e}") from e

        if response.status_code >= 400:
            raise ImageSearchFailed(f"Unsplash API error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ImageSearchFailed(f"Unreadable Unsplash response: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or not results:
            logger.info("image_search_empty", query=query)
            return None
        return photo_to_image_ref(results[0], query)


def photo_to_image_ref(photo: Any, query: str) -> Optional[ImageRef]:
    """Map an Unsplash photo record to an ImageRef; None if it has no usable URL."""
    if not isinstance(photo, dict):
        return None
    urls = photo.get("urls")
    url = urls.get("regular") if isinstance(urls, dict) else None
    url = url or photo.get("url")
    if not isinstance(url, str) or not url:
        return None
    description = photo.get("alt_description") or photo.get("description")
    if not isinstance(description, str):
        description = None
    return ImageRef(
        url=url,
        alt_text=description or query,
        source_tags_matched=bool(description),
        query=query,
    )


@dataclass
class ImageEnrichment:
    """Outcome of image enrichment, folded into the run after the join."""
    images: List[ImageRef] = field(default_factory=list)
    queries: List[str] = field(default_factory=list)
    usages: List[CompletionUsage] = field(default_factory=list)
    degradations: List[str] = field(default_factory=list)


async def derive_search_terms(
    topic: str,
    primary_keywords: List[str],
    secondary_keywords: List[str],
    gateway: CompletionGateway,
    config: PipelineConfig,
    result: ImageEnrichment,
) -> List[str]:
    """Ask the model for search terms; fall back to the topic verbatim."""
    prompt = IMAGE_QUERIES_PROMPT.format(
        count=config.image_query_count,
        topic=topic,
        keywords=", ".join([*primary_keywords, *secondary_keywords]) or "(none)",
    )
    try:
        contract = await complete_validated(
            gateway,
            prompt,
            config.image_queries,
            ImageQueryContract,
            result.usages,
            system_prompt=JSON_ONLY_SYSTEM_PROMPT,
            max_retries=config.contract_retries,
        )
    except (CompletionError, MalformedResponse) as e:
        logger.warning("image_queries_failed", topic=topic, error=str(e))
        result.degradations.append("image_queries")
        return [topic]

    if not contract.queries:
        logger.warning("image_queries_empty", topic=topic)
        result.degradations.append("image_queries")
        return [topic]
    return contract.queries[:config.image_query_count]


async def enrich_images(
    topic: str,
    primary_keywords: List[str],
    secondary_keywords: List[str],
    gateway: CompletionGateway,
    image_search: ImageSearch,
    config: PipelineConfig,
    result: Optional[ImageEnrichment] = None,
) -> ImageEnrichment:
    """
    Resolve images for the article. Never raises for provider failures.

    Terms are searched concurrently; the returned list keeps term order and
    skips terms without a result. Pass `result` to keep access to usage if the
    task gets cancelled.
    """
    if result is None:
        result = ImageEnrichment()
    result.queries = await derive_search_terms(
        topic, primary_keywords, secondary_keywords, gateway, config, result
    )

    async def search_one(query: str) -> Optional[ImageRef]:
        try:
            return await image_search.search(query)
        except Exception as e:
            logger.warning("image_search_failed", query=query, error=str(e), error_type=type(e).__name__)
            result.degradations.append(f"image_search:{query}")
            return None

    found = await asyncio.gather(*(search_one(q) for q in result.queries))
    result.images = [image for image in found if image is not None]

    logger.info(
        "images_enriched",
        topic=topic,
        queries=len(result.queries),
        found=len(result.images),
    )
    return result
