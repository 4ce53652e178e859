"""
Completion gateway for the text-generation service.

One structured request per call against an OpenAI-compatible chat completions
endpoint. HTTP status codes are mapped here, once, into the error taxonomy.
The gateway never retries; retry policy belongs to the caller.
"""
import json
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel

from .config import LLMConfig, PipelineConfig
from .errors import (
    AuthenticationFailed,
    CompletionError,
    EmptyResponse,
    MalformedResponse,
    RateLimited,
    ServiceUnavailable,
)
from .json_contract import parse_contract
from .prompts import CONTRACT_RETRY_SUFFIX
from .schemas import Completion, CompletionUsage

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, number)


def parse_usage(data: Dict[str, Any]) -> CompletionUsage:
    """Read the `usage` block of a chat completion response, defaulting to zeros."""
    usage = data.get("usage") or {}
    if not isinstance(usage, dict):
        return CompletionUsage()
    prompt_tokens = _non_negative_int(usage.get("prompt_tokens"))
    completion_tokens = _non_negative_int(usage.get("completion_tokens"))
    total_tokens = _non_negative_int(usage.get("total_tokens")) or prompt_tokens + completion_tokens
    return CompletionUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


def _extract_content(data: Dict[str, Any]) -> Optional[str]:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


class CompletionGateway:
    """
    Client for the chat completions endpoint.

    Usage:
        async with CompletionGateway.from_config(config) as gateway:
            completion = await gateway.complete("Hello", temperature=0.2)
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        default_model: str = "gpt-4o",
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise AuthenticationFailed("OPENAI_API_KEY not set")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_model = default_model
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: PipelineConfig, client: Optional[httpx.AsyncClient] = None) -> "CompletionGateway":
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.request_timeout,
            default_model=config.structure.model,
            client=client,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if this gateway created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "CompletionGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def complete(
        self,
        user_prompt: str,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """
        Issue one chat completion request.

        Raises:
            AuthenticationFailed: 401/403
            RateLimited: 429
            ServiceUnavailable: transport error, timeout, other error status
            EmptyResponse: no text in choices[0].message.content
        """
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        request_body: Dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            request_body["max_tokens"] = max_tokens

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=request_body,
            )
        except httpx.TimeoutException as e:
            logger.warning("llm_request_timeout", model=request_body["model"], error=str(e))
            raise ServiceUnavailable(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.warning("llm_transport_error", model=request_body["model"], error=str(e))
            raise ServiceUnavailable(f"Transport error: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationFailed(f"Credentials rejected (HTTP {status})", status_code=status)
        if status == 429:
            raise RateLimited("Rate limit or quota exceeded (HTTP 429)", status_code=status)
        if status >= 400:
            raise ServiceUnavailable(
                f"HTTP {status}: {response.reason_phrase}", status_code=status
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ServiceUnavailable(f"Unreadable response body: {e}", status_code=status) from e
        if not isinstance(data, dict):
            raise ServiceUnavailable("Unexpected response shape", status_code=status)

        usage = parse_usage(data)
        content = _extract_content(data)
        if not content or not content.strip():
            logger.error("llm_empty_response", model=request_body["model"], usage=usage.model_dump())
            raise EmptyResponse("No content received from the text-generation service", usage=usage)

        logger.debug(
            "llm_response",
            model=request_body["model"],
            content_len=len(content),
            total_tokens=usage.total_tokens,
        )
        return Completion(text=content, usage=usage)


async def complete_text(
    gateway: CompletionGateway,
    prompt: str,
    llm_config: LLMConfig,
    usages: List[CompletionUsage],
    system_prompt: Optional[str] = None,
) -> str:
    """
    Single plain-text call. Usage is appended to `usages` even when the call
    fails after the service answered.
    """
    try:
        completion = await gateway.complete(
            prompt,
            temperature=llm_config.temperature,
            system_prompt=system_prompt,
            model=llm_config.model,
            max_tokens=llm_config.max_tokens,
        )
    except CompletionError as e:
        if e.usage is not None:
            usages.append(e.usage)
        raise
    usages.append(completion.usage)
    return completion.text


async def complete_validated(
    gateway: CompletionGateway,
    prompt: str,
    llm_config: LLMConfig,
    response_model: Type[T],
    usages: List[CompletionUsage],
    system_prompt: Optional[str] = None,
    max_retries: int = 0,
) -> T:
    """
    Call the gateway and validate the response against a JSON contract.

    On a contract violation the prompt is re-sent with the error appended, up
    to `max_retries` times. Every attempt's usage lands in `usages`.

    Raises:
        MalformedResponse: all attempts violated the contract
        CompletionError: the gateway failed (not retried)
    """
    current_prompt = prompt
    for attempt in range(max_retries + 1):
        text = await complete_text(gateway, current_prompt, llm_config, usages, system_prompt)
        try:
            validated = parse_contract(text, response_model)
            if attempt > 0:
                logger.info("llm_validation_retry_succeeded", attempt=attempt + 1, contract=response_model.__name__)
            return validated
        except MalformedResponse as e:
            if attempt < max_retries:
                logger.warning(
                    "llm_validation_failed_retrying",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    contract=response_model.__name__,
                    error=str(e)[:300],
                )
                current_prompt = prompt + CONTRACT_RETRY_SUFFIX.format(error=str(e))
                continue
            logger.warning(
                "llm_validation_failed",
                attempts=attempt + 1,
                contract=response_model.__name__,
                error=str(e)[:300],
                response_preview=text[:300],
            )
            raise

    # range() always runs at least once; the loop either returns or raises
    raise MalformedResponse(f"{response_model.__name__} validation failed")
