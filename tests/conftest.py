import asyncio
import json
import re
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest
import structlog

from blogsmith.config import PipelineConfig
from blogsmith.schemas import Completion, CompletionUsage, ImageRef

# Prompt openings identify which stage a call belongs to
STAGE_MARKERS: List[Tuple[str, str]] = [
    ("style_analysis", "Analyze the writing style"),
    ("structure", "Create a detailed blog post structure"),
    ("introduction", "Write an engaging introduction"),
    ("section", "Write section "),
    ("polish", "draft article that needs polishing"),
    ("image_queries", "image search queries"),
    ("enrichment", "improving a published blog article"),
]

SECTION_RE = re.compile(r"Write section (\d+) of (\d+)")
TITLE_RE = re.compile(r'The section\'s "title" must match this headline: "([^"]*)"')

Handler = Union[str, Exception, Callable[[str], str]]


def stage_of(prompt: str) -> str:
    head = prompt[:300]
    for stage, marker in STAGE_MARKERS:
        if marker in head:
            return stage
    raise AssertionError(f"Unrecognised prompt: {head!r}")


def section_title(prompt: str) -> str:
    match = TITLE_RE.search(prompt)
    assert match, "section prompt carries its title"
    return match.group(1)


def section_position(prompt: str) -> Tuple[int, int]:
    match = SECTION_RE.search(prompt)
    assert match, "section prompt carries its position"
    return int(match.group(1)), int(match.group(2))


HEADLINE = "Renewable Energy: How Solar and Wind Power the Grid"

CANNED_OUTLINE = {
    "headline": HEADLINE,
    "primaryKeywords": ["model-primary"],
    "secondaryKeywords": ["model-secondary"],
    "outline": [
        {"title": "Introduction", "type": "h1", "keyPoints": ["Why it matters"]},
        {"title": "Solar Basics", "type": "h2", "keyPoints": ["Panels", "Inverters"]},
        {"title": "Wind Basics", "type": "h2", "keyPoints": ["Turbines"]},
        {"title": "Grid Integration", "type": "h2", "keyPoints": ["Storage", "Balancing"]},
    ],
}


def canned_section(prompt: str) -> str:
    title = section_title(prompt)
    return "```json\n" + json.dumps({
        "sections": [{"title": title, "content": f"{title} body text."}]
    }) + "\n```"


def canned_polish(prompt: str) -> str:
    return json.dumps({"full_article": f"# {HEADLINE}\n\nPolished article body."})


def default_handlers() -> Dict[str, Handler]:
    return {
        "style_analysis": "Short, punchy, data-driven.",
        "structure": "Here is the plan:\n" + json.dumps(CANNED_OUTLINE),
        "introduction": json.dumps({"introduction": "Energy is changing fast."}),
        "section": canned_section,
        "polish": canned_polish,
        "image_queries": json.dumps({"queries": ["solar panels", "wind turbines"]}),
        "enrichment": "# Enriched article",
    }


class StubGateway:
    """
    Scripted stand-in for CompletionGateway.

    Each stage maps to a response string, a callable building the response
    from the prompt, or an exception to raise. Every call is recorded.
    """

    def __init__(
        self,
        handlers: Optional[Dict[str, Handler]] = None,
        usage: Optional[Dict[str, CompletionUsage]] = None,
        delay: Optional[Callable[[str, str], float]] = None,
    ):
        self.handlers = default_handlers()
        self.handlers.update(handlers or {})
        self.usage = usage or {}
        self.delay = delay
        self.calls: List[Tuple[str, str]] = []
        self.finished: List[Tuple[str, str]] = []
        self.requests: List[dict] = []

    def usage_for(self, stage: str) -> CompletionUsage:
        return self.usage.get(stage, CompletionUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150))

    def stages_called(self) -> List[str]:
        return [stage for stage, _ in self.calls]

    def count(self, stage: str) -> int:
        return self.stages_called().count(stage)

    async def complete(self, user_prompt, temperature=0.7, system_prompt=None, model=None, max_tokens=None):
        stage = stage_of(user_prompt)
        self.calls.append((stage, user_prompt))
        self.requests.append({
            "stage": stage,
            "temperature": temperature,
            "system_prompt": system_prompt,
            "model": model,
        })
        if self.delay is not None:
            await asyncio.sleep(self.delay(stage, user_prompt))

        handler = self.handlers[stage]
        self.finished.append((stage, user_prompt))
        if isinstance(handler, Exception):
            raise handler
        text = handler(user_prompt) if callable(handler) else handler
        return Completion(text=text, usage=self.usage_for(stage))


class StubImageSearch:
    def __init__(self, results: Optional[Dict[str, Optional[ImageRef]]] = None, error: Optional[Exception] = None):
        self.results = results or {}
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str) -> Optional[ImageRef]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.results.get(query)


@pytest.fixture(autouse=True)
def reset_structlog():
    # The CLI points structlog at the stderr of the moment; undo it between tests
    yield
    structlog.reset_defaults()


@pytest.fixture
def config():
    return PipelineConfig(api_key="sk-test", unsplash_access_key="unsplash-test")


@pytest.fixture
def make_gateway():
    return StubGateway


@pytest.fixture
def make_image_search():
    return StubImageSearch
