import asyncio

from blogsmith.enrich import enrich_pending_articles
from blogsmith.errors import ServiceUnavailable


class MemoryStore:
    def __init__(self, posts):
        self.posts = posts
        self.written = {}

    async def list_pending_enrichment(self, limit=None):
        return self.posts[:limit] if limit is not None else list(self.posts)

    async def set_long_article(self, key, text):
        if key == "vanished":
            raise KeyError(key)
        self.written[key] = text


def _post(key, article="# Original"):
    return {"id": key, "full_article": article, "reference_material": ["https://ref.test"]}


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def test_enriches_each_article_with_pacing(config, make_gateway):
    store = MemoryStore([_post("a"), _post("b"), _post("c")])
    gateway = make_gateway()
    sleep = SleepRecorder()
    config.enrichment_delay_seconds = 0.5

    report = asyncio.run(enrich_pending_articles(store, gateway, config, sleep=sleep))

    assert report.processed == 3
    assert report.succeeded == 3
    assert report.failed == 0
    assert store.written == {key: "# Enriched article" for key in ("a", "b", "c")}
    # pause between articles, none after the last one
    assert sleep.delays == [0.5, 0.5]
    assert report.usage.total_tokens == 3 * 150


def test_prompt_contains_article_and_references(config, make_gateway):
    store = MemoryStore([_post("a", article="# Solar Article")])
    gateway = make_gateway()

    asyncio.run(enrich_pending_articles(store, gateway, config, sleep=SleepRecorder()))

    (stage, prompt), = gateway.calls
    assert stage == "enrichment"
    assert "# Solar Article" in prompt
    assert "https://ref.test" in prompt


def test_failures_do_not_stop_the_batch(config, make_gateway):
    def handler(prompt):
        if "# Broken" in prompt:
            raise ServiceUnavailable("HTTP 500")
        return "# Enriched article"

    store = MemoryStore([_post("a"), _post("broken", article="# Broken"), _post("vanished"), _post("d")])
    report = asyncio.run(
        enrich_pending_articles(store, make_gateway({"enrichment": handler}), config, sleep=SleepRecorder())
    )

    assert report.processed == 4
    assert report.succeeded == 2
    assert report.failed_keys == ["broken", "vanished"]
    assert set(store.written) == {"a", "d"}


def test_empty_batch(config, make_gateway):
    sleep = SleepRecorder()
    report = asyncio.run(enrich_pending_articles(MemoryStore([]), make_gateway(), config, sleep=sleep))
    assert report.processed == 0
    assert sleep.delays == []


def test_limit_is_passed_to_store(config, make_gateway):
    store = MemoryStore([_post("a"), _post("b")])
    report = asyncio.run(
        enrich_pending_articles(store, make_gateway(), config, limit=1, sleep=SleepRecorder())
    )
    assert report.processed == 1
