import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from blogstore import ArticleStore, init_db
from blogstore.database import normalize_database_url


def _with_store(scenario):
    """Run `scenario(store)` against a fresh in-memory SQLite database."""
    async def runner():
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        try:
            await init_db(engine)
            store = ArticleStore(session_factory=async_sessionmaker(engine, expire_on_commit=False))
            return await scenario(store)
        finally:
            await engine.dispose()
    return asyncio.run(runner())


def _record(**overrides):
    record = {
        "slug": "solar-energy",
        "topic": "solar energy",
        "headline": "Solar Energy Explained",
        "primary_keywords": ["solar"],
        "secondary_keywords": [],
        "outline": [{"title": "Intro", "type": "h1", "keyPoints": []}],
        "introduction": "Intro text.",
        "sections": [{"title": "Panels", "content": "Panel text."}],
        "full_article": "# Solar Energy Explained\n\nBody.",
        "reference_material": ["https://example.com/solar"],
        "published": True,
    }
    record.update(overrides)
    return record


def test_upsert_inserts_then_updates():
    async def scenario(store):
        first = await store.upsert_article("solar", _record())
        second = await store.upsert_article("solar", _record(headline="Solar Energy, Revisited"))
        stored = await store.get_article("solar")
        return first, second, stored

    first, second, stored = _with_store(scenario)

    assert first is True
    assert second is False
    assert stored["headline"] == "Solar Energy, Revisited"
    assert stored["primary_keywords"] == ["solar"]
    assert stored["outline"][0]["keyPoints"] == []
    assert stored["published"] is True


def test_unknown_record_fields_are_ignored():
    async def scenario(store):
        await store.upsert_article("solar", _record(not_a_column="whatever"))
        return await store.get_article("solar")

    stored = _with_store(scenario)
    assert "not_a_column" not in stored
    assert stored["slug"] == "solar-energy"


def test_empty_key_is_rejected():
    async def scenario(store):
        await store.upsert_article("", _record())

    with pytest.raises(ValueError):
        _with_store(scenario)


def test_missing_article_is_none():
    async def scenario(store):
        return await store.get_article("missing")

    assert _with_store(scenario) is None


def test_pending_enrichment_selection():
    async def scenario(store):
        await store.upsert_article("ready", _record())
        await store.upsert_article("no-refs", _record(reference_material=[]))
        await store.upsert_article("no-article", _record(full_article=None))
        await store.upsert_article("done", _record())
        await store.set_long_article("done", "# Long")
        return await store.list_pending_enrichment()

    pending = _with_store(scenario)
    assert [post["id"] for post in pending] == ["ready"]


def test_pending_enrichment_limit_and_write_back():
    async def scenario(store):
        for key in ("a", "b", "c"):
            await store.upsert_article(key, _record())
        limited = await store.list_pending_enrichment(limit=2)
        await store.set_long_article("a", "# Long A")
        remaining = await store.list_pending_enrichment()
        article = await store.get_article("a")
        return limited, remaining, article

    limited, remaining, article = _with_store(scenario)
    assert len(limited) == 2
    assert {post["id"] for post in remaining} == {"b", "c"}
    assert article["article_long"] == "# Long A"


def test_set_long_article_for_unknown_key_raises():
    async def scenario(store):
        await store.set_long_article("missing", "text")

    with pytest.raises(KeyError):
        _with_store(scenario)


def test_reference_material_is_flattened_in_order():
    async def scenario(store):
        await store.add_reference_material(["https://a.test", "https://b.test"])
        await store.add_reference_material(["https://c.test"])
        return await store.get_reference_material()

    assert _with_store(scenario) == ["https://a.test", "https://b.test", "https://c.test"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite+aiosqlite:///x.db", "sqlite+aiosqlite:///x.db"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected
