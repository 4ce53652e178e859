from blogsmith.records import article_to_record, slugify
from blogsmith.schemas import (
    Article,
    GenerationRequest,
    GenerationResult,
    ImageRef,
    Outline,
    OutlineSection,
    SectionDraft,
    UsageTotals,
)


def _result():
    outline = Outline(
        headline="Solar & Wind: A 2025 Guide",
        primary_keywords=["solar"],
        secondary_keywords=["wind"],
        sections=[
            OutlineSection(title="Intro", type="h1", key_points=["why"]),
            OutlineSection(title="Panels", type="h2"),
        ],
    )
    article = Article(
        headline=outline.headline,
        outline=outline,
        introduction="Intro text.",
        sections=[SectionDraft(title="Panels", content="Panel text."), SectionDraft.unavailable("Turbines")],
        assembled_markdown="# assembled",
        polished_markdown="# polished",
        image_set=[ImageRef(url="https://images.test/a.jpg", alt_text="panels", query="panels")],
        degradations=["section:1"],
    )
    usage = UsageTotals(prompt_tokens=10, completion_tokens=5, total_tokens=15, estimated_cost=0.0006)
    return GenerationResult(article=article, usage=usage)


def test_slugify():
    assert slugify("Solar & Wind: A 2025 Guide") == "solar-wind-a-2025-guide"
    assert slugify("Énergie Renouvelable!") == "energie-renouvelable"


def test_record_fields():
    request = GenerationRequest(topic="renewables", reference_material=["https://ref.test"])
    record = article_to_record(_result(), request)

    assert record["slug"] == "solar-wind-a-2025-guide"
    assert record["topic"] == "renewables"
    assert record["outline"][0] == {"title": "Intro", "type": "h1", "keyPoints": ["why"]}
    assert record["sections"][1] == {"title": "Turbines", "content": "content unavailable"}
    assert record["body_copy"] == "Panel text.\ncontent unavailable"
    assert record["assembled_article"] == "# assembled"
    assert record["full_article"] == "# polished"
    assert record["image_urls"] == ["https://images.test/a.jpg"]
    assert record["alt_image_texts"] == ["panels"]
    assert record["reference_material"] == ["https://ref.test"]
    assert record["degradations"] == ["section:1"]
    assert record["usage"]["total_tokens"] == 15
    assert record["published"] is True
