import asyncio

import pytest

from news_brief.config import BriefConfig
from news_brief.evidence import EvidenceGatherer, html_to_text
from news_brief.models import Headline

from .conftest import FakeArticleFetcher, FakeFeedSource, entry, make_feed

HEADLINE = Headline(
    title="Chipmaker expands plant",
    link="https://a.example/story/",
    source="Wire",
    published="Mon, 01 Jan 2024 12:00:00 GMT",
)

PAGE = """
<html><head><title>t</title><style>.x{color:red}</style><script>var x = 1;</script></head>
<body><!-- tracking comment --><nav>Menu</nav><article><h1>Chipmaker expands</h1>
<p>The company will invest   $2 billion.</p></article></body></html>
"""


def related_feed(url):
    return make_feed("Google News", [
        entry("Same story", "https://a.example/story"),
        entry("Rival coverage", "https://b.example/1", "Mon, 01 Jan 2024 13:00:00 GMT", source={"title": "B Times"}),
        entry("Rival coverage dup", "https://b.example/1/"),
        entry("No link", ""),
        entry("Third", "https://c.example/2"),
        entry("Fourth", "https://d.example/3"),
    ])


def test_html_to_text_strips_markup():
    text = html_to_text(PAGE)
    assert "var x" not in text
    assert "color:red" not in text
    assert "tracking comment" not in text
    assert "The company will invest $2 billion." in text


def test_html_to_text_is_capped():
    assert len(html_to_text("<p>" + "word " * 1000 + "</p>")) == 1800


@pytest.mark.asyncio
async def test_gather_builds_bundle_and_whitelist():
    gatherer = EvidenceGatherer(
        FakeArticleFetcher({HEADLINE.link: PAGE}),
        FakeFeedSource(search=related_feed),
        BriefConfig(),
    )
    bundle = await gatherer.gather(HEADLINE, "semiconductors")

    assert "invest $2 billion" in bundle.article_snippet
    assert [r.link for r in bundle.related_news] == ["https://b.example/1", "https://c.example/2", "https://d.example/3"]
    assert bundle.related_news[0].source == "B Times"
    assert [c.url for c in bundle.source_candidates] == [
        "https://a.example/story/",
        "https://b.example/1",
        "https://c.example/2",
        "https://d.example/3",
    ]
    assert "Article summary" in bundle.evidence_text
    assert "Related news candidates:" in bundle.evidence_text
    assert "1. Rival coverage" in bundle.evidence_text


@pytest.mark.asyncio
async def test_related_limit_and_query():
    source = FakeFeedSource(search=related_feed)
    gatherer = EvidenceGatherer(FakeArticleFetcher(), source, BriefConfig())
    bundle = await gatherer.gather(HEADLINE, "semiconductors", related_limit=1)

    assert len(bundle.related_news) == 1
    assert "Chipmaker+expands+plant+semiconductors" in source.calls[0]


@pytest.mark.asyncio
async def test_failures_yield_empty_bundle():
    gatherer = EvidenceGatherer(
        FakeArticleFetcher({HEADLINE.link: asyncio.TimeoutError()}),
        FakeFeedSource(search=lambda url: RuntimeError("search down")),
        BriefConfig(),
    )
    bundle = await gatherer.gather(HEADLINE, "kw")

    assert bundle.article_snippet is None
    assert bundle.related_news == ()
    assert [c.url for c in bundle.source_candidates] == [HEADLINE.link]
    assert bundle.evidence_text == ""


@pytest.mark.asyncio
async def test_article_fetch_uses_configured_timeout():
    fetcher = FakeArticleFetcher({HEADLINE.link: None})
    gatherer = EvidenceGatherer(fetcher, FakeFeedSource(search=lambda url: make_feed("G", [])), BriefConfig(article_fetch_timeout_ms=2500))
    await gatherer.gather(HEADLINE, "kw")
    assert fetcher.calls == [(HEADLINE.link, 2500)]


@pytest.mark.asyncio
async def test_headline_without_link_skips_article_fetch():
    fetcher = FakeArticleFetcher()
    gatherer = EvidenceGatherer(fetcher, FakeFeedSource(search=related_feed), BriefConfig())
    bundle = await gatherer.gather(Headline(title="No link", link="", source="S"), "kw")
    assert fetcher.calls == []
    assert bundle.source_candidates[0].url == "https://a.example/story"
