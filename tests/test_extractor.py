import json

import pytest

from news_brief.config import BriefConfig
from news_brief.exceptions import LLMError, LLMTimeoutError
from news_brief.extractor import FactExtractor, parse_json_object, validate_facts, build_whitelist
from news_brief.models import EvidenceBundle, Headline, SourceCandidate

from .conftest import FakeCompleter, facts_reply

HEADLINE = Headline(title="Chip plant", link="https://a.example/", source="Wire")

EVIDENCE = EvidenceBundle(
    article_snippet="The plant costs $2 billion.",
    source_candidates=(
        SourceCandidate(title="Chip plant", url="https://a.example/", source="Wire"),
        SourceCandidate(title="Rival story", url="https://b.example/1", source="B"),
    ),
    evidence_text="Article summary (Chip plant | https://a.example/):\nThe plant costs $2 billion.",
)

ONLY_A = EvidenceBundle(
    article_snippet="snippet",
    source_candidates=(SourceCandidate(title="A", url="https://a.example/", source="Wire"),),
    evidence_text="Article summary:\nsnippet",
)


def extractor(completer, **overrides):
    return FactExtractor(completer, BriefConfig(llm_api_key="k", **overrides))


@pytest.mark.asyncio
async def test_unrelated_source_is_dropped():
    reply = '{"facts":[{"fact":"X","sources":[{"title":"Y","url":"https://unrelated.example/"}]}]}'
    result = await extractor(FakeCompleter(reply)).extract(HEADLINE, ONLY_A, 2)
    assert result.facts == ()
    assert result.warning is not None


@pytest.mark.asyncio
async def test_grounded_facts_kept_and_canonicalized():
    reply = facts_reply(
        ("Plant costs $2 billion.", ["https://a.example", "https://evil.example/", "https://a.example/"]),
        ("Rival reported it too.", ["https://b.example/1/"]),
    )
    result = await extractor(FakeCompleter(reply)).extract(HEADLINE, EVIDENCE, 2)

    assert result.warning is None
    assert [f.text for f in result.facts] == ["Plant costs $2 billion.", "Rival reported it too."]
    first, second = result.facts
    assert [(s.title, s.url) for s in first.sources] == [("Chip plant", "https://a.example/")]
    assert [(s.title, s.url) for s in second.sources] == [("Rival story", "https://b.example/1")]


@pytest.mark.asyncio
async def test_every_emitted_source_is_in_the_whitelist():
    reply = facts_reply(
        ("one", ["https://a.example/", "https://x.example/"]),
        ("two", ["https://y.example/"]),
        ("three", ["https://b.example/1", "https://z.example/"]),
        ("", ["https://a.example/"]),
    )
    result = await extractor(FakeCompleter(reply)).extract(HEADLINE, EVIDENCE, 6)
    allowed = {c.url for c in EVIDENCE.source_candidates}
    assert [f.text for f in result.facts] == ["one", "three"]
    for fact in result.facts:
        assert fact.sources
        assert {s.url for s in fact.sources} <= allowed


@pytest.mark.asyncio
async def test_fact_count_truncates():
    reply = facts_reply(*[(f"fact {i}", ["https://a.example/"]) for i in range(5)])
    result = await extractor(FakeCompleter(reply)).extract(HEADLINE, EVIDENCE, 3)
    assert len(result.facts) == 3


@pytest.mark.asyncio
async def test_no_completer_fails_fast():
    result = await FactExtractor(None, BriefConfig()).extract(HEADLINE, EVIDENCE, 2)
    assert result.facts == ()
    assert "API key" in result.warning


@pytest.mark.asyncio
async def test_empty_evidence_fails_fast():
    completer = FakeCompleter(facts_reply(("x", ["https://a.example/"])))
    result = await extractor(completer).extract(HEADLINE, EvidenceBundle(), 2)
    assert result.facts == ()
    assert result.warning
    assert completer.calls == []


@pytest.mark.asyncio
async def test_retries_once_on_malformed_output():
    completer = FakeCompleter("Sorry, I cannot help.", facts_reply(("ok", ["https://a.example/"])))
    result = await extractor(completer).extract(HEADLINE, EVIDENCE, 2)
    assert len(completer.calls) == 2
    assert [f.text for f in result.facts] == ["ok"]


@pytest.mark.asyncio
async def test_gives_up_after_two_malformed_replies():
    completer = FakeCompleter("nope", "still nope", facts_reply(("never", ["https://a.example/"])))
    result = await extractor(completer).extract(HEADLINE, EVIDENCE, 2)
    assert len(completer.calls) == 2
    assert result.facts == ()
    assert "format invalid" in result.warning


@pytest.mark.asyncio
async def test_timeout_warning_names_setting():
    completer = FakeCompleter(LLMTimeoutError("slow"))
    result = await extractor(completer, enrich_timeout_ms=9000).extract(HEADLINE, EVIDENCE, 2)
    assert len(completer.calls) == 1
    assert "ENRICH_TIMEOUT_MS" in result.warning
    assert "9000ms" in result.warning


@pytest.mark.asyncio
async def test_other_failure_warning_is_distinct():
    completer = FakeCompleter(LLMError("HTTP 401 unauthorized"))
    result = await extractor(completer).extract(HEADLINE, EVIDENCE, 2)
    assert "ENRICH_TIMEOUT_MS" not in result.warning
    assert "401" in result.warning


@pytest.mark.asyncio
async def test_prompt_contains_evidence_and_allowed_urls():
    long_evidence = EvidenceBundle(
        article_snippet="s",
        source_candidates=EVIDENCE.source_candidates,
        evidence_text="A" * 5000,
    )
    completer = FakeCompleter(facts_reply())
    await extractor(completer).extract(HEADLINE, long_evidence, 2)
    prompt = completer.calls[0]["messages"][-1]["content"]
    assert "A" * 2600 in prompt
    assert "A" * 2601 not in prompt
    assert "https://b.example/1" in prompt
    assert completer.calls[0]["timeout_sec"] == 15


def test_parse_json_object_strategies():
    assert parse_json_object('{"facts": []}') == {"facts": []}
    assert parse_json_object('```json\n{"facts": [1]}\n```') == {"facts": [1]}
    assert parse_json_object('Here you go: {"facts": [2]} hope it helps') == {"facts": [2]}
    assert parse_json_object("no json here") is None
    assert parse_json_object("") is None
    assert parse_json_object("} backwards {") is None


def test_validate_facts_dedupes_sources_by_normalized_url():
    whitelist = build_whitelist(EVIDENCE)
    facts = validate_facts(
        [{"fact": " spaced   text ", "sources": [{"url": "https://a.example"}, {"url": "https://a.example/"}, "junk"]}, "junk"],
        whitelist,
    )
    assert len(facts) == 1
    assert facts[0].text == "spaced text"
    assert len(facts[0].sources) == 1


@pytest.mark.asyncio
async def test_reply_without_facts_list_is_format_invalid():
    completer = FakeCompleter(json.dumps({"items": []}))
    result = await extractor(completer).extract(HEADLINE, EVIDENCE, 2)
    assert len(completer.calls) == 2
    assert "format invalid" in result.warning


@pytest.mark.asyncio
@pytest.mark.parametrize("sources", ["5", "true", '"https://a.example/"', '{"url": "https://a.example/"}'])
async def test_sources_that_are_not_a_list_yield_a_warning(sources):
    reply = '{"facts":[{"fact":"X","sources":%s}]}' % sources
    result = await extractor(FakeCompleter(reply)).extract(HEADLINE, EVIDENCE, 2)
    assert result.facts == ()
    assert result.warning.startswith("no verifiable facts")
