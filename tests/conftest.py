# tests/conftest.py
import asyncio
import json
from types import SimpleNamespace

import pytest

from news_brief.config import BriefConfig
from news_brief.fetcher import GOOGLE_NEWS_SEARCH


def make_feed(title, entries):
    """Shape of a feedparser result: .feed.title and .entries (dict-like)."""
    return SimpleNamespace(feed={"title": title}, entries=list(entries), bozo=0)


def entry(title, link, published="", **extra):
    e = {"title": title, "link": link, "published": published}
    e.update(extra)
    return e


class FakeFeedSource:
    """Feed collaborator serving canned feeds; values may be exceptions to raise."""

    def __init__(self, feeds=None, search=None):
        self.feeds = dict(feeds or {})
        self.search = search  # url -> feed, for Google News search URLs
        self.calls = []

    async def parse(self, url):
        self.calls.append(url)
        await asyncio.sleep(0)
        if url in self.feeds:
            value = self.feeds[url]
        elif self.search is not None and url.startswith(GOOGLE_NEWS_SEARCH):
            value = self.search(url)
        else:
            raise ConnectionError(f"unreachable: {url}")
        if isinstance(value, BaseException):
            raise value
        return value


class FakeArticleFetcher:
    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    async def fetch_text(self, url, timeout_ms):
        self.calls.append((url, timeout_ms))
        await asyncio.sleep(0)
        value = self.pages.get(url)
        if isinstance(value, BaseException):
            raise value
        return value


class FakeCompleter:
    """Returns queued replies in order (the last one repeats); exceptions are raised."""

    def __init__(self, *replies, delay=0.0):
        self.replies = list(replies)
        self.delay = delay
        self.calls = []

    async def complete(self, messages, *, temperature, timeout_sec):
        self.calls.append({"messages": messages, "temperature": temperature, "timeout_sec": timeout_sec})
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(len(self.calls), len(self.replies)) - 1
        value = self.replies[index]
        if isinstance(value, BaseException):
            raise value
        return value


def facts_reply(*facts):
    """JSON reply of the fact contract: facts given as (text, [urls])."""
    return json.dumps({
        "facts": [
            {"fact": text, "sources": [{"title": "t", "url": u} for u in urls]}
            for text, urls in facts
        ]
    })


@pytest.fixture()
def config():
    return BriefConfig(llm_api_key="test-key")


@pytest.fixture()
def no_key_config():
    return BriefConfig()


class FakeResponse:
    def __init__(self, status=200, body=""):
        self.status = status
        self._body = body

    async def __aenter__(self):
        if isinstance(self._body, BaseException):
            raise self._body
        return self

    async def __aexit__(self, *exc):
        return False

    async def text(self, errors="strict"):
        return self._body if isinstance(self._body, str) else self._body.decode("utf-8", errors)

    async def read(self):
        return self._body.encode("utf-8") if isinstance(self._body, str) else self._body


class FakeSession:
    """Stands in for aiohttp.ClientSession: url -> (status, body); body may be an exception."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append(url)
        status, body = self.routes.get(url, (404, ""))
        return FakeResponse(status, body)
