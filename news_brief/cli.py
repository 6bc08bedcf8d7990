from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import aiohttp
from dotenv import load_dotenv

from .config import BriefConfig
from .core import BriefPipeline
from .evidence import ArticleFetcher
from .exceptions import NewsBriefError, NoHeadlinesError
from .fetcher import FeedSource
from .generation import GammaClient
from .llm import build_completer


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="news-brief",
        description="Fetch RSS headlines for a keyword, enrich them with grounded facts and render a Gamma brief.",
    )
    parser.add_argument("-k", "--keyword", default=None, help="topic keyword (default: built-in keyword)")
    parser.add_argument("-n", "--limit", default=None, help="number of headlines, 1-20 (default: 12)")
    parser.add_argument(
        "--rss", dest="rss_urls", action="append", default=[],
        help="extra RSS/Atom feed URL; repeat for several feeds",
    )
    parser.add_argument("--no-enrich", dest="enrich", action="store_false", help="skip evidence gathering and fact extraction")
    parser.add_argument("--dry-run", action="store_true", help="print the brief text instead of submitting it")
    parser.add_argument("--poll-interval", type=float, default=2.5, help="seconds between generation status checks")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, config: BriefConfig) -> int:
    async with aiohttp.ClientSession() as session:
        pipeline = BriefPipeline(
            config,
            feed_source=FeedSource(session, timeout_ms=config.feed_fetch_timeout_ms),
            article_fetcher=ArticleFetcher(session),
            completer=build_completer(config),
        )
        # Fail on a missing generation credential before doing any fetching
        gamma = None if args.dry_run else GammaClient.from_config(session, config)

        result = await pipeline.build(args.keyword, args.limit, args.rss_urls, enrich=args.enrich)
        for w in result.warnings:
            print(f"warning: {w}", file=sys.stderr)
        print(f"{len(result.headlines)} headlines, {result.enriched_count} enriched "
              f"(search keyword: {result.translation.search_keyword})", file=sys.stderr)

        if gamma is None:
            print(result.input_text)
            return 0

        generation_id = await gamma.create(result.input_text, result.keyword)
        print(f"generationId: {generation_id}", file=sys.stderr)
        status = await gamma.poll(generation_id, interval_sec=args.poll_interval)
        print(status.gamma_url)
        if status.pdf_url:
            print(f"PDF: {status.pdf_url}")
        hero_image = await gamma.fetch_og_image(status.gamma_url)
        if hero_image:
            print(f"Hero image: {hero_image}")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = BriefConfig.from_env()
    try:
        return asyncio.run(run(args, config))
    except NoHeadlinesError as e:
        for w in e.warnings:
            print(f"warning: {w}", file=sys.stderr)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except NewsBriefError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
