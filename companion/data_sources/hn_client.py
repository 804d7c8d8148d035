"""Topic news from the Hacker News Algolia search API."""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import List, Optional
from urllib.parse import urlparse

import requests

from companion.app_types import DEFAULT_NEWS_TOPIC
from companion.errors import FetchError
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag='hn_client')

session = requests.Session()

HN_SEARCH_URL = "https://hn.algolia.com/api/v1/search"
HN_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
HN_HOME_URL = "https://news.ycombinator.com/"


@dataclass
class Article:
    """One headline row."""
    title: str
    source: str
    published: str
    url: str


def is_top_stories(topic: str | None) -> bool:
    return not (topic or "").strip() or topic.strip().lower() == DEFAULT_NEWS_TOPIC.lower()


def _host(url: str) -> str:
    return urlparse(url).hostname or ""


def _published(created_at: Optional[str]) -> str:
    """Render an ISO timestamp as 'YYYY-MM-DD HH:MM' (UTC); pass through anything else."""
    if not created_at:
        return ""
    try:
        parsed = dt.datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return created_at
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc).strftime("%Y-%m-%d %H:%M")


def article_from_hit(hit: dict) -> Article:
    """Normalize an Algolia hit; missing URLs point at the HN discussion."""
    url = hit.get("url")
    if not url:
        object_id = hit.get("objectID") or hit.get("object_id")
        url = HN_ITEM_URL.format(id=object_id) if object_id else HN_HOME_URL
    return Article(
        title=hit.get("title") or "Untitled",
        source=_host(url),
        published=_published(hit.get("created_at")),
        url=url,
    )


def fetch_news(topic: str | None, *, count: int = 12, timeout: float = 10) -> dict:
    """Fetch front-page stories, or a story search for ``topic``, as a cacheable payload."""
    if is_top_stories(topic):
        params = {"tags": "front_page"}
    else:
        params = {"query": topic.strip(), "tags": "story"}
    try:
        resp = session.get(HN_SEARCH_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        hits = resp.json()["hits"]
        articles: List[Article] = [article_from_hit(h) for h in hits[:count] if isinstance(h, dict)]
    except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
        raise FetchError(f"News fetch failed: {exc}") from exc

    logger.info("Fetched news", extra={"topic": topic, "articles": len(articles)})
    return {
        "topic": topic or DEFAULT_NEWS_TOPIC,
        "rows": [asdict(a) for a in articles],
    }
