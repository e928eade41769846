from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar
from urllib.parse import urlencode

import httpx

from ingest.parsers.geojson import parse_feed_document
from ingest.parsers.rss import parse_discussions
from ingest.timestamps import normalize_timestamp, utc_now_iso
from normalize.models import DiscussionItem, FeedDocument


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchError:
    url: str
    reason: str
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.reason} fetching {self.url}"


def client_timeout(read_seconds: float) -> httpx.Timeout:
    return httpx.Timeout(connect=5.0, read=read_seconds, write=5.0, pool=5.0)


async def fetch(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    accept: str = "application/json, application/xml, application/rss+xml, text/xml, */*",
) -> tuple[int, bytes | None]:
    headers = {"User-Agent": user_agent, "Accept": accept}
    response = await client.get(url, headers=headers)
    return (
        response.status_code,
        (response.content if response.status_code == 200 else None),
    )


async def fetch_parsed(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    parse: Callable[[bytes], T],
) -> T | FetchError:
    logger.info("fetching %s", url)
    try:
        status_code, content = await fetch(
            client, url=url, user_agent=user_agent
        )
    except httpx.TimeoutException:
        return FetchError(url=url, reason="timeout")
    except httpx.RequestError as e:
        return FetchError(url=url, reason=f"request_error:{e.__class__.__name__}")

    if status_code != 200 or content is None:
        return FetchError(url=url, reason=f"http_{status_code}", status_code=status_code)

    try:
        result = parse(content)
    except (ValueError, json.JSONDecodeError):
        return FetchError(url=url, reason="parse_error", status_code=status_code)

    return result


def active_url(base_url: str, ts: str) -> str:
    return f"{base_url}?{urlencode({'ts': ts}, safe=':')}"


def range_url(base_url: str, start: str, end: str) -> str:
    return f"{base_url}?{urlencode({'sts': start, 'ets': end}, safe=':')}"


async def fetch_active(
    client: httpx.AsyncClient, *, base_url: str, user_agent: str
) -> FeedDocument | FetchError:
    return await fetch_parsed(
        client,
        url=active_url(base_url, utc_now_iso()),
        user_agent=user_agent,
        parse=parse_feed_document,
    )


async def fetch_range(
    client: httpx.AsyncClient,
    *,
    base_url: str,
    user_agent: str,
    start: str,
    end: str,
) -> FeedDocument | FetchError:
    """Fetch every record valid within ``[start, end]``.

    Both ends go through ``normalize_timestamp`` first, so a malformed bound
    raises ``InvalidTimestamp`` before any request is made. An inverted
    window is passed upstream unchanged.
    """
    sts = normalize_timestamp(start)
    ets = normalize_timestamp(end)
    return await fetch_parsed(
        client,
        url=range_url(base_url, sts, ets),
        user_agent=user_agent,
        parse=parse_feed_document,
    )


async def fetch_discussions(
    client: httpx.AsyncClient, *, url: str, user_agent: str
) -> list[DiscussionItem] | FetchError:
    return await fetch_parsed(
        client, url=url, user_agent=user_agent, parse=parse_discussions
    )
