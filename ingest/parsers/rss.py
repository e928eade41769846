from __future__ import annotations

import html
import re

import feedparser

from normalize.models import DiscussionItem


_IMG_SRC_RE = re.compile(r'<img[^>]*\bsrc="([^"]+)"', flags=re.IGNORECASE)
_HTML_TAG_RE = re.compile(r"<[^>]+>", flags=re.UNICODE)


def strip_html(text: str) -> str:
    return html.unescape(_HTML_TAG_RE.sub("", text)).strip()


def extract_image_url(description: str) -> str | None:
    match = _IMG_SRC_RE.search(description)
    if match is None:
        return None
    return match.group(1)


def parse_discussions(data: bytes) -> list[DiscussionItem]:
    parsed = feedparser.parse(data)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"unparseable discussion feed: {parsed.get('bozo_exception')}")

    items: list[DiscussionItem] = []
    for entry in parsed.entries:
        guid = entry.get("id") or entry.get("guid") or entry.get("link")
        if not guid:
            continue
        description = entry.get("summary", "") or ""
        items.append(
            DiscussionItem(
                id=str(guid),
                title=str(entry.get("title", "")),
                text=strip_html(description),
                image_url=extract_image_url(description),
            )
        )
    return items
