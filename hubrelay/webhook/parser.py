"""
Parse hub deliveries (Atom feeds) into candidate entries.

feedparser exposes the YouTube namespace elements as ``yt_videoid`` and
``yt_channelid``. When they are absent, the ids are derived from the
generic ``<id>`` (``yt:video:XYZ``) and the author URI
(``https://www.youtube.com/channel/UCxxxx``).
"""

import calendar
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import feedparser

logger = logging.getLogger(__name__)

_TRAILING_SEGMENT = re.compile(r"[^/:]+$")


class FeedParseError(Exception):
    """The delivery body is not a feed document."""


@dataclass
class FeedEntry:
    """Identity and headline fields of one feed entry."""

    item_id: str | None
    source_id: str | None
    title: str
    published_at: datetime

    @property
    def is_valid(self) -> bool:
        return bool(self.item_id and self.source_id)


def trailing_segment(value: str | None) -> str | None:
    """Last ``/`` or ``:`` separated segment of an id or URI."""
    if not value:
        return None
    match = _TRAILING_SEGMENT.search(value.strip().rstrip("/"))
    return match.group(0) if match else None


def _timestamp(entry, now: datetime) -> datetime:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    return now


def _source_uri(entry) -> str | None:
    detail = entry.get("author_detail") or {}
    return detail.get("href") or entry.get("href")


def parse_entry(entry, now: datetime | None = None) -> FeedEntry:
    now = now or datetime.now(timezone.utc)
    item_id = entry.get("yt_videoid") or trailing_segment(entry.get("id"))
    source_id = entry.get("yt_channelid") or trailing_segment(_source_uri(entry))
    return FeedEntry(
        item_id=item_id.strip() if item_id else None,
        source_id=source_id.strip() if source_id else None,
        title=entry.get("title") or "",
        published_at=_timestamp(entry, now),
    )


def parse_feed(body: str, now: datetime | None = None) -> list[FeedEntry]:
    """
    Parse a delivery body into entries.

    Entries missing an item or source id are returned too; callers check
    ``is_valid``.

    Raises:
        FeedParseError: If the body is not a feed document.
    """
    # A bytes stream keeps feedparser from treating the body as a URL or path
    parsed = feedparser.parse(io.BytesIO(body.encode("utf-8")))
    if parsed.bozo and not parsed.entries:
        raise FeedParseError(str(parsed.get("bozo_exception") or "unparsable feed"))
    if not parsed.entries and not parsed.feed:
        raise FeedParseError("document has no feed content")

    now = now or datetime.now(timezone.utc)
    return [parse_entry(entry, now) for entry in parsed.entries]
