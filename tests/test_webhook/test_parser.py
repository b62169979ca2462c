"""Tests for hub delivery parsing."""

from datetime import datetime, timezone

import pytest

from hubrelay.webhook.parser import FeedParseError, parse_feed, trailing_segment

NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _feed(entry_xml: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" '
        'xmlns="http://www.w3.org/2005/Atom">'
        "<title>YouTube video feed</title>"
        f"{entry_xml}</feed>"
    )


class TestParseFeed:

    def test_extracts_youtube_fields(self, sample_feed):
        entries = parse_feed(sample_feed, now=NOW)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.item_id == "dQw4w9WgXcQ"
        assert entry.source_id == "UCuAXFkgsw1L7xaCfnd5JJOw"
        assert entry.title == "Full album walkthrough"
        assert entry.published_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert entry.is_valid

    def test_falls_back_to_generic_id_and_author_uri(self):
        body = _feed(
            "<entry><id>yt:video:abc123XYZ</id><title>Fallback</title>"
            "<author><name>C</name><uri>https://www.youtube.com/channel/UCfallback</uri></author>"
            "<published>2026-03-01T10:00:00+00:00</published></entry>"
        )

        entry = parse_feed(body, now=NOW)[0]

        assert entry.item_id == "abc123XYZ"
        assert entry.source_id == "UCfallback"

    def test_published_falls_back_to_updated_then_now(self):
        updated_only = _feed(
            "<entry><yt:videoId>v1</yt:videoId><yt:channelId>UC1</yt:channelId>"
            "<updated>2026-03-01T11:30:00+00:00</updated></entry>"
        )
        neither = _feed(
            "<entry><yt:videoId>v2</yt:videoId><yt:channelId>UC1</yt:channelId></entry>"
        )

        assert parse_feed(updated_only, now=NOW)[0].published_at == datetime(
            2026, 3, 1, 11, 30, tzinfo=timezone.utc
        )
        assert parse_feed(neither, now=NOW)[0].published_at == NOW

    def test_missing_title_is_empty_string(self):
        body = _feed("<entry><yt:videoId>v1</yt:videoId><yt:channelId>UC1</yt:channelId></entry>")
        assert parse_feed(body, now=NOW)[0].title == ""

    def test_entry_without_identity_is_invalid(self):
        body = _feed("<entry><title>No ids here</title></entry>")

        entries = parse_feed(body, now=NOW)

        assert len(entries) == 1
        assert not entries[0].is_valid

    def test_feed_without_entries(self):
        assert parse_feed(_feed(""), now=NOW) == []

    @pytest.mark.parametrize("body", ["this is not a feed", "{\"json\": true}"])
    def test_garbage_raises(self, body):
        with pytest.raises(FeedParseError):
            parse_feed(body, now=NOW)

    def test_body_is_never_fetched_as_url(self):
        with pytest.raises(FeedParseError):
            parse_feed("http://localhost:1/should-not-be-fetched", now=NOW)


class TestTrailingSegment:

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("yt:video:XYZ", "XYZ"),
            ("https://www.youtube.com/channel/UC123", "UC123"),
            ("https://www.youtube.com/channel/UC123/", "UC123"),
            ("plain", "plain"),
            ("", None),
            (None, None),
        ],
    )
    def test_segments(self, value, expected):
        assert trailing_segment(value) == expected
