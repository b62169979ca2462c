"""Authoritative per-video attributes returned by the content API."""

import re
from dataclasses import asdict, dataclass, field
from typing import Any

_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def parse_duration(value: str | None) -> int:
    """Convert an ISO-8601 duration (``PT1H2M3S``) to whole seconds.

    Missing or unparsable values yield 0.
    """
    if not value:
        return 0
    match = _DURATION_RE.match(value.strip())
    if match is None:
        return 0
    parts = match.groupdict()
    return (
        int(parts["days"] or 0) * 86_400
        + int(parts["hours"] or 0) * 3_600
        + int(parts["minutes"] or 0) * 60
        + int(float(parts["seconds"] or 0))
    )


@dataclass
class VideoMetadata:
    """Subset of a videos.list resource used by the filters.

    Attributes:
        item_id: Video id.
        privacy_status: 'public', 'unlisted' or 'private'.
        duration: ISO-8601 duration as returned by the API.
        definition: 'hd' or 'sd'.
        title: Snippet title (extended requests only).
        thumbnails: Thumbnail map keyed by size name (extended requests only).
        published_at: Snippet publication timestamp (extended requests only).
    """

    item_id: str
    privacy_status: str = ""
    duration: str = ""
    definition: str = ""
    title: str | None = None
    thumbnails: dict[str, Any] = field(default_factory=dict)
    published_at: str | None = None

    @property
    def duration_seconds(self) -> int:
        return parse_duration(self.duration)

    @property
    def is_public(self) -> bool:
        return self.privacy_status == "public"

    @property
    def is_hd(self) -> bool:
        return self.definition == "hd"

    @property
    def has_maxres_thumbnail(self) -> bool:
        return "maxres" in self.thumbnails

    @classmethod
    def from_api(cls, resource: dict[str, Any]) -> "VideoMetadata":
        """Build from one ``items[]`` entry of a videos.list response."""
        status = resource.get("status") or {}
        details = resource.get("contentDetails") or {}
        snippet = resource.get("snippet") or {}
        return cls(
            item_id=resource.get("id", ""),
            privacy_status=status.get("privacyStatus", ""),
            duration=details.get("duration", ""),
            definition=details.get("definition", ""),
            title=snippet.get("title"),
            thumbnails=dict(snippet.get("thumbnails") or {}),
            published_at=snippet.get("publishedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VideoMetadata":
        return cls(**data)
