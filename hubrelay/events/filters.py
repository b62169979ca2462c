"""Filter predicates applied by the pipeline.

Each filter returns None when the item passes, or a short reason string
when it is rejected. They are pure functions of the job, the resolved
metadata and the FilterConfig, so the pipeline decides the order.
"""

from hubrelay.events.config import FilterConfig
from hubrelay.metadata.schemas import VideoMetadata


def keyword_filter(title: str, config: FilterConfig) -> str | None:
    """Reject titles containing any denylisted keyword (case-insensitive)."""
    lowered = title.lower()
    for keyword in config.keywords:
        if keyword and keyword in lowered:
            return f"keyword:{keyword}"
    return None


def privacy_filter(metadata: VideoMetadata, config: FilterConfig) -> str | None:
    """Reject anything not publicly visible."""
    if config.require_public and not metadata.is_public:
        return f"privacy:{metadata.privacy_status or 'unknown'}"
    return None


def duration_filter(metadata: VideoMetadata, config: FilterConfig) -> str | None:
    """Require min_seconds < duration (< max_seconds when configured)."""
    seconds = metadata.duration_seconds
    if seconds <= config.min_seconds:
        return f"duration:{seconds}s<={config.min_seconds}s"
    if config.max_seconds is not None and seconds >= config.max_seconds:
        return f"duration:{seconds}s>={config.max_seconds}s"
    return None


def quality_filter(metadata: VideoMetadata, config: FilterConfig) -> str | None:
    """When enabled, require HD definition and a maxres thumbnail."""
    if not config.require_hd:
        return None
    if not metadata.is_hd:
        return f"quality:definition={metadata.definition or 'unknown'}"
    if not metadata.has_maxres_thumbnail:
        return "quality:no_maxres_thumbnail"
    return None


METADATA_FILTERS = (privacy_filter, duration_filter, quality_filter)


def apply_metadata_filters(metadata: VideoMetadata, config: FilterConfig) -> str | None:
    """Run the metadata filters in order, returning the first rejection."""
    for check in METADATA_FILTERS:
        reason = check(metadata, config)
        if reason is not None:
            return reason
    return None
