"""Metadata resolution against the YouTube Data API."""

from hubrelay.metadata.client import MetadataResolver
from hubrelay.metadata.config import MetadataConfig
from hubrelay.metadata.schemas import VideoMetadata, parse_duration

__all__ = ["MetadataConfig", "MetadataResolver", "VideoMetadata", "parse_duration"]
