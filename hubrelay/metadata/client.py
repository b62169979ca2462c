"""
Cache-first client for the YouTube Data API.

``resolve`` never raises for remote failures: a non-success response, a
network error or an empty result set all return None, which callers
treat as "unknown" and reject.
"""

import logging
import time

import httpx

from hubrelay.metadata.config import MetadataConfig
from hubrelay.metadata.schemas import VideoMetadata
from hubrelay.observability.metrics import get_metrics
from hubrelay.storage.cache import RedisCache

logger = logging.getLogger(__name__)

MINIMAL_PARTS = "contentDetails,status"
EXTENDED_PARTS = "snippet,contentDetails,status"


class MetadataResolver:
    """
    Fetch authoritative video attributes, memoized in Redis.

    Minimal and extended field sets cost different amounts of API quota
    and are cached under separate keys.

    Usage:
        resolver = MetadataResolver(api_key, cache=cache)
        meta = await resolver.resolve("dQw4w9WgXcQ", extended=True)
        if meta is None:
            ...  # unknown or unfetchable
    """

    def __init__(
        self,
        api_key: str | None,
        cache: RedisCache | None = None,
        config: MetadataConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._cache = cache
        self._config = config or MetadataConfig()
        self._transport = transport

    @staticmethod
    def cache_key(item_id: str, extended: bool) -> str:
        return f"meta:{item_id}:{'ext' if extended else 'min'}"

    async def resolve(self, item_id: str, extended: bool = False) -> VideoMetadata | None:
        """Return metadata for a video, or None if it cannot be fetched."""
        key = self.cache_key(item_id, extended)

        if self._cache is not None:
            cached = await self._cache.get_json(key)
            if cached is not None:
                try:
                    return VideoMetadata.from_dict(cached)
                except TypeError:
                    logger.warning("Ignoring malformed cached metadata for %s", item_id)

        start = time.monotonic()
        metadata = await self._fetch(item_id, extended)
        get_metrics().record_stage_latency("metadata", time.monotonic() - start)

        if metadata is not None and self._cache is not None and self._config.cache_ttl_seconds:
            await self._cache.set_json(key, metadata.to_dict(), self._config.cache_ttl_seconds)

        return metadata

    async def _fetch(self, item_id: str, extended: bool) -> VideoMetadata | None:
        if not self._api_key:
            logger.warning("No YouTube API key configured, cannot resolve %s", item_id)
            return None

        params = {
            "part": EXTENDED_PARTS if extended else MINIMAL_PARTS,
            "id": item_id,
            "key": self._api_key,
        }
        url = f"{self._config.base_url.rstrip('/')}/videos"

        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout, transport=self._transport
            ) as client:
                resp = await client.get(url, params=params)
        except httpx.TimeoutException:
            logger.warning("Metadata request timed out for %s", item_id)
            return None
        except httpx.HTTPError as e:
            logger.warning("Metadata request failed for %s: %s", item_id, e)
            return None

        if not resp.is_success:
            logger.warning(
                "Metadata API returned %d for %s", resp.status_code, item_id,
            )
            return None

        try:
            items = resp.json().get("items") or []
        except ValueError:
            logger.warning("Metadata API returned invalid JSON for %s", item_id)
            return None

        if not items:
            logger.info("Video %s not found by metadata API", item_id)
            return None

        return VideoMetadata.from_api(items[0])
