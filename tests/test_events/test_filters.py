"""Tests for the filter predicates and FilterConfig."""

import pytest

from hubrelay.events.config import FilterConfig
from hubrelay.events.filters import (
    apply_metadata_filters,
    duration_filter,
    keyword_filter,
    privacy_filter,
    quality_filter,
)
from hubrelay.metadata.schemas import VideoMetadata


def _meta(**kwargs) -> VideoMetadata:
    defaults = dict(
        item_id="v1",
        privacy_status="public",
        duration="PT10M",
        definition="hd",
        thumbnails={"maxres": {"url": "m.jpg"}},
    )
    defaults.update(kwargs)
    return VideoMetadata(**defaults)


def _seconds(n: int) -> str:
    return f"PT{n}S"


class TestKeywordFilter:

    def test_rejects_denylisted_title_case_insensitively(self):
        assert keyword_filter("Weekly Shorts Live", FilterConfig()) is not None

    @pytest.mark.parametrize("title", ["Official Trailer", "my reaction video", "#short cut", "LIVE now"])
    def test_default_keywords(self, title):
        assert keyword_filter(title, FilterConfig()) is not None

    def test_passes_clean_title(self):
        assert keyword_filter("Full album walkthrough", FilterConfig()) is None

    def test_custom_keywords(self):
        config = FilterConfig(keywords=["unboxing"])
        assert keyword_filter("Unboxing day", config) == "keyword:unboxing"
        assert keyword_filter("Weekly Shorts Live", config) is None

    def test_keywords_from_comma_separated_string(self):
        config = FilterConfig(keywords=" Teaser , PROMO ,")
        assert config.keywords == ["teaser", "promo"]


class TestPrivacyFilter:

    def test_public_passes(self):
        assert privacy_filter(_meta(), FilterConfig()) is None

    @pytest.mark.parametrize("status", ["private", "unlisted", ""])
    def test_non_public_rejected(self, status):
        assert privacy_filter(_meta(privacy_status=status), FilterConfig()) is not None

    def test_can_be_disabled(self):
        config = FilterConfig(require_public=False)
        assert privacy_filter(_meta(privacy_status="unlisted"), config) is None


class TestDurationFilter:

    def test_equal_to_min_is_filtered(self):
        config = FilterConfig(min_seconds=210)
        assert duration_filter(_meta(duration=_seconds(210)), config) is not None

    def test_one_above_min_passes(self):
        config = FilterConfig(min_seconds=210)
        assert duration_filter(_meta(duration=_seconds(211)), config) is None

    def test_equal_to_max_is_filtered(self):
        config = FilterConfig(min_seconds=60, max_seconds=3600)
        assert duration_filter(_meta(duration="PT1H"), config) is not None
        assert duration_filter(_meta(duration=_seconds(3599)), config) is None

    def test_no_upper_bound_by_default(self):
        assert duration_filter(_meta(duration="PT9H"), FilterConfig()) is None

    def test_unparsable_duration_is_filtered(self):
        assert duration_filter(_meta(duration="P1W"), FilterConfig()) is not None

    def test_max_must_exceed_min(self):
        with pytest.raises(ValueError):
            FilterConfig(min_seconds=300, max_seconds=300)


class TestQualityFilter:

    def test_disabled_by_default(self):
        assert quality_filter(_meta(definition="sd", thumbnails={}), FilterConfig()) is None

    def test_requires_hd_and_maxres(self):
        config = FilterConfig(require_hd=True)
        assert quality_filter(_meta(), config) is None
        assert quality_filter(_meta(definition="sd"), config) is not None
        assert quality_filter(_meta(thumbnails={"high": {}}), config) is not None


class TestApplyMetadataFilters:

    def test_first_rejection_wins(self):
        reason = apply_metadata_filters(
            _meta(privacy_status="private", duration="PT5S"), FilterConfig()
        )
        assert reason.startswith("privacy")

    def test_all_pass(self):
        assert apply_metadata_filters(_meta(), FilterConfig()) is None
