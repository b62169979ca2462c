"""HTTP surface: hub callback and subscription admin endpoints."""

from hubrelay.api.app import create_app

__all__ = ["create_app"]
