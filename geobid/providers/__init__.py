"""Ads data provider package."""
from geobid.providers.base import BaseAdsProvider
from geobid.providers.memory_provider import InMemoryProvider

__all__ = ["BaseAdsProvider", "InMemoryProvider"]
