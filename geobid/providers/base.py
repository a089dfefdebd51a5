"""Abstract base class for ads data providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from geobid.schema import Campaign, GeoRow, TargetedLocation


class BaseAdsProvider(ABC):
    """Interface that all ads platforms must implement."""

    @abstractmethod
    def list_campaigns(self, date_range: str) -> List[Campaign]:
        """Enabled campaigns with their campaign-wide metrics for *date_range*."""
        ...

    @abstractmethod
    def geo_rows(self, campaign: Campaign, date_range: str) -> List[GeoRow]:
        """Geographic performance rows for one campaign."""
        ...

    @abstractmethod
    def targeted_locations(self, campaign: Campaign, date_range: str) -> List[TargetedLocation]:
        """Location criteria the campaign already targets, with their metrics."""
        ...

    @abstractmethod
    def add_location(self, campaign: Campaign, location_id: str, bid_modifier: float) -> None:
        ...

    @abstractmethod
    def set_bid_modifier(
        self, campaign: Campaign, location: TargetedLocation, bid_modifier: float
    ) -> None:
        ...

    def targeted_location_ids(self, campaign: Campaign, date_range: str) -> List[str]:
        """IDs of the targeted locations, without metrics or names.

        Providers with a cheaper ID-only read override this.
        """
        return [loc.criterion_id for loc in self.targeted_locations(campaign, date_range)]

    def stats(self) -> Dict[str, Any]:
        """Call counters for the run report: call_count, mutation_count, last_error."""
        return {"call_count": 0, "mutation_count": 0, "last_error": None}
