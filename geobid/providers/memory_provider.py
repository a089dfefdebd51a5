"""In-memory provider for offline runs: campaigns and reports come from CSV exports."""

from __future__ import annotations

from typing import Dict, List, Optional

from geobid.providers.base import BaseAdsProvider
from geobid.schema import Campaign, GeoRow, TargetedLocation


class InMemoryProvider(BaseAdsProvider):
    """Serves pre-loaded rows; mutations are applied to the in-memory state.

    The date range is ignored: the data is assumed to cover the window
    the caller asks for.
    """

    def __init__(
        self,
        campaigns: List[Campaign],
        geo_rows: Optional[List[GeoRow]] = None,
        targeted: Optional[Dict[str, List[TargetedLocation]]] = None,
    ) -> None:
        self._campaigns = list(campaigns)
        self._geo_rows = list(geo_rows or [])
        self._targeted: Dict[str, List[TargetedLocation]] = {
            cid: list(locs) for cid, locs in (targeted or {}).items()
        }
        self._call_log: List[str] = []
        self.mutations: List[Dict] = []

    def list_campaigns(self, date_range: str) -> List[Campaign]:
        self._call_log.append("list_campaigns")
        return list(self._campaigns)

    def geo_rows(self, campaign: Campaign, date_range: str) -> List[GeoRow]:
        self._call_log.append("geo_rows")
        return [r for r in self._geo_rows if r.campaign_id == campaign.id]

    def targeted_locations(self, campaign: Campaign, date_range: str) -> List[TargetedLocation]:
        self._call_log.append("targeted_locations")
        return list(self._targeted.get(campaign.id, []))

    def targeted_location_ids(self, campaign: Campaign, date_range: str) -> List[str]:
        self._call_log.append("targeted_location_ids")
        return [loc.criterion_id for loc in self._targeted.get(campaign.id, [])]

    def add_location(self, campaign: Campaign, location_id: str, bid_modifier: float) -> None:
        self._call_log.append("add_location")
        self._targeted.setdefault(campaign.id, []).append(
            TargetedLocation(criterion_id=str(location_id), bid_modifier=bid_modifier)
        )
        self.mutations.append(
            {
                "op": "add_location",
                "campaign_id": campaign.id,
                "location_id": str(location_id),
                "bid_modifier": bid_modifier,
            }
        )

    def set_bid_modifier(
        self, campaign: Campaign, location: TargetedLocation, bid_modifier: float
    ) -> None:
        self._call_log.append("set_bid_modifier")
        location.bid_modifier = bid_modifier
        self.mutations.append(
            {
                "op": "set_bid_modifier",
                "campaign_id": campaign.id,
                "location_id": location.criterion_id,
                "bid_modifier": bid_modifier,
            }
        )

    # ── Stats helper (mirrors GoogleAdsProvider interface) ───────────────────

    def stats(self) -> dict:
        return {
            "call_count": len(self._call_log),
            "mutation_count": len(self.mutations),
            "last_error": None,
        }
