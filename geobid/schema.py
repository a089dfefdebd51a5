"""Internal value types for geo performance rows and bid decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

Action = Literal["added", "updated", "unchanged", "skipped"]


@dataclass(frozen=True)
class LocationKey:
    """Composite (city, region, country) criterion identity of a report row."""

    city_id: str = ""
    region_id: str = ""
    country_id: str = ""

    def lookup_key(self) -> str:
        return f"{self.city_id},{self.region_id},{self.country_id}"

    @classmethod
    def parse(cls, value: str) -> "LocationKey":
        parts = [p.strip() for p in str(value or "").split(",")]
        parts += [""] * (3 - len(parts))
        return cls(city_id=parts[0], region_id=parts[1], country_id=parts[2])

    def __str__(self) -> str:
        return self.lookup_key()


@dataclass(frozen=True)
class MetricAggregate:
    """Summable performance metrics over a reporting window.

    Aggregation is field-wise addition: ``a + b`` sums clicks, conversions,
    cost and impressions. Negative values are rejected.
    """

    clicks: int = 0
    conversions: float = 0.0
    cost: float = 0.0
    impressions: int = 0

    def __post_init__(self) -> None:
        for name in ("clicks", "conversions", "cost", "impressions"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

    def __add__(self, other: "MetricAggregate") -> "MetricAggregate":
        if not isinstance(other, MetricAggregate):
            return NotImplemented
        return MetricAggregate(
            clicks=self.clicks + other.clicks,
            conversions=self.conversions + other.conversions,
            cost=self.cost + other.cost,
            impressions=self.impressions + other.impressions,
        )

    @property
    def conversion_rate(self) -> Optional[float]:
        """Conversions per click as a fraction; None without clicks."""
        if self.clicks <= 0:
            return None
        return self.conversions / self.clicks

    @property
    def conversion_rate_percent(self) -> Optional[float]:
        rate = self.conversion_rate
        return None if rate is None else rate * 100.0


@dataclass(frozen=True)
class CampaignBaseline:
    conversion_rate: Optional[float] = None

    @classmethod
    def from_metrics(cls, metrics: MetricAggregate) -> "CampaignBaseline":
        return cls(conversion_rate=metrics.conversion_rate)


@dataclass(frozen=True)
class Unqualified:
    """Explicit "no decision" result; the caller leaves current state alone."""

    reason: str = "unqualified"


@dataclass
class Campaign:
    id: str
    name: str
    metrics: MetricAggregate = field(default_factory=MetricAggregate)

    @property
    def baseline(self) -> CampaignBaseline:
        return CampaignBaseline.from_metrics(self.metrics)


@dataclass
class GeoRow:
    """One geographic report row for a campaign."""

    campaign_id: str
    key: LocationKey
    metrics: MetricAggregate = field(default_factory=MetricAggregate)


@dataclass
class TargetedLocation:
    """A location criterion already targeted by a campaign."""

    criterion_id: str
    name: str = ""
    bid_modifier: float = 1.0
    metrics: MetricAggregate = field(default_factory=MetricAggregate)
    resource_name: Optional[str] = None


@dataclass
class BidDecision:
    date: str
    campaign: str
    location_id: str
    location_name: str
    action: Action
    old_modifier: Optional[float] = None
    new_modifier: Optional[float] = None
    reason: str = ""
    applied: bool = False
    entry: str = ""

    @property
    def is_change(self) -> bool:
        return self.action in ("added", "updated")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "campaign": self.campaign,
            "location_id": self.location_id,
            "location_name": self.location_name,
            "action": self.action,
            "old_modifier": self.old_modifier,
            "new_modifier": self.new_modifier,
            "reason": self.reason,
            "applied": self.applied,
            "entry": self.entry,
        }
