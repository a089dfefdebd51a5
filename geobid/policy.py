"""Bid-modifier policy: eligibility gates and the clamped ratio formula.

Every function here is pure. A missing decision is returned as an
``Unqualified`` value and the caller leaves the current targeting alone.
"""

from __future__ import annotations

import math
from typing import Optional, Union

from geobid.config import BiddingConfig
from geobid.schema import CampaignBaseline, MetricAggregate, Unqualified

DEFAULT_EPSILON = 0.002

ModifierResult = Union[float, Unqualified]


def qualifies_as_new_location(
    metrics: MetricAggregate,
    min_clicks: int,
    min_impressions: int,
    min_conversions_threshold: float,
    min_cost: float = 0.0,
) -> bool:
    """True when a not yet targeted location has enough traffic to be added.

    Conversions must be strictly greater than the threshold.
    """
    return (
        metrics.clicks >= min_clicks
        and metrics.impressions >= min_impressions
        and metrics.conversions > min_conversions_threshold
        and metrics.cost >= min_cost
    )


def qualifies_as_existing_location(clicks: int, min_location_clicks: int) -> bool:
    return clicks >= min_location_clicks


def campaign_has_baseline(metrics: MetricAggregate, min_clicks: int) -> bool:
    """Campaigns without conversions or traffic give no usable denominator."""
    return metrics.conversions > 0 and metrics.clicks > min_clicks


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def compute_modifier(
    entity_conversion_rate: Optional[float],
    campaign_conversion_rate: Optional[float],
    min_bid: float,
    max_bid: float,
    ratio_divisor: float = 1.0,
) -> ModifierResult:
    """Return ``entity / campaign / ratio_divisor`` clamped to [min_bid, max_bid]."""
    if not _finite(entity_conversion_rate):
        return Unqualified("location conversion rate undefined")
    if not _finite(campaign_conversion_rate) or campaign_conversion_rate <= 0:
        return Unqualified("campaign conversion rate undefined")

    ratio = entity_conversion_rate / campaign_conversion_rate / ratio_divisor
    if not math.isfinite(ratio):
        return Unqualified("ratio undefined")

    return max(min_bid, min(max_bid, ratio))


def should_update_existing_modifier(
    old_modifier: float, new_modifier: float, epsilon: float = DEFAULT_EPSILON
) -> bool:
    return abs(old_modifier - new_modifier) >= epsilon


# ── Call-site formulas ───────────────────────────────────────────────────────
# The two passes express the location conversion rate in different units.
# New locations use percent and divide the ratio by new_location_ratio_divisor;
# existing locations use a plain fraction.


def new_location_modifier(
    metrics: MetricAggregate, baseline: CampaignBaseline, cfg: BiddingConfig
) -> ModifierResult:
    return compute_modifier(
        metrics.conversion_rate_percent,
        baseline.conversion_rate,
        cfg.min_bid,
        cfg.max_bid,
        ratio_divisor=cfg.new_location_ratio_divisor,
    )


def existing_location_modifier(
    metrics: MetricAggregate, baseline: CampaignBaseline, cfg: BiddingConfig
) -> ModifierResult:
    return compute_modifier(
        metrics.conversion_rate,
        baseline.conversion_rate,
        cfg.min_bid,
        cfg.max_bid,
    )


def change_percent(modifier: float) -> int:
    """Modifier as a signed percentage change, rounded half up (1.25 -> 25)."""
    return int(math.floor((modifier - 1.0) * 100.0 + 0.5))
