"""Mapping utilities between platform rows, tabular data and internal schema."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

import pandas as pd

from geobid.schema import BidDecision, Campaign, GeoRow, LocationKey, MetricAggregate, TargetedLocation

GEO_COLUMNS = [
    "campaign_id",
    "city_id",
    "region_id",
    "country_id",
    "clicks",
    "conversions",
    "cost",
    "impressions",
]
CAMPAIGN_COLUMNS = ["campaign_id", "campaign", "clicks", "conversions", "cost", "impressions"]
TARGETED_COLUMNS = [
    "campaign_id",
    "location_id",
    "location_name",
    "bid_modifier",
    "clicks",
    "conversions",
    "cost",
    "impressions",
]
DECISION_COLUMNS = [
    "date",
    "campaign",
    "location_id",
    "location_name",
    "action",
    "old_modifier",
    "new_modifier",
    "reason",
    "applied",
    "entry",
]


def _to_int(v: Any) -> int:
    try:
        if pd.isna(v):
            return 0
    except (TypeError, ValueError):
        pass
    try:
        return max(int(float(v)), 0)
    except (TypeError, ValueError):
        return 0


def _to_float(v: Any) -> float:
    try:
        if pd.isna(v):
            return 0.0
    except (TypeError, ValueError):
        pass
    try:
        return max(float(v), 0.0)
    except (TypeError, ValueError):
        return 0.0


def normalize_id(v: Any) -> str:
    """Criterion ID from an int, a float-ish string or a resource name."""
    if v is None:
        return ""
    try:
        if pd.isna(v):
            return ""
    except (TypeError, ValueError):
        pass
    s = str(v).strip()
    if "/" in s:
        s = s.rsplit("/", 1)[-1]
    if s.endswith(".0") and s[:-2].isdigit():
        s = s[:-2]
    return "" if s in ("0", "None") else s


def _metrics_from_record(record: Dict[str, Any]) -> MetricAggregate:
    cost = record.get("cost")
    if cost in (None, "") and record.get("cost_micros") not in (None, ""):
        cost = _to_float(record.get("cost_micros")) / 1_000_000.0
    return MetricAggregate(
        clicks=_to_int(record.get("clicks", 0)),
        conversions=_to_float(record.get("conversions", 0)),
        cost=_to_float(cost),
        impressions=_to_int(record.get("impressions", 0)),
    )


def _metrics_from_api(metrics) -> MetricAggregate:
    return MetricAggregate(
        clicks=_to_int(getattr(metrics, "clicks", 0)),
        conversions=_to_float(getattr(metrics, "conversions", 0.0)),
        cost=_to_float(getattr(metrics, "cost_micros", 0)) / 1_000_000.0,
        impressions=_to_int(getattr(metrics, "impressions", 0)),
    )


# ── Google Ads API rows ──────────────────────────────────────────────────────


def map_row_metrics(row) -> MetricAggregate:
    return _metrics_from_api(getattr(row, "metrics", None))


def map_campaign_row(row) -> Campaign:
    campaign = getattr(row, "campaign", None)
    return Campaign(
        id=normalize_id(getattr(campaign, "id", "")),
        name=str(getattr(campaign, "name", "") or ""),
        metrics=map_row_metrics(row),
    )


def map_geo_row(row) -> GeoRow:
    segments = getattr(row, "segments", None)
    view = getattr(row, "geographic_view", None)
    return GeoRow(
        campaign_id=normalize_id(getattr(getattr(row, "campaign", None), "id", "")),
        key=LocationKey(
            city_id=normalize_id(getattr(segments, "geo_target_city", "")),
            region_id=normalize_id(getattr(segments, "geo_target_region", "")),
            country_id=normalize_id(getattr(view, "country_criterion_id", "")),
        ),
        metrics=map_row_metrics(row),
    )


def map_criterion_row(row) -> TargetedLocation:
    criterion = getattr(row, "campaign_criterion", None)
    bid = getattr(criterion, "bid_modifier", None)
    return TargetedLocation(
        criterion_id=normalize_id(getattr(criterion, "criterion_id", "")),
        # An unset modifier is serialized as 0 and means "no adjustment".
        bid_modifier=float(bid) if bid else 1.0,
        resource_name=getattr(criterion, "resource_name", None) or None,
    )


# ── Tabular data ─────────────────────────────────────────────────────────────


def map_record_to_geo_row(record: Dict[str, Any]) -> GeoRow:
    return GeoRow(
        campaign_id=normalize_id(record.get("campaign_id")),
        key=LocationKey(
            city_id=normalize_id(record.get("city_id")),
            region_id=normalize_id(record.get("region_id")),
            country_id=normalize_id(record.get("country_id")),
        ),
        metrics=_metrics_from_record(record),
    )


def map_record_to_campaign(record: Dict[str, Any]) -> Campaign:
    return Campaign(
        id=normalize_id(record.get("campaign_id")),
        name=str(record.get("campaign", "") or ""),
        metrics=_metrics_from_record(record),
    )


def map_record_to_targeted(record: Dict[str, Any]) -> TargetedLocation:
    bid = _to_float(record.get("bid_modifier"))
    return TargetedLocation(
        criterion_id=normalize_id(record.get("location_id")),
        name=str(record.get("location_name", "") or ""),
        bid_modifier=bid or 1.0,
        metrics=_metrics_from_record(record),
    )


def geo_rows_to_dataframe(rows: Iterable[GeoRow]) -> pd.DataFrame:
    data = [
        {
            "campaign_id": r.campaign_id,
            "city_id": r.key.city_id,
            "region_id": r.key.region_id,
            "country_id": r.key.country_id,
            "clicks": r.metrics.clicks,
            "conversions": r.metrics.conversions,
            "cost": r.metrics.cost,
            "impressions": r.metrics.impressions,
        }
        for r in rows
    ]
    return pd.DataFrame(data, columns=GEO_COLUMNS)


def decisions_to_dataframe(decisions: Iterable[BidDecision]) -> pd.DataFrame:
    return pd.DataFrame([d.to_dict() for d in decisions], columns=DECISION_COLUMNS)


def map_dataframe(df: pd.DataFrame, mapper) -> List:
    return [mapper(r) for r in df.to_dict(orient="records")]
