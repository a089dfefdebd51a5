"""CSV read-write helpers for offline runs and run outputs."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from geobid.mappers import (
    CAMPAIGN_COLUMNS,
    GEO_COLUMNS,
    TARGETED_COLUMNS,
    decisions_to_dataframe,
    map_dataframe,
    map_record_to_campaign,
    map_record_to_geo_row,
    map_record_to_targeted,
    normalize_id,
)
from geobid.providers.memory_provider import InMemoryProvider
from geobid.schema import BidDecision, TargetedLocation

CAMPAIGNS_FILE = "campaigns.csv"
GEO_REPORT_FILE = "geo_report.csv"
TARGETED_FILE = "targeted_locations.csv"

_ID_COLUMNS = {"campaign_id": str, "city_id": str, "region_id": str, "country_id": str, "location_id": str}


class InputSchemaError(ValueError):
    """Raised when an input CSV is missing required columns."""


def _read(path: Path, required: Iterable[str]) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=_ID_COLUMNS)
    missing = set(required) - set(df.columns)
    # Metric columns may be absent; identity columns may not.
    missing -= {"clicks", "conversions", "cost", "impressions", "bid_modifier", "location_name"}
    if missing:
        raise InputSchemaError(
            f"{path.name} is missing required column(s): {', '.join(sorted(missing))}"
        )
    return df


def load_csv_provider(input_dir: str | Path) -> InMemoryProvider:
    """Build an offline provider from campaigns.csv, geo_report.csv and
    (optionally) targeted_locations.csv in *input_dir*."""
    d = Path(input_dir)
    campaigns_path = d / CAMPAIGNS_FILE
    geo_path = d / GEO_REPORT_FILE
    for p in (campaigns_path, geo_path):
        if not p.exists():
            raise InputSchemaError(f"Input file not found: {p}")

    campaigns = map_dataframe(_read(campaigns_path, CAMPAIGN_COLUMNS), map_record_to_campaign)
    geo_rows = map_dataframe(_read(geo_path, GEO_COLUMNS), map_record_to_geo_row)

    targeted: Dict[str, List[TargetedLocation]] = defaultdict(list)
    targeted_path = d / TARGETED_FILE
    if targeted_path.exists():
        df = _read(targeted_path, TARGETED_COLUMNS)
        for record in df.to_dict(orient="records"):
            loc = map_record_to_targeted(record)
            targeted[normalize_id(record.get("campaign_id"))].append(loc)

    return InMemoryProvider(campaigns, geo_rows, dict(targeted))


def write_decisions_csv(decisions: List[BidDecision], path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    decisions_to_dataframe(decisions).to_csv(p, index=False, encoding="utf-8")
    return p


def write_report(text: str, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p
