"""Tests for CSV inputs and run outputs."""
from __future__ import annotations

from pathlib import Path

import pytest

from geobid.io_csv import InputSchemaError, load_csv_provider, write_decisions_csv
from geobid.schema import BidDecision, LocationKey

SAMPLE_DIR = Path(__file__).resolve().parent.parent / "sample_data"


def test_load_sample_data():
    provider = load_csv_provider(SAMPLE_DIR)
    campaigns = provider.list_campaigns("LAST_30_DAYS")
    assert [c.name for c in campaigns] == ["Brand DE", "Generic DE", "Campaign Example 1"]
    assert campaigns[0].id == "111"
    assert campaigns[0].metrics.clicks == 2000

    rows = provider.geo_rows(campaigns[0], "LAST_30_DAYS")
    assert len(rows) == 5
    assert rows[0].key == LocationKey("1003854", "20228", "2276")
    assert rows[0].metrics.conversions == 30.0

    targeted = provider.targeted_locations(campaigns[0], "LAST_30_DAYS")
    assert {t.criterion_id for t in targeted} == {"1004074", "1005424"}
    assert provider.targeted_locations(campaigns[1], "LAST_30_DAYS") == []


def test_missing_input_file_raises(tmp_path):
    (tmp_path / "campaigns.csv").write_text("campaign_id,campaign\n1,A\n", encoding="utf-8")
    with pytest.raises(InputSchemaError, match="not found"):
        load_csv_provider(tmp_path)


def test_missing_identity_column_raises(tmp_path):
    (tmp_path / "campaigns.csv").write_text("campaign_id,campaign\n1,A\n", encoding="utf-8")
    (tmp_path / "geo_report.csv").write_text("campaign_id,city_id,clicks\n1,5,10\n", encoding="utf-8")
    with pytest.raises(InputSchemaError, match="country_id, region_id"):
        load_csv_provider(tmp_path)


def test_metric_columns_default_to_zero(tmp_path):
    (tmp_path / "campaigns.csv").write_text("campaign_id,campaign\n1,A\n", encoding="utf-8")
    (tmp_path / "geo_report.csv").write_text(
        "campaign_id,city_id,region_id,country_id\n1,5,6,7\n", encoding="utf-8"
    )
    provider = load_csv_provider(tmp_path)
    campaign = provider.list_campaigns("LAST_30_DAYS")[0]
    assert campaign.metrics.clicks == 0
    assert provider.geo_rows(campaign, "LAST_30_DAYS")[0].metrics.impressions == 0


def test_write_decisions_csv(tmp_path):
    out = write_decisions_csv(
        [BidDecision("2026-10-19", "Brand", "1001", "Berlin", "added", new_modifier=1.2, entry="x")],
        tmp_path / "nested" / "decisions.csv",
    )
    text = out.read_text(encoding="utf-8")
    assert text.splitlines()[0].startswith("date,campaign,location_id")
    assert "Brand,1001,Berlin,added" in text
