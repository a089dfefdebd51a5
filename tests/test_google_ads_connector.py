"""Tests for the Google Ads connector with a mocked client."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from geobid.connectors.google_ads import (
    GoogleAdsConnectorError,
    GoogleAdsProvider,
    RetryPolicy,
    pull_geo_rows,
)
from geobid.mappers import map_criterion_row, map_geo_row
from geobid.schema import Campaign, LocationKey, TargetedLocation

_NO_WAIT = RetryPolicy(max_retries=2, backoff_base_seconds=0.0, backoff_max_seconds=0.0, jitter_seconds=0.0)


def _metrics(clicks=0, conversions=0.0, cost_micros=0, impressions=0):
    return SimpleNamespace(
        clicks=clicks, conversions=conversions, cost_micros=cost_micros, impressions=impressions
    )


def _campaign_row():
    return SimpleNamespace(
        campaign=SimpleNamespace(id=111, name="Brand"),
        metrics=_metrics(2000, 100.0, 1_500_000_000, 40000),
    )


def _geo_row():
    return SimpleNamespace(
        campaign=SimpleNamespace(id=111),
        geographic_view=SimpleNamespace(country_criterion_id=2276),
        segments=SimpleNamespace(
            geo_target_city="geoTargetConstants/1003854",
            geo_target_region="geoTargetConstants/20228",
        ),
        metrics=_metrics(300, 30.0, 210_000_000, 5200),
    )


def _criterion_row(criterion_id=1004074, bid_modifier=1.2):
    return SimpleNamespace(
        campaign_criterion=SimpleNamespace(
            criterion_id=criterion_id,
            resource_name=f"customers/123/campaignCriteria/111~{criterion_id}",
            bid_modifier=bid_modifier,
        ),
    )


def _location_stats_row(criterion_id=1004074):
    return SimpleNamespace(
        campaign_criterion=SimpleNamespace(criterion_id=criterion_id),
        metrics=_metrics(60, 3.0, 50_000_000, 1100),
    )


def _name_row(geo_id=1004074, name="Hamburg,Germany"):
    return SimpleNamespace(geo_target_constant=SimpleNamespace(id=geo_id, canonical_name=name))


class _FakeSearchService:
    """Answers GAQL by the FROM clause."""

    def __init__(self, responses):
        self.responses = responses
        self.queries = []

    def search_stream(self, customer_id, query):
        self.queries.append(query)
        for resource, rows in self.responses.items():
            if f"FROM {resource}\n" in query + "\n":
                return [SimpleNamespace(results=rows)]
        return []


def _make_provider(responses=None, criterion_service=None):
    search = _FakeSearchService(responses or {})
    criterion_service = criterion_service or MagicMock()
    other = MagicMock()
    other.campaign_path.return_value = "customers/123/campaigns/111"
    other.geo_target_constant_path.return_value = "geoTargetConstants/1003854"
    services = {
        "GoogleAdsService": search,
        "CampaignCriterionService": criterion_service,
    }
    client = MagicMock()
    client.get_service.side_effect = lambda name: services.get(name, other)

    with patch("geobid.connectors.google_ads.load_google_ads_config") as mock_cfg:
        mock_cfg.return_value = SimpleNamespace(
            developer_token="d", client_id="id", client_secret="sec",
            refresh_token="rt", customer_id="123", login_customer_id=None,
        )
        provider = GoogleAdsProvider(customer_id="123", retry_policy=_NO_WAIT, client=client)
    return provider, search, criterion_service, client


def test_map_geo_row_parses_resource_names():
    row = map_geo_row(_geo_row())
    assert row.campaign_id == "111"
    assert row.key == LocationKey("1003854", "20228", "2276")
    assert row.metrics.cost == 210.0
    assert row.metrics.clicks == 300


def test_map_criterion_row_defaults_unset_modifier():
    assert map_criterion_row(_criterion_row(bid_modifier=0.0)).bid_modifier == 1.0
    assert map_criterion_row(_criterion_row(bid_modifier=1.5)).bid_modifier == 1.5


def test_list_campaigns():
    provider, search, _, _ = _make_provider({"campaign": [_campaign_row()]})
    campaigns = provider.list_campaigns("LAST_30_DAYS")
    assert campaigns[0].id == "111"
    assert campaigns[0].name == "Brand"
    assert campaigns[0].baseline.conversion_rate == pytest.approx(0.05)
    assert "campaign.status = 'ENABLED'" in search.queries[0]
    assert "DURING LAST_30_DAYS" in search.queries[0]


def test_geo_rows_query_is_scoped_to_campaign():
    provider, search, _, _ = _make_provider({"geographic_view": [_geo_row()]})
    rows = provider.geo_rows(Campaign("111", "Brand"), "LAST_7_DAYS")
    assert len(rows) == 1
    assert "campaign.id = 111" in search.queries[0]
    assert "DURING LAST_7_DAYS" in search.queries[0]


def test_targeted_locations_merge_stats_and_names():
    provider, _, _, _ = _make_provider(
        {
            "campaign_criterion": [_criterion_row(1004074, 1.2), _criterion_row(1005424, 0.0)],
            "location_view": [_location_stats_row(1004074), _location_stats_row(1004074)],
            "geo_target_constant": [_name_row()],
        }
    )
    locations = provider.targeted_locations(Campaign("111", "Brand"), "LAST_30_DAYS")
    by_id = {loc.criterion_id: loc for loc in locations}
    assert by_id["1004074"].metrics.clicks == 120
    assert by_id["1004074"].name == "Hamburg,Germany"
    assert by_id["1004074"].bid_modifier == 1.2
    assert by_id["1005424"].metrics.clicks == 0
    assert by_id["1005424"].name == "1005424"
    assert by_id["1005424"].bid_modifier == 1.0


def test_add_location_sends_create_operation():
    provider, _, criterion_service, client = _make_provider()
    provider.add_location(Campaign("111", "Brand"), "1003854", 1.8)

    op = client.get_type.return_value
    assert op.create.bid_modifier == 1.8
    assert op.create.location.geo_target_constant == "geoTargetConstants/1003854"
    criterion_service.mutate_campaign_criteria.assert_called_once_with(
        customer_id="123", operations=[op]
    )
    assert provider.stats()["mutation_count"] == 1


def test_set_bid_modifier_sends_update_with_mask():
    provider, _, criterion_service, client = _make_provider()
    loc = TargetedLocation("1004074", "Hamburg", 1.0, resource_name="customers/123/campaignCriteria/111~1004074")
    provider.set_bid_modifier(Campaign("111", "Brand"), loc, 0.5)

    op = client.get_type.return_value
    assert op.update.resource_name == "customers/123/campaignCriteria/111~1004074"
    assert op.update.bid_modifier == 0.5
    op.update_mask.paths.append.assert_called_once_with("bid_modifier")
    criterion_service.mutate_campaign_criteria.assert_called_once()


def test_quota_errors_are_retried():
    provider, search, _, _ = _make_provider({"campaign": [_campaign_row()]})
    real = search.search_stream
    calls = {"n": 0}

    def flaky(customer_id, query):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("RESOURCE_EXHAUSTED: quota")
        return real(customer_id=customer_id, query=query)

    search.search_stream = flaky
    assert len(provider.list_campaigns("LAST_30_DAYS")) == 1
    assert calls["n"] == 2


def test_permission_errors_are_wrapped():
    provider, search, _, _ = _make_provider()

    def denied(customer_id, query):
        raise RuntimeError("PERMISSION_DENIED: caller does not have permission")

    search.search_stream = denied
    with pytest.raises(GoogleAdsConnectorError, match="authentication/permission"):
        provider.list_campaigns("LAST_30_DAYS")
    assert "PERMISSION_DENIED" in provider.stats()["last_error"]


def test_pull_geo_rows_writes_csv(tmp_path):
    out = tmp_path / "geo.csv"
    batch = SimpleNamespace(results=[_campaign_row()])
    geo_batch = SimpleNamespace(results=[_geo_row()])

    def search_stream(customer_id, query):
        return [geo_batch] if "FROM geographic_view" in query else [batch]

    service = SimpleNamespace(search_stream=search_stream)
    client = SimpleNamespace(get_service=lambda name: service)

    with patch("geobid.connectors.google_ads.load_google_ads_config") as mock_cfg:
        mock_cfg.return_value = SimpleNamespace(
            developer_token="d", client_id="id", client_secret="sec",
            refresh_token="rt", customer_id="123", login_customer_id=None,
        )
        rows = pull_geo_rows(customer_id="123", out_path=str(out), client=client)

    assert len(rows) == 1
    df = pd.read_csv(out, dtype=str)
    assert df.loc[0, "city_id"] == "1003854"
    assert df.loc[0, "campaign_id"] == "111"


def test_targeted_location_ids_uses_single_query():
    provider, search, _, _ = _make_provider(
        {"campaign_criterion": [_criterion_row(1004074), _criterion_row(1005424)]}
    )
    ids = provider.targeted_location_ids(Campaign("111", "Brand"), "LAST_30_DAYS")
    assert ids == ["1004074", "1005424"]
    assert len(search.queries) == 1
    assert "FROM campaign_criterion" in search.queries[0]


def test_stats_keys():
    provider, _, _, _ = _make_provider()
    assert set(provider.stats()) == {"call_count", "mutation_count", "last_error"}
