"""Tests for schema value types and row aggregation."""

from __future__ import annotations

import pytest

from geobid.aggregate import aggregate_rows, resolve_aggregates
from geobid.locations import LocationResolver
from geobid.schema import GeoRow, LocationKey, MetricAggregate

BERLIN = LocationKey("1003854", "20228", "2276")
BERLIN_ALT = LocationKey("1003854", "", "2276")
HAMBURG = LocationKey("1004074", "20226", "2276")


def _row(key, clicks, conversions, cost=1.0, impressions=100, campaign_id="1"):
    return GeoRow(campaign_id, key, MetricAggregate(clicks, conversions, cost, impressions))


def _resolver():
    return LocationResolver.from_rows(
        [
            ["1003854", "Berlin", BERLIN.lookup_key()],
            ["1003854", "Berlin", BERLIN_ALT.lookup_key()],
            ["1004074", "Hamburg", HAMBURG.lookup_key()],
        ]
    )


class TestMetricAggregate:
    def test_addition_sums_every_field(self):
        total = MetricAggregate(1, 2.0, 3.0, 4) + MetricAggregate(10, 20.0, 30.0, 40)
        assert total == MetricAggregate(11, 22.0, 33.0, 44)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            MetricAggregate(clicks=-1)

    def test_conversion_rate_undefined_without_clicks(self):
        assert MetricAggregate(0, 0.0, 0.0, 10).conversion_rate is None
        assert MetricAggregate(0, 0.0, 0.0, 10).conversion_rate_percent is None

    def test_conversion_rate(self):
        m = MetricAggregate(clicks=200, conversions=10)
        assert m.conversion_rate == pytest.approx(0.05)
        assert m.conversion_rate_percent == pytest.approx(5.0)


class TestLocationKey:
    def test_lookup_key(self):
        assert BERLIN.lookup_key() == "1003854,20228,2276"

    def test_parse_roundtrip_and_padding(self):
        assert LocationKey.parse("1003854, 20228 ,2276") == BERLIN
        assert LocationKey.parse("1003854") == LocationKey("1003854", "", "")


class TestAggregateRows:
    def test_sums_rows_per_key(self):
        totals = aggregate_rows([_row(BERLIN, 10, 2), _row(BERLIN, 5, 1), _row(HAMBURG, 7, 3)])
        assert totals[BERLIN].clicks == 15
        assert totals[BERLIN].conversions == 3
        assert totals[BERLIN].impressions == 200
        assert totals[HAMBURG].clicks == 7

    def test_predicate_filters_rows_before_summing(self):
        totals = aggregate_rows(
            [_row(BERLIN, 10, 2), _row(BERLIN, 5, 1)],
            predicate=lambda m: m.conversions > 1,
        )
        assert totals[BERLIN].clicks == 10

    def test_empty(self):
        assert aggregate_rows([]) == {}


class TestResolveAggregates:
    def test_unknown_keys_are_dropped(self):
        unknown = LocationKey("1", "2", "3")
        totals = aggregate_rows([_row(unknown, 10, 2), _row(HAMBURG, 7, 3)])
        resolved = resolve_aggregates(totals, _resolver())
        assert list(resolved) == ["1004074"]

    def test_keys_sharing_an_id_are_merged(self):
        totals = aggregate_rows([_row(BERLIN, 10, 2), _row(BERLIN_ALT, 4, 1)])
        resolved = resolve_aggregates(totals, _resolver())
        berlin = resolved["1003854"]
        assert berlin.metrics.clicks == 14
        assert berlin.metrics.conversions == 3
        assert berlin.label == BERLIN.lookup_key()
        assert len(berlin.keys) == 2
