"""Google Ads connector: geo performance reads and location-criterion mutations."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from geobid.config import RetryConfig
from geobid.config_google_ads import (
    GoogleAdsConfig,
    load_google_ads_config,
)
from geobid.mappers import (
    geo_rows_to_dataframe,
    map_campaign_row,
    map_criterion_row,
    map_geo_row,
    map_row_metrics,
)
from geobid.providers.base import BaseAdsProvider
from geobid.schema import Campaign, GeoRow, MetricAggregate, TargetedLocation

logger = logging.getLogger(__name__)


class GoogleAdsConnectorError(RuntimeError):
    pass


@dataclass
class RetryPolicy:
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 15.0
    jitter_seconds: float = 0.5

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> "RetryPolicy":
        return cls(
            max_retries=cfg.max_api_retries,
            backoff_base_seconds=cfg.backoff_base_seconds,
            backoff_max_seconds=cfg.backoff_max_seconds,
        )


def _build_client(cfg: GoogleAdsConfig):
    try:
        from google.ads.googleads.client import GoogleAdsClient
    except ImportError as exc:  # pragma: no cover
        raise GoogleAdsConnectorError(
            "google-ads SDK missing. Install dependency `google-ads` and retry."
        ) from exc

    return GoogleAdsClient.load_from_dict(cfg.to_client_dict())


# ── GAQL ─────────────────────────────────────────────────────────────────────


def _campaigns_query(date_range: str) -> str:
    return f"""
SELECT
  campaign.id,
  campaign.name,
  metrics.clicks,
  metrics.conversions,
  metrics.cost_micros,
  metrics.impressions
FROM campaign
WHERE campaign.status = 'ENABLED'
  AND segments.date DURING {date_range}
""".strip()


def _geo_query(campaign_id: str, date_range: str) -> str:
    return f"""
SELECT
  campaign.id,
  geographic_view.country_criterion_id,
  segments.geo_target_region,
  segments.geo_target_city,
  metrics.clicks,
  metrics.conversions,
  metrics.cost_micros,
  metrics.impressions
FROM geographic_view
WHERE campaign.id = {int(campaign_id)}
  AND segments.date DURING {date_range}
""".strip()


def _criteria_query(campaign_id: str) -> str:
    return f"""
SELECT
  campaign_criterion.criterion_id,
  campaign_criterion.resource_name,
  campaign_criterion.bid_modifier
FROM campaign_criterion
WHERE campaign.id = {int(campaign_id)}
  AND campaign_criterion.type = 'LOCATION'
  AND campaign_criterion.negative = FALSE
  AND campaign_criterion.status != 'REMOVED'
""".strip()


def _location_stats_query(campaign_id: str, date_range: str) -> str:
    return f"""
SELECT
  campaign_criterion.criterion_id,
  metrics.clicks,
  metrics.conversions,
  metrics.cost_micros,
  metrics.impressions
FROM location_view
WHERE campaign.id = {int(campaign_id)}
  AND segments.date DURING {date_range}
""".strip()


def _geo_names_query(ids: Iterable[str]) -> str:
    id_list = ", ".join(str(int(i)) for i in ids)
    return f"""
SELECT
  geo_target_constant.id,
  geo_target_constant.canonical_name
FROM geo_target_constant
WHERE geo_target_constant.id IN ({id_list})
""".strip()


# ── Retry ────────────────────────────────────────────────────────────────────


def _is_retryable_error(exc: Exception) -> bool:
    s = str(exc).lower()
    return any(
        k in s
        for k in ["rate", "quota", "resource exhausted", "429", "too many requests", "unavailable"]
    )


def _call_with_retry(fn: Callable, retry: RetryPolicy, **kwargs):
    attempt = 0
    while True:
        try:
            return fn(**kwargs)
        except Exception as exc:
            if attempt >= retry.max_retries or not _is_retryable_error(exc):
                raise
            sleep_s = min(
                retry.backoff_base_seconds * (2**attempt), retry.backoff_max_seconds
            )
            sleep_s += random.uniform(0, retry.jitter_seconds)
            logger.warning(
                "Google Ads call failed (%s); retry %d/%d in %.1fs",
                exc,
                attempt + 1,
                retry.max_retries,
                sleep_s,
            )
            time.sleep(sleep_s)
            attempt += 1


def _wrap_error(exc: Exception) -> GoogleAdsConnectorError:
    msg = str(exc)
    if any(k in msg.lower() for k in ["permission", "unauthorized", "authentication"]):
        return GoogleAdsConnectorError(
            "Google Ads authentication/permission error. Verify developer token, OAuth creds, "
            "refresh token, and account access."
        )
    return GoogleAdsConnectorError(f"Google Ads request failed: {exc}")


# ── Provider ─────────────────────────────────────────────────────────────────


class GoogleAdsProvider(BaseAdsProvider):
    """Reads geo performance through GAQL and writes campaign location criteria."""

    def __init__(
        self,
        customer_id: Optional[str] = None,
        config_path: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        client=None,
    ) -> None:
        self.cfg = load_google_ads_config(customer_id=customer_id, yaml_path=config_path)
        self.client = client or _build_client(self.cfg)
        self.retry = retry_policy or RetryPolicy()
        self.call_count = 0
        self.mutation_count = 0
        self.last_error: Optional[str] = None

    @property
    def customer_id(self) -> str:
        return self.cfg.customer_id

    def _search(self, query: str) -> List:
        service = self.client.get_service("GoogleAdsService")
        self.call_count += 1
        try:
            stream = _call_with_retry(
                service.search_stream,
                self.retry,
                customer_id=self.customer_id,
                query=query,
            )
            return [r for batch in stream for r in getattr(batch, "results", [])]
        except Exception as exc:
            self.last_error = str(exc)
            raise _wrap_error(exc) from exc

    def _mutate(self, operation) -> None:
        service = self.client.get_service("CampaignCriterionService")
        self.mutation_count += 1
        try:
            _call_with_retry(
                service.mutate_campaign_criteria,
                self.retry,
                customer_id=self.customer_id,
                operations=[operation],
            )
        except Exception as exc:
            self.last_error = str(exc)
            raise _wrap_error(exc) from exc

    def list_campaigns(self, date_range: str) -> List[Campaign]:
        return [map_campaign_row(r) for r in self._search(_campaigns_query(date_range))]

    def geo_rows(self, campaign: Campaign, date_range: str) -> List[GeoRow]:
        return [map_geo_row(r) for r in self._search(_geo_query(campaign.id, date_range))]

    def _geo_names(self, ids: List[str]) -> Dict[str, str]:
        ids = [i for i in ids if i.isdigit()]
        if not ids:
            return {}
        names: Dict[str, str] = {}
        for r in self._search(_geo_names_query(ids)):
            constant = getattr(r, "geo_target_constant", None)
            names[str(getattr(constant, "id", ""))] = str(
                getattr(constant, "canonical_name", "") or ""
            )
        return names

    def targeted_locations(self, campaign: Campaign, date_range: str) -> List[TargetedLocation]:
        locations = [map_criterion_row(r) for r in self._search(_criteria_query(campaign.id))]
        if not locations:
            return []

        stats: Dict[str, MetricAggregate] = {}
        for r in self._search(_location_stats_query(campaign.id, date_range)):
            row = map_criterion_row(r)
            metrics = map_row_metrics(r)
            stats[row.criterion_id] = stats.get(row.criterion_id, MetricAggregate()) + metrics

        names = self._geo_names([loc.criterion_id for loc in locations])
        for loc in locations:
            loc.metrics = stats.get(loc.criterion_id, MetricAggregate())
            loc.name = names.get(loc.criterion_id, "") or loc.criterion_id
        return locations

    def targeted_location_ids(self, campaign: Campaign, date_range: str) -> List[str]:
        """Criterion IDs only: one GAQL call, no location_view stats or names."""
        return [map_criterion_row(r).criterion_id for r in self._search(_criteria_query(campaign.id))]

    def add_location(self, campaign: Campaign, location_id: str, bid_modifier: float) -> None:
        operation = self.client.get_type("CampaignCriterionOperation")
        criterion = operation.create
        criterion.campaign = self.client.get_service("CampaignService").campaign_path(
            self.customer_id, campaign.id
        )
        criterion.location.geo_target_constant = self.client.get_service(
            "GeoTargetConstantService"
        ).geo_target_constant_path(location_id)
        criterion.bid_modifier = bid_modifier
        self._mutate(operation)
        logger.info(
            "Added location %s to campaign %s with bid modifier %.3f",
            location_id,
            campaign.name,
            bid_modifier,
        )

    def set_bid_modifier(
        self, campaign: Campaign, location: TargetedLocation, bid_modifier: float
    ) -> None:
        operation = self.client.get_type("CampaignCriterionOperation")
        criterion = operation.update
        criterion.resource_name = location.resource_name or self.client.get_service(
            "CampaignCriterionService"
        ).campaign_criterion_path(self.customer_id, campaign.id, location.criterion_id)
        criterion.bid_modifier = bid_modifier
        operation.update_mask.paths.append("bid_modifier")
        self._mutate(operation)
        logger.info(
            "Set bid modifier of %s in campaign %s: %.3f -> %.3f",
            location.name or location.criterion_id,
            campaign.name,
            location.bid_modifier,
            bid_modifier,
        )

    def stats(self) -> dict:
        return {
            "call_count": self.call_count,
            "mutation_count": self.mutation_count,
            "last_error": self.last_error,
        }


def pull_geo_rows(
    customer_id: str,
    date_range: str = "LAST_30_DAYS",
    out_path: Optional[str] = None,
    config_path: Optional[str] = None,
    retry_policy: Optional[RetryPolicy] = None,
    client=None,
) -> List[GeoRow]:
    """Pull geo rows of all enabled campaigns and optionally write them as CSV."""
    provider = GoogleAdsProvider(
        customer_id=customer_id,
        config_path=config_path,
        retry_policy=retry_policy,
        client=client,
    )
    rows: List[GeoRow] = []
    for campaign in provider.list_campaigns(date_range):
        rows.extend(provider.geo_rows(campaign, date_range))

    if out_path:
        p = Path(out_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        geo_rows_to_dataframe(rows).to_csv(p, index=False, encoding="utf-8")

    return rows
