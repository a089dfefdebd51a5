"""Main pipeline: reset today's log, add new geo targets, update existing modifiers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from geobid.aggregate import aggregate_rows, resolve_aggregates
from geobid.config import AppConfig, BiddingConfig
from geobid.io_csv import write_decisions_csv, write_report
from geobid.locations import LocationResolver
from geobid.policy import (
    campaign_has_baseline,
    change_percent,
    existing_location_modifier,
    new_location_modifier,
    qualifies_as_existing_location,
    qualifies_as_new_location,
    should_update_existing_modifier,
)
from geobid.providers.base import BaseAdsProvider
from geobid.schema import BidDecision, Campaign, Unqualified
from geobid.sinks import BaseReportSink, local_now

logger = logging.getLogger(__name__)


def _new_location_filter(cfg: BiddingConfig):
    def predicate(metrics) -> bool:
        return qualifies_as_new_location(
            metrics,
            cfg.min_clicks,
            cfg.min_impressions,
            cfg.min_conversions,
            cfg.min_cost,
        )

    return predicate


def _format_entry(label: str, modifier: float) -> str:
    return f"{label} : {change_percent(modifier)}%"


def add_new_locations(
    campaign: Campaign,
    provider: BaseAdsProvider,
    resolver: LocationResolver,
    cfg: BiddingConfig,
    date: str,
    apply: bool = True,
) -> List[BidDecision]:
    """Target qualifying locations the campaign does not target yet."""
    rows = provider.geo_rows(campaign, cfg.date_range)
    totals = aggregate_rows(rows, predicate=_new_location_filter(cfg))
    candidates = resolve_aggregates(totals, resolver)
    if not candidates:
        return []

    baseline = campaign.baseline
    targeted_ids = set(provider.targeted_location_ids(campaign, cfg.date_range))

    decisions: List[BidDecision] = []
    for loc_id, candidate in candidates.items():
        if loc_id in targeted_ids:
            # Already targeted; handled by the existing-location pass.
            continue
        name = resolver.name_for(loc_id) or candidate.label
        modifier = new_location_modifier(candidate.metrics, baseline, cfg)
        if isinstance(modifier, Unqualified):
            decisions.append(
                BidDecision(date, campaign.name, loc_id, name, "skipped", reason=modifier.reason)
            )
            continue

        if apply:
            provider.add_location(campaign, loc_id, modifier)
        logger.info(
            "%s: new location %s (%s) clicks=%d conversions=%.2f -> %.3f",
            campaign.name,
            candidate.label,
            loc_id,
            candidate.metrics.clicks,
            candidate.metrics.conversions,
            modifier,
        )
        decisions.append(
            BidDecision(
                date,
                campaign.name,
                loc_id,
                name,
                "added",
                new_modifier=modifier,
                applied=apply,
                entry=_format_entry(f"{candidate.label} ({loc_id})", modifier),
            )
        )
    return decisions


def update_existing_locations(
    campaign: Campaign,
    provider: BaseAdsProvider,
    cfg: BiddingConfig,
    date: str,
    apply: bool = True,
) -> List[BidDecision]:
    """Re-derive the modifier of every sufficiently busy targeted location."""
    baseline = campaign.baseline
    decisions: List[BidDecision] = []
    for loc in provider.targeted_locations(campaign, cfg.date_range):
        name = loc.name or loc.criterion_id
        if not qualifies_as_existing_location(loc.metrics.clicks, cfg.min_location_clicks):
            continue

        modifier = existing_location_modifier(loc.metrics, baseline, cfg)
        if isinstance(modifier, Unqualified):
            decisions.append(
                BidDecision(
                    date,
                    campaign.name,
                    loc.criterion_id,
                    name,
                    "skipped",
                    old_modifier=loc.bid_modifier,
                    reason=modifier.reason,
                )
            )
            continue

        old = loc.bid_modifier
        if not should_update_existing_modifier(old, modifier, cfg.change_epsilon):
            decisions.append(
                BidDecision(
                    date,
                    campaign.name,
                    loc.criterion_id,
                    name,
                    "unchanged",
                    old_modifier=old,
                    new_modifier=modifier,
                    reason="change below epsilon",
                )
            )
            continue

        if apply:
            provider.set_bid_modifier(campaign, loc, modifier)
        decisions.append(
            BidDecision(
                date,
                campaign.name,
                loc.criterion_id,
                name,
                "updated",
                old_modifier=old,
                new_modifier=modifier,
                applied=apply,
                entry=_format_entry(name, modifier),
            )
        )
    return decisions


def run_pipeline(
    cfg: AppConfig,
    provider: BaseAdsProvider,
    resolver: LocationResolver,
    sink: BaseReportSink,
    output_dir,
    mode: str = "dry",
    now: Optional[datetime] = None,
) -> Dict:
    """Execute one bid run. Returns summary dict.

    Order:
    1. sink.start_run        : clear today's weekday column
    2. add_new_locations     : every enabled, non-excluded campaign
    3. update_existing       : campaigns with conversions and enough clicks
    4. decisions.csv + report.md in *output_dir*

    In ``dry`` mode nothing is changed on the ads platform. If a provider call
    fails mid-run the error is re-raised after the decisions made so far are
    written, so changes already applied stay auditable.
    """
    bidding = cfg.bidding
    apply = mode == "live"
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    moment = local_now(cfg.reporting.utc_offset_hours, now)
    date = moment.date().isoformat()
    sink.start_run(moment)

    excluded = set(bidding.exclude_campaigns or [])
    campaigns: List[Campaign] = []
    decisions: List[BidDecision] = []
    failed: Optional[BaseException] = None
    try:
        campaigns = [
            c for c in provider.list_campaigns(bidding.date_range) if c.name not in excluded
        ]
        logger.info("Processing %d campaigns (%s mode)", len(campaigns), mode)

        for campaign in campaigns:
            for d in add_new_locations(campaign, provider, resolver, bidding, date, apply):
                sink.record(d)
                decisions.append(d)

        for campaign in campaigns:
            if not campaign_has_baseline(campaign.metrics, bidding.min_clicks):
                logger.debug("%s: no usable conversion baseline, skipped", campaign.name)
                continue
            for d in update_existing_locations(campaign, provider, bidding, date, apply):
                sink.record(d)
                decisions.append(d)
    except Exception as exc:
        failed = exc
        logger.error("Run aborted after %d decisions: %s", len(decisions), exc)
        raise
    finally:
        # Changes already sent must still reach the local audit trail.
        sink.close()
        summary = _summarize(date, mode, campaigns, decisions, provider, failed)
        write_decisions_csv(decisions, output_dir / "decisions.csv")
        write_report(_format_report(summary, decisions), output_dir / "report.md")
    return summary


def _summarize(
    date: str,
    mode: str,
    campaigns: List[Campaign],
    decisions: List[BidDecision],
    provider: BaseAdsProvider,
    failed: Optional[BaseException] = None,
) -> Dict:
    counts = {a: sum(1 for d in decisions if d.action == a) for a in ("added", "updated", "unchanged", "skipped")}
    return {
        "date": date,
        "mode": mode,
        "campaigns": len(campaigns),
        "added": counts["added"],
        "updated": counts["updated"],
        "unchanged": counts["unchanged"],
        "skipped": counts["skipped"],
        "provider_stats": provider.stats(),
        "error": str(failed) if failed else None,
    }


def _format_report(summary: Dict, decisions: List[BidDecision]) -> str:
    pstats = summary.get("provider_stats", {})

    lines = [
        "# Geo Bid Factory — Run Report",
        f"**Date:** {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
        f"**Mode:** {summary['mode']}",
        "",
    ]
    if summary.get("error"):
        lines += [
            "## Run aborted",
            f"- Error: `{summary['error']}`",
            "- Only the decisions below were made before the failure.",
            "",
        ]
    lines += [
        "## Summary",
        f"- Campaigns processed: {summary['campaigns']}",
        f"- Locations added: {summary['added']}",
        f"- Bid modifiers updated: {summary['updated']}",
        f"- Unchanged (below epsilon): {summary['unchanged']}",
        f"- Skipped (undefined conversion rate): {summary['skipped']}",
        "",
    ]

    if pstats:
        lines += [
            "## API Stats",
            f"- API calls made: {pstats.get('call_count', 0)}",
            f"- Mutations: {pstats.get('mutation_count', 0)}",
        ]
        if pstats.get("last_error"):
            lines.append(f"- Last error: `{pstats['last_error']}`")
        lines.append("")

    changes = [d for d in decisions if d.is_change]
    if not changes:
        lines.append("No bid modifier changes.")
        return "\n".join(lines)

    lines.append("## Changes per Campaign")
    lines.append("")
    by_campaign: Dict[str, List[BidDecision]] = {}
    for d in changes:
        by_campaign.setdefault(d.campaign, []).append(d)
    for campaign, items in by_campaign.items():
        lines.append(f"### {campaign}")
        for d in items:
            lines.append(f"- {d.action}: {d.entry}")
        lines.append("")

    return "\n".join(lines)
