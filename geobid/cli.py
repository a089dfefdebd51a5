"""CLI entry point for Geo Bid Factory."""

from __future__ import annotations

import logging

import click

from geobid import __version__
from geobid.config import AppConfig, ConfigError, load_config
from geobid.config_google_ads import GoogleAdsConfigError
from geobid.connectors.google_ads import (
    GoogleAdsConnectorError,
    GoogleAdsProvider,
    RetryPolicy,
    pull_geo_rows,
)
from geobid.connectors.google_sheets import (
    GoogleSheetsConfigError,
    SheetsReportSink,
    load_locations_from_sheet,
)
from geobid.io_csv import InputSchemaError, load_csv_provider
from geobid.locations import LocationResolver, LocationTableError
from geobid.pipeline import run_pipeline
from geobid.schema import LocationKey
from geobid.sinks import MemoryReportSink


def _setup_logging(cfg: AppConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_cfg(config_path: str) -> AppConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc))


def _get_resolver(cfg: AppConfig) -> LocationResolver:
    """Return the location lookup table from CSV or Google Sheets."""
    loc = cfg.locations
    if loc.path:
        return LocationResolver.from_csv(loc.path, loc)
    if loc.spreadsheet_id:
        return load_locations_from_sheet(loc)
    raise click.ClickException(
        "No location table configured. Set locations.path or locations.spreadsheet_id."
    )


def _get_provider(cfg: AppConfig, source: str, input_dir: str | None, customer_id: str | None, ads_config: str | None):
    if source == "csv":
        if not input_dir:
            raise click.ClickException("--input is required with --source csv")
        return load_csv_provider(input_dir)
    return GoogleAdsProvider(
        customer_id=customer_id,
        config_path=ads_config,
        retry_policy=RetryPolicy.from_config(cfg.retry_api),
    )


@click.group()
@click.version_option(version=__version__, prog_name="geobid")
def cli():
    """Geo Bid Factory — location targeting and geo bid modifiers."""
    pass


@cli.command()
@click.option(
    "--mode",
    type=click.Choice(["live", "dry"]),
    default="dry",
    help="live = apply changes; dry = compute and report only",
)
@click.option(
    "--source",
    type=click.Choice(["google-ads", "csv"]),
    default="google-ads",
    show_default=True,
    help="Where campaign and geo metrics come from",
)
@click.option("--input", "input_dir", default=None, help="Directory with CSV exports (--source csv)")
@click.option("--customer_id", default=None, help="Google Ads customer ID")
@click.option("--ads-config", "ads_config", default=None, help="Optional google-ads.yaml path")
@click.option("--out", "output_dir", default=None, help="Output directory")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def run(
    mode: str,
    source: str,
    input_dir: str | None,
    customer_id: str | None,
    ads_config: str | None,
    output_dir: str | None,
    config_path: str,
    verbose: bool,
):
    """Add qualifying geo targets and update their bid modifiers."""
    cfg = _load_cfg(config_path)
    _setup_logging(cfg, verbose)
    output_dir = output_dir or cfg.reporting.output_dir

    if mode == "dry":
        click.echo("🏃 DRY-RUN mode — no changes are sent to the ads platform")
    else:
        click.echo("🚀 LIVE mode — bid modifiers will be applied")

    try:
        resolver = _get_resolver(cfg)
        provider = _get_provider(cfg, source, input_dir, customer_id, ads_config)
        if mode == "live" and cfg.reporting.spreadsheet_id:
            sink = SheetsReportSink(cfg.reporting.spreadsheet_id, cfg.reporting.weekday_labels)
        else:
            sink = MemoryReportSink()
        summary = run_pipeline(cfg, provider, resolver, sink, output_dir, mode)
    except (
        InputSchemaError,
        LocationTableError,
        GoogleAdsConfigError,
        GoogleAdsConnectorError,
        GoogleSheetsConfigError,
    ) as exc:
        raise click.ClickException(str(exc))

    click.echo("")
    click.echo("✅ Run complete!")
    click.echo(f"   Campaigns processed: {summary['campaigns']}")
    click.echo(f"   Locations added:     {summary['added']}")
    click.echo(f"   Modifiers updated:   {summary['updated']}")
    click.echo(f"   Unchanged:           {summary['unchanged']}")
    click.echo(f"   Skipped:             {summary['skipped']}")
    click.echo(f"   Files written to: {output_dir}/")


@cli.group("google-ads")
def google_ads_group():
    """Google Ads connector commands."""
    pass


@google_ads_group.command("pull")
@click.option("--customer_id", required=True, help="Google Ads customer ID")
@click.option(
    "--date_range",
    default="LAST_30_DAYS",
    show_default=True,
    help="Google Ads date range",
)
@click.option(
    "--out",
    "out_path",
    default="input/geo_report.csv",
    show_default=True,
    help="Output CSV path",
)
@click.option(
    "--config", "config_path", default=None, help="Optional google-ads.yaml path"
)
def google_ads_pull(customer_id: str, date_range: str, out_path: str, config_path: str | None):
    """Pull geo performance rows of all enabled campaigns into CSV."""
    try:
        rows = pull_geo_rows(
            customer_id=customer_id,
            date_range=date_range,
            out_path=out_path,
            config_path=config_path,
        )
    except (GoogleAdsConfigError, GoogleAdsConnectorError) as exc:
        raise click.ClickException(str(exc))

    click.echo(f"✅ Pulled {len(rows)} geo rows from Google Ads into {out_path}")


@cli.group("locations")
def locations_group():
    """Location lookup table commands."""
    pass


@locations_group.command("lookup")
@click.argument("key")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def locations_lookup(key: str, config_path: str):
    """Resolve a 'city,region,country' criterion key to its location ID."""
    cfg = _load_cfg(config_path)
    try:
        resolver = _get_resolver(cfg)
    except (LocationTableError, GoogleSheetsConfigError) as exc:
        raise click.ClickException(str(exc))

    loc_id = resolver.resolve(LocationKey.parse(key))
    if not loc_id:
        raise click.ClickException(f"No location found for key '{key}'")
    name = resolver.name_for(loc_id)
    click.echo(f"{loc_id}\t{name}" if name else loc_id)


if __name__ == "__main__":
    cli()
