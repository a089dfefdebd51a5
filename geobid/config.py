"""Load and validate config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

# Range the ads platform accepts for location bid modifiers (-90% .. +900%).
PLATFORM_MIN_BID = 0.1
PLATFORM_MAX_BID = 10.0


class ConfigError(ValueError):
    """Raised when config.yaml holds inconsistent values."""


@dataclass
class BiddingConfig:
    date_range: str = "LAST_30_DAYS"
    min_clicks: int = 1
    min_impressions: int = 1
    min_cost: float = 0.0
    min_conversions: float = 1.0  # new locations need strictly more than this
    min_bid: float = 0.5
    max_bid: float = 3.0
    min_location_clicks: int = 50  # traffic floor for already targeted locations
    change_epsilon: float = 0.002
    # New-location conversion rate is in percent, hence the extra /100.
    new_location_ratio_divisor: float = 100.0
    exclude_campaigns: List[str] = field(default_factory=list)


@dataclass
class LocationsConfig:
    """Where the composite-key -> location-ID table lives."""

    path: Optional[str] = None
    spreadsheet_id: Optional[str] = None
    worksheet: str = "locations"
    id_column: int = 0
    name_column: int = 1
    key_column: int = 2


@dataclass
class ReportingConfig:
    spreadsheet_id: Optional[str] = None
    utc_offset_hours: float = 2.0
    weekday_labels: List[str] = field(
        default_factory=lambda: [
            "Monday",
            "Tuesday",
            "Wednesday",
            "Thursday",
            "Friday",
            "Saturday",
            "Sunday",
        ]
    )
    output_dir: str = "output"


@dataclass
class RetryConfig:
    """Exponential-backoff settings for live API calls."""

    max_api_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 15.0


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    bidding: BiddingConfig = field(default_factory=BiddingConfig)
    locations: LocationsConfig = field(default_factory=LocationsConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    retry_api: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> "AppConfig":
        b = self.bidding
        if not PLATFORM_MIN_BID <= b.min_bid <= b.max_bid <= PLATFORM_MAX_BID:
            raise ConfigError(
                f"bidding.min_bid/max_bid must satisfy {PLATFORM_MIN_BID} <= min_bid "
                f"<= max_bid <= {PLATFORM_MAX_BID} (got {b.min_bid}, {b.max_bid})"
            )
        for name in (
            "min_clicks",
            "min_impressions",
            "min_cost",
            "min_conversions",
            "min_location_clicks",
            "change_epsilon",
        ):
            if getattr(b, name) < 0:
                raise ConfigError(f"bidding.{name} must be non-negative")
        if b.new_location_ratio_divisor <= 0:
            raise ConfigError("bidding.new_location_ratio_divisor must be positive")
        if b.exclude_campaigns is None:
            b.exclude_campaigns = []
        elif isinstance(b.exclude_campaigns, str):
            b.exclude_campaigns = [b.exclude_campaigns]
        elif not isinstance(b.exclude_campaigns, list):
            raise ConfigError("bidding.exclude_campaigns must be a list of campaign names")
        labels = self.reporting.weekday_labels
        if not isinstance(labels, list) or len(labels) != 7:
            raise ConfigError("reporting.weekday_labels must list exactly 7 days")
        return self


def _section(raw: dict, name: str, path: Path) -> dict:
    # An empty section (`bidding:` with no body) parses as None.
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' in {path} must be a mapping")
    return section


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    p = Path(path)
    raw: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    try:
        cfg = AppConfig(
            bidding=BiddingConfig(**_section(raw, "bidding", p)),
            locations=LocationsConfig(**_section(raw, "locations", p)),
            reporting=ReportingConfig(**_section(raw, "reporting", p)),
            retry_api=RetryConfig(**_section(raw, "retry_api", p)),
            logging=LoggingConfig(**_section(raw, "logging", p)),
        )
    except TypeError as exc:
        raise ConfigError(f"Invalid key in {p}: {exc}") from exc
    return cfg.validate()
