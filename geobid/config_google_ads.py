"""Google Ads credentials for the bid runner (env vars or google-ads.yaml)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

ENV_PREFIX = "GEOBID_GOOGLE_ADS_"
REQUIRED_FIELDS = ("developer_token", "client_id", "client_secret", "refresh_token", "customer_id")


class GoogleAdsConfigError(ValueError):
    pass


@dataclass
class GoogleAdsConfig:
    developer_token: str
    client_id: str
    client_secret: str
    refresh_token: str
    customer_id: str
    login_customer_id: Optional[str] = None

    def to_client_dict(self) -> Dict[str, Any]:
        """Payload for ``GoogleAdsClient.load_from_dict``."""
        payload: Dict[str, Any] = {
            "developer_token": self.developer_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "use_proto_plus": True,
        }
        if self.login_customer_id:
            payload["login_customer_id"] = self.login_customer_id
        return payload


def normalize_customer_id(value) -> str:
    """'123-456-7890' -> '1234567890'."""
    return str(value or "").replace("-", "").strip()


def _lookup(name: str, raw: Dict[str, Any]) -> str:
    return str(os.environ.get(ENV_PREFIX + name.upper()) or raw.get(name) or "").strip()


def load_google_ads_config(customer_id: Optional[str] = None, yaml_path: Optional[str] = None) -> GoogleAdsConfig:
    """Load credentials; env vars take precedence over the YAML file.

    The YAML file is the first of: *yaml_path*, env `GEOBID_GOOGLE_ADS_YAML`,
    `google-ads.yaml` in cwd. A missing file is fine when env vars are set.
    """
    cfg_path = Path(yaml_path or os.environ.get(ENV_PREFIX + "YAML") or "google-ads.yaml")
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}

    values = {name: _lookup(name, raw) for name in REQUIRED_FIELDS}
    if customer_id:
        values["customer_id"] = str(customer_id).strip()
    values["customer_id"] = normalize_customer_id(values["customer_id"])

    missing = [name for name in REQUIRED_FIELDS if not values[name]]
    if missing:
        raise GoogleAdsConfigError(
            "Missing Google Ads config: " + ", ".join(missing) + ". "
            f"Set {ENV_PREFIX}* env vars or provide google-ads.yaml."
        )

    login = normalize_customer_id(_lookup("login_customer_id", raw)) or None
    return GoogleAdsConfig(login_customer_id=login, **values)
