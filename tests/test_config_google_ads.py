"""Tests for Google Ads config validation."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from geobid.config_google_ads import GoogleAdsConfigError, load_google_ads_config


def _write(tmp_path, text):
    p = tmp_path / "google-ads.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_load_from_yaml(tmp_path):
    path = _write(
        tmp_path,
        "developer_token: d\n"
        "client_id: cid\n"
        "client_secret: sec\n"
        "refresh_token: rt\n"
        "customer_id: 123-456-7890\n",
    )
    with patch.dict("os.environ", {}, clear=True):
        cfg = load_google_ads_config(yaml_path=path)
    assert cfg.customer_id == "1234567890"
    assert cfg.developer_token == "d"
    assert cfg.login_customer_id is None
    assert cfg.to_client_dict()["use_proto_plus"] is True
    assert "login_customer_id" not in cfg.to_client_dict()


def test_env_overrides_yaml(tmp_path):
    path = _write(
        tmp_path,
        "developer_token: d\nclient_id: cid\nclient_secret: sec\nrefresh_token: rt\ncustomer_id: 1\n",
    )
    env = {"GEOBID_GOOGLE_ADS_DEVELOPER_TOKEN": "env-token", "GEOBID_GOOGLE_ADS_LOGIN_CUSTOMER_ID": "999-000"}
    with patch.dict("os.environ", env, clear=True):
        cfg = load_google_ads_config(customer_id="42", yaml_path=path)
    assert cfg.developer_token == "env-token"
    assert cfg.customer_id == "42"
    assert cfg.login_customer_id == "999000"
    assert cfg.to_client_dict()["login_customer_id"] == "999000"


def test_missing_required_raises(tmp_path):
    path = _write(tmp_path, "developer_token: d\n")
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(GoogleAdsConfigError) as exc:
            load_google_ads_config(yaml_path=path)
    assert "refresh_token" in str(exc.value)
