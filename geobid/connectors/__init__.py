"""Platform connectors (Google Ads, Google Sheets)."""
from geobid.connectors.google_ads import GoogleAdsConnectorError, GoogleAdsProvider
from geobid.connectors.google_sheets import GoogleSheetsConfigError, SheetsReportSink

__all__ = [
    "GoogleAdsConnectorError",
    "GoogleAdsProvider",
    "GoogleSheetsConfigError",
    "SheetsReportSink",
]
