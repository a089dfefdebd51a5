"""Geo Bid Factory: location targeting and geo bid modifiers for Google Ads."""

__version__ = "0.1.0"
