"""Obtain a Google Ads refresh token for the bid runner (installed app OAuth flow).

Usage:
  export GEOBID_GOOGLE_CLIENT_ID=...
  export GEOBID_GOOGLE_CLIENT_SECRET=...
  python scripts/google_ads_oauth.py [--port 8080]
"""

from __future__ import annotations

import click

SCOPES = ["https://www.googleapis.com/auth/adwords"]


def _client_config(client_id: str, client_secret: str) -> dict:
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }


@click.command()
@click.option("--client-id", envvar=["GEOBID_GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_ID"], required=True)
@click.option(
    "--client-secret", envvar=["GEOBID_GOOGLE_CLIENT_SECRET", "GOOGLE_CLIENT_SECRET"], required=True
)
@click.option("--port", default=8080, show_default=True, help="Local redirect port")
def main(client_id: str, client_secret: str, port: int) -> None:
    """Run the consent flow and print a google-ads.yaml snippet."""
    from google_auth_oauthlib.flow import InstalledAppFlow

    flow = InstalledAppFlow.from_client_config(_client_config(client_id, client_secret), scopes=SCOPES)
    creds = flow.run_local_server(port=port, prompt="consent", access_type="offline")

    click.echo("\n✅ OAuth complete. Add to google-ads.yaml (do not commit):")
    click.echo(f"client_id: {client_id}")
    click.echo("client_secret: <your client secret>")
    click.echo(f"refresh_token: {creds.refresh_token}")


if __name__ == "__main__":
    main()
