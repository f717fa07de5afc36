"""Outbound HTTP client used for JWKS fetches and token exchanges."""

import httpx

from ltiauth.core.settings import LTISettings


def create_http_client(settings: LTISettings | None = None) -> httpx.AsyncClient:
    """Build an AsyncClient carrying the configured call timeout."""
    settings = settings or LTISettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        headers={"Accept": "application/json"},
    )
