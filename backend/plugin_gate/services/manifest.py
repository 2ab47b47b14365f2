# plugin_gate/services/manifest.py
"""
Repository manifests handed to licensed clients.

repo.json is generated locally and points the client at the per-key
plugins.json; plugins.json is the upstream build list, fetched on every
request and returned unchanged.
"""
import logging

import httpx

from plugin_gate.config import settings
from plugin_gate.services import runtime_settings

logger = logging.getLogger("uvicorn.error")

REPO_NAME = "Premium Extensions"
REPO_DESCRIPTION = "CloudStream Premium Extensions"
MANIFEST_VERSION = 1


class UpstreamUnavailableError(Exception):
    """The upstream plugin list could not be fetched or parsed."""


async def build_repo_manifest(license_key: str) -> dict:
    base = await runtime_settings.server_url()
    return {
        "name": REPO_NAME,
        "description": REPO_DESCRIPTION,
        "manifestVersion": MANIFEST_VERSION,
        "pluginLists": [f"{base}/r/{license_key}/plugins.json"],
    }


async def fetch_upstream_plugins(url: str | None = None, timeout: float | None = None):
    """GET the upstream plugins.json; any transport, status or JSON failure raises UpstreamUnavailableError."""
    url = url or await runtime_settings.upstream_plugins_url()
    timeout = timeout or settings.upstream_timeout_seconds
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("[manifest] upstream fetch failed (%s): %s", url, exc)
        raise UpstreamUnavailableError(str(exc)) from exc
