# plugin_gate/api/v1/routers/repo.py
"""
Repository gating: the per-key URLs a client adds as its plugin repository.

Both manifests run the full admission (no device id) and refresh the caller's
IP session. Denials are 403 so the client refuses the repository.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from plugin_gate.api.v1.deps import client_ip, get_admission, rate_limit
from plugin_gate.api.v1.responses import denial_error
from plugin_gate.services import manifest
from plugin_gate.services.admission import AdmissionController

router = APIRouter(prefix="/r", tags=["repo"])


async def _admit(key: str, request: Request, admission: AdmissionController, source: str):
    outcome = await admission.validate(key, client_ip(request), source=source)
    if not outcome.allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denial_error(outcome))
    return outcome


@router.get("/{key}/repo.json", dependencies=[Depends(rate_limit("repo", 60, 60))])
async def repo_manifest(key: str, request: Request, admission: AdmissionController = Depends(get_admission)):
    await _admit(key, request, admission, "REPO")
    return await manifest.build_repo_manifest(key)


@router.get("/{key}/plugins.json", dependencies=[Depends(rate_limit("plugins", 60, 60))])
async def plugins_manifest(key: str, request: Request, admission: AdmissionController = Depends(get_admission)):
    """Upstream plugins.json, passed through unchanged."""
    await _admit(key, request, admission, "PLUGINS")
    try:
        return await manifest.fetch_upstream_plugins()
    except manifest.UpstreamUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "UPSTREAM_UNAVAILABLE", "message": "Failed to fetch plugins"},
        )
