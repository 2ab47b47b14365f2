# plugin_gate/api/v1/routers/public.py
"""
Endpoints called by the client plugins.

Admission denials are business outcomes: HTTP 200 with
``{"success": false, "error": {"code", "message"}}``. Only rate limiting (429)
and an unreachable store (503) use error statuses.
"""
import logging
import time

from fastapi import APIRouter, Depends, Query, Request

from plugin_gate.api.v1.deps import client_ip, get_admission, rate_limit
from plugin_gate.api.v1.responses import denial_body
from plugin_gate.config import settings
from plugin_gate.core.timeutil import to_iso, utc_now
from plugin_gate.schemas.public import (
    MAX_FIELD_LENGTH,
    HeartbeatIn,
    TrackPlaybackIn,
    TrackPluginIn,
    ValidateIn,
    clean_input,
)
from plugin_gate.services import activity, runtime_settings
from plugin_gate.services.admission import AdmissionController

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["public"])

PLAYBACK_ACTIONS = {"PLAY", "DOWNLOAD"}


def _missing(message: str) -> dict:
    return {"success": False, "error": {"code": "MISSING_FIELDS", "message": message}}


@router.post("/validate", dependencies=[Depends(rate_limit("validate", 30, 60))])
async def validate(
    body: ValidateIn,
    request: Request,
    admission: AdmissionController = Depends(get_admission),
):
    """
    Full license validation for a device.

    On success the caller's IP gets a session, so later /check-ip calls take
    the fast path.

    Returns:
        dict: success + data (status, expires_at, days_left, max_devices), or
        success=False with the denial code (ip_blocked, not_found, revoked,
        expired, device_blocked, max_devices)
    """
    if not body.key:
        return _missing("License key required")

    outcome = await admission.validate(
        body.key,
        client_ip(request),
        device_id=body.device_id,
        device_name=body.device_name,
        user_agent=request.headers.get("user-agent", "")[:MAX_FIELD_LENGTH],
        source="VALIDATE",
    )
    if not outcome.allowed:
        return denial_body(outcome)

    lic = outcome.license
    return {"success": True, "data": {
        "status": "active",
        "message": "License valid",
        "expires_at": to_iso(lic.expires_at),
        "days_left": outcome.days_left,
        "max_devices": lic.max_devices,
    }}


@router.post("/heartbeat", dependencies=[Depends(rate_limit("heartbeat", 60, 60))])
async def heartbeat(
    body: HeartbeatIn,
    request: Request,
    admission: AdmissionController = Depends(get_admission),
):
    """Periodic re-validation; runs the same full admission as /validate."""
    if not body.key:
        return _missing("License key required")

    outcome = await admission.validate(
        body.key,
        client_ip(request),
        device_id=body.device_id,
        user_agent=request.headers.get("user-agent", "")[:MAX_FIELD_LENGTH],
        source="HEARTBEAT",
    )
    if not outcome.allowed:
        return denial_body(outcome)
    return {"success": True, "data": {"status": "active", "days_left": outcome.days_left}}


@router.get("/check-ip", dependencies=[Depends(rate_limit("check-ip", 120, 60))])
async def check_ip(
    request: Request,
    device_id: str = Query(""),
    plugin: str = Query(""),
    action: str = Query(""),
    data: str = Query(""),
    admission: AdmissionController = Depends(get_admission),
):
    """
    Fast path: is there a live session for the caller's IP?

    The plugins piggyback their activity on this call: with ``plugin`` and a
    tracked ``action`` a plugin usage row is written, and PLAY / DOWNLOAD with
    ``data`` (the title) also writes a playback row.
    """
    ip = client_ip(request)
    device_id, plugin, action, data = (clean_input(v) for v in (device_id, plugin, action, data))
    outcome = await admission.check_session(ip)
    if not outcome.allowed:
        return denial_body(outcome)

    key = outcome.session.license_key
    tracked = activity.tracked_action(action) if plugin else None
    if tracked:
        await _track_quietly(key, device_id, plugin, tracked, data, ip)

    return {"success": True, "data": {
        "status": "active",
        "message": "Valid",
        "expires_at": to_iso(outcome.license.expires_at),
        "days_left": outcome.days_left,
        "session_remaining": int(outcome.session.remaining),
    }}


async def _track_quietly(key: str, device_id: str, plugin: str, action: str, title: str, ip: str) -> None:
    """Activity rows never turn a valid check into an error."""
    try:
        await activity.track_plugin_usage(key, device_id, plugin, action, ip)
        if action in PLAYBACK_ACTIONS and title:
            source = "DOWNLOAD" if action == "DOWNLOAD" else ""
            await activity.track_playback(key, device_id, plugin, title, source, ip)
    except Exception:
        logger.exception("[check-ip] dropped %s activity for %s", action, plugin)


@router.post("/track/plugin", dependencies=[Depends(rate_limit("track-plugin", 60, 60))])
async def track_plugin(body: TrackPluginIn, request: Request):
    if not body.key or not body.plugin_name:
        return _missing("Missing fields")
    await activity.track_plugin_usage(body.key, body.device_id, body.plugin_name, body.action, client_ip(request))
    return {"success": True}


@router.post("/track/playback", dependencies=[Depends(rate_limit("track-playback", 60, 60))])
async def track_playback(body: TrackPlaybackIn, request: Request):
    if not body.key or not body.plugin_name or not body.video_title:
        return _missing("Missing fields")
    await activity.track_playback(
        body.key, body.device_id, body.plugin_name, body.video_title, body.source_provider, client_ip(request)
    )
    return {"success": True}


@router.get("/config")
async def public_config():
    return {"success": True, "data": {
        "server_url": await runtime_settings.server_url(),
        "version": settings.VERSION,
    }}


@router.get("/health")
async def health(request: Request):
    started = getattr(request.app.state, "started_at", None)
    uptime = time.monotonic() - started if started is not None else 0.0
    return {"success": True, "data": {
        "status": "ok",
        "uptime": round(uptime, 3),
        "timestamp": to_iso(utc_now()),
    }}
