# plugin_gate/api/v1/routers/admin.py
from __future__ import annotations

from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
)

from plugin_gate.api.v1.deps import client_ip, get_current_admin
from plugin_gate.core.timeutil import as_utc, to_iso
from plugin_gate.models import AccessLog, Admin, BlockedIp, Device, FailedLogin, License, LicenseStatus, PlaybackLog, PluginUsage
from plugin_gate.schemas.device import DeviceListOut, DeviceRenameIn
from plugin_gate.schemas.license import (
    LicenseBulkActionIn,
    LicenseBulkCreateIn,
    LicenseCreateIn,
    LicenseListOut,
    LicenseUpdateIn,
)
from plugin_gate.schemas.security import BlockIpIn
from plugin_gate.schemas.settings import SettingsUpdateIn
from plugin_gate.services import activity, analytics, blocklist, devices, licenses, runtime_settings

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])

BULK_ACTION_MAX = 100


# ------------------------------------------------------------------------------
# Serializers
# ------------------------------------------------------------------------------
def _license_to_dict(lic: License, device_count: int = 0) -> dict:
    return {
        "id": lic.id,
        "license_key": lic.license_key,
        "name": lic.name,
        "note": lic.note,
        "status": lic.status.value,
        "expires_at": to_iso(lic.expires_at),
        "max_devices": lic.max_devices,
        "device_count": device_count,
        "deleted_at": to_iso(lic.deleted_at),
        "created_at": to_iso(lic.created_at),
    }


def _device_to_dict(d: Device) -> dict:
    return {
        "id": d.id,
        "license_key": d.license_key,
        "device_id": d.device_id,
        "device_name": d.device_name,
        "ip_address": d.ip_address,
        "user_agent": d.user_agent,
        "is_blocked": d.is_blocked,
        "first_seen": to_iso(d.first_seen),
        "last_seen": to_iso(d.last_seen),
    }


def _access_log_to_dict(r: AccessLog) -> dict:
    return {
        "id": r.id,
        "license_key": r.license_key,
        "device_id": r.device_id,
        "action": r.action,
        "ip_address": r.ip_address,
        "details": r.details,
        "created_at": to_iso(r.created_at),
    }


def _plugin_usage_to_dict(r: PluginUsage) -> dict:
    return {
        "id": r.id,
        "license_key": r.license_key,
        "device_id": r.device_id,
        "plugin_name": r.plugin_name,
        "action": r.action,
        "ip_address": r.ip_address,
        "used_at": to_iso(r.used_at),
    }


def _playback_to_dict(r: PlaybackLog) -> dict:
    return {
        "id": r.id,
        "license_key": r.license_key,
        "device_id": r.device_id,
        "plugin_name": r.plugin_name,
        "video_title": r.video_title,
        "source_provider": r.source_provider,
        "ip_address": r.ip_address,
        "played_at": to_iso(r.played_at),
    }


def _blocked_ip_to_dict(r: BlockedIp) -> dict:
    return {"id": r.id, "ip_address": r.ip_address, "reason": r.reason, "created_at": to_iso(r.created_at)}


def _failed_login_to_dict(r: FailedLogin) -> dict:
    return {"ip_address": r.ip_address, "attempt_count": r.attempt_count, "last_attempt": to_iso(r.last_attempt)}


def _page(items: list, total: int, page: int, limit: int) -> dict:
    return {"items": items, "total": total, "page": page, "limit": limit}


async def _audit(request: Request, admin: Admin, action: str, details: str, key: str = "") -> None:
    """Every admin mutation leaves an access log row naming the operator."""
    await activity.record_access(key, action, client_ip(request), f"{details} by {admin.username}")


async def _license_or_404(license_id: int) -> License:
    lic = await licenses.get_license_by_id(license_id)
    if lic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="LICENSE_NOT_FOUND")
    return lic


async def _device_or_404(device_pk: int) -> Device:
    d = await Device.get_or_none(id=device_pk)
    if d is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="DEVICE_NOT_FOUND")
    return d


# ==============================================================================
# I. Dashboard
# ==============================================================================
@router.get("/dashboard")
async def dashboard(request: Request):
    """Headline counters for the dashboard plus the most recent access log rows."""
    lic_counts = await licenses.license_counts()
    dev_counts = await devices.device_counts()
    act = await activity.activity_counts(recent=20)
    return {"success": True, "data": {
        "licenses": lic_counts,
        "devices": dev_counts,
        "plugin_events": act["plugin_events"],
        "playbacks": act["playbacks"],
        "plugin_events_today": act["plugin_events_today"],
        "playbacks_today": act["playbacks_today"],
        "blocked_ips": await BlockedIp.all().count(),
        "active_sessions": len(request.app.state.ip_sessions),
        "recent_activity": [_access_log_to_dict(r) for r in act["recent_activity"]],
    }}


# ==============================================================================
# II. Licenses
#     Prefix: /api/v1/admin/licenses
# ==============================================================================
@router.post("/licenses")
async def create_license(body: LicenseCreateIn, request: Request, admin: Admin = Depends(get_current_admin)):
    lic = await licenses.create_license(
        duration_days=body.duration_days,
        max_devices=body.max_devices,
        name=body.name,
        note=body.note,
    )
    await _audit(request, admin, "LICENSE_CREATE", f"id:{lic.id}", key=lic.license_key)
    return {"success": True, "data": _license_to_dict(lic)}


@router.post("/licenses/bulk-create")
async def bulk_create_licenses(body: LicenseBulkCreateIn, request: Request, admin: Admin = Depends(get_current_admin)):
    """
    Issue ``count`` licenses at once (capped by BULK_CREATE_MAX).
    The response is the only place the operator sees all new keys together.
    """
    created = await licenses.create_bulk_licenses(
        count=body.count,
        duration_days=body.duration_days,
        max_devices=body.max_devices,
        note=body.note,
    )
    await _audit(request, admin, "BULK_CREATE", f"{len(created)} licenses created")
    return {"success": True, "data": {"keys": [_license_to_dict(lic) for lic in created]}}


@router.post("/licenses/bulk")
async def bulk_license_action(body: LicenseBulkActionIn, request: Request, admin: Admin = Depends(get_current_admin)):
    """
    Apply one action (revoke / activate / delete / force_delete) to many licenses.
    Unknown ids are skipped; ``processed`` counts the ones that existed.
    """
    processed = 0
    for license_id in body.ids[:BULK_ACTION_MAX]:
        if body.action == "revoke":
            changed = await licenses.set_license_status(license_id, LicenseStatus.REVOKED)
        elif body.action == "activate":
            changed = await licenses.set_license_status(license_id, LicenseStatus.ACTIVE)
        elif body.action == "delete":
            changed = await licenses.soft_delete_license(license_id)
        else:
            changed = await licenses.hard_delete_license(license_id)
        if changed:
            processed += 1
    await _audit(request, admin, f"BULK_{body.action.upper()}", f"{processed} licenses")
    return {"success": True, "data": {"processed": processed}}


@router.get("/licenses", response_model=LicenseListOut)
async def list_licenses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", max_length=500, description="Fuzzy search by key/name/note"),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(active|revoked|expired)$"),
    trashed: bool = Query(False, description="List soft-deleted licenses instead"),
):
    result = await licenses.list_licenses(
        page=page,
        limit=limit,
        search=search.strip(),
        status=LicenseStatus(status_filter) if status_filter else None,
        trashed=trashed,
    )
    items = [_license_to_dict(lic, result.device_counts.get(lic.license_key, 0)) for lic in result.items]
    return _page(items, result.total, result.page, result.limit)


@router.get("/licenses/{license_id}")
async def license_details(license_id: int):
    """License with its devices, recent access logs, plugin usage and playback."""
    details = await licenses.license_details(license_id)
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="LICENSE_NOT_FOUND")
    return {"success": True, "data": {
        "license": _license_to_dict(details["license"], len(details["devices"])),
        "devices": [_device_to_dict(d) for d in details["devices"]],
        "recent_logs": [_access_log_to_dict(r) for r in details["recent_logs"]],
        "plugin_usage": [_plugin_usage_to_dict(r) for r in details["plugin_usage"]],
        "playback_logs": [_playback_to_dict(r) for r in details["playback_logs"]],
    }}


@router.put("/licenses/{license_id}")
async def update_license(
    license_id: int,
    body: LicenseUpdateIn,
    request: Request,
    admin: Admin = Depends(get_current_admin),
):
    """
    Edit name, note, max_devices, expires_at and/or status. Only provided
    fields change. Extending expires_at on an expired license is enough: the
    next admission corrects the stored status back to active.
    """
    await _license_or_404(license_id)
    await licenses.update_license(
        license_id,
        name=body.name,
        note=body.note,
        max_devices=body.max_devices,
        expires_at=as_utc(body.expires_at),
        status=LicenseStatus(body.status) if body.status else None,
    )
    await _audit(request, admin, "LICENSE_UPDATE", f"id:{license_id}")
    return {"success": True, "data": _license_to_dict(await licenses.get_license_by_id(license_id))}


@router.post("/licenses/{license_id}/revoke")
async def revoke_license(license_id: int, request: Request, admin: Admin = Depends(get_current_admin)):
    await _license_or_404(license_id)
    await licenses.set_license_status(license_id, LicenseStatus.REVOKED)
    await _audit(request, admin, "LICENSE_REVOKE", f"id:{license_id}")
    return {"success": True}


@router.post("/licenses/{license_id}/activate")
async def activate_license(license_id: int, request: Request, admin: Admin = Depends(get_current_admin)):
    await _license_or_404(license_id)
    await licenses.set_license_status(license_id, LicenseStatus.ACTIVE)
    await _audit(request, admin, "LICENSE_ACTIVATE", f"id:{license_id}")
    return {"success": True}


@router.post("/licenses/{license_id}/restore")
async def restore_license(license_id: int, request: Request, admin: Admin = Depends(get_current_admin)):
    await _license_or_404(license_id)
    await licenses.restore_license(license_id)
    await _audit(request, admin, "LICENSE_RESTORE", f"id:{license_id}")
    return {"success": True}


@router.delete("/licenses/{license_id}")
async def delete_license(
    license_id: int,
    request: Request,
    force: bool = Query(False, description="Irreversible delete with devices and logs"),
    admin: Admin = Depends(get_current_admin),
):
    await _license_or_404(license_id)
    if force:
        await licenses.hard_delete_license(license_id)
        await _audit(request, admin, "LICENSE_FORCE_DELETE", f"id:{license_id}")
    else:
        await licenses.soft_delete_license(license_id)
        await _audit(request, admin, "LICENSE_SOFT_DELETE", f"id:{license_id}")
    return {"success": True}


# ==============================================================================
# III. Devices
#     Prefix: /api/v1/admin/devices
# ==============================================================================
@router.get("/devices", response_model=DeviceListOut)
async def list_devices(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", max_length=500),
):
    result = await devices.list_devices(page=page, limit=limit, search=search.strip())
    return _page([_device_to_dict(d) for d in result.items], result.total, result.page, result.limit)


@router.get("/devices/online")
async def online_devices():
    """Devices seen within the online window; a presence hint, not a session."""
    rows = await devices.list_online_devices()
    return {"success": True, "data": {"items": [_device_to_dict(d) for d in rows], "count": len(rows)}}


@router.post("/devices/{device_pk}/block")
async def block_device(device_pk: int, request: Request, admin: Admin = Depends(get_current_admin)):
    d = await _device_or_404(device_pk)
    await devices.set_device_blocked(device_pk, True)
    await _audit(request, admin, "DEVICE_BLOCK", f"device_id:{d.device_id}", key=d.license_key)
    return {"success": True}


@router.post("/devices/{device_pk}/unblock")
async def unblock_device(device_pk: int, request: Request, admin: Admin = Depends(get_current_admin)):
    d = await _device_or_404(device_pk)
    await devices.set_device_blocked(device_pk, False)
    await _audit(request, admin, "DEVICE_UNBLOCK", f"device_id:{d.device_id}", key=d.license_key)
    return {"success": True}


@router.put("/devices/{device_pk}")
async def rename_device(
    device_pk: int,
    body: DeviceRenameIn,
    request: Request,
    admin: Admin = Depends(get_current_admin),
):
    d = await _device_or_404(device_pk)
    await devices.rename_device(device_pk, body.device_name.strip())
    await _audit(request, admin, "DEVICE_RENAME", f"device_id:{d.device_id}", key=d.license_key)
    return {"success": True}


@router.delete("/devices/{device_pk}")
async def delete_device(device_pk: int, request: Request, admin: Admin = Depends(get_current_admin)):
    """Frees the device's seat; the same device id may register again later."""
    d = await _device_or_404(device_pk)
    await devices.delete_device(device_pk)
    await _audit(request, admin, "DEVICE_DELETE", f"device_id:{d.device_id}", key=d.license_key)
    return {"success": True}


# ==============================================================================
# IV. Logs & activity
# ==============================================================================
@router.get("/logs")
async def access_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: str = Query("", max_length=500),
    action: str = Query("", max_length=64),
):
    result = await activity.list_access_logs(page=page, limit=limit, search=search.strip(), action=action.strip())
    return {"success": True, "data": _page(
        [_access_log_to_dict(r) for r in result.items], result.total, result.page, result.limit
    )}


@router.get("/plugin-usage")
async def plugin_usage(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: str = Query("", max_length=500),
):
    result = await activity.list_plugin_usage(page=page, limit=limit, search=search.strip())
    return {"success": True, "data": _page(
        [_plugin_usage_to_dict(r) for r in result.items], result.total, result.page, result.limit
    )}


@router.get("/playback-logs")
async def playback_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: str = Query("", max_length=500),
):
    result = await activity.list_playback_logs(page=page, limit=limit, search=search.strip())
    return {"success": True, "data": _page(
        [_playback_to_dict(r) for r in result.items], result.total, result.page, result.limit
    )}


@router.get("/activity-feed")
async def activity_feed(
    minutes: int = Query(30, ge=1, le=1440),
    limit: int = Query(100, ge=1, le=500),
):
    """Plugin and playback events of the last few minutes, newest first."""
    feed = await analytics.activity_feed(minutes=minutes, limit=limit)
    return {"success": True, "data": {"items": feed, "count": len(feed)}}


@router.get("/analytics/plugins")
async def plugin_analytics(days: int = Query(7, ge=1, le=90)):
    """
    Per-plugin breakdown over the last ``days``: counts per action, unique
    licenses, hour-of-day pattern (last 24 h), most played titles, downloads
    and daily trends.
    """
    return {"success": True, "data": await analytics.plugin_analytics(days=days)}


@router.get("/analytics/user/{license_key}")
async def license_analytics(license_key: str, days: int = Query(7, ge=1, le=90)):
    result = await analytics.license_analytics(license_key, days=days)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="LICENSE_NOT_FOUND")
    return {"success": True, "data": {
        "license": _license_to_dict(result["license"], len(result["devices"])),
        "plugin_usage": result["plugin_usage"],
        "playback_history": [_playback_to_dict(r) for r in result["playback_history"]],
        "devices": [_device_to_dict(d) for d in result["devices"]],
        "recent_logs": [_access_log_to_dict(r) for r in result["recent_logs"]],
        "period_days": result["period_days"],
    }}


@router.get("/sessions")
async def active_sessions(request: Request):
    """Live IP sessions with the license they were granted for."""
    snapshot = request.app.state.ip_sessions.snapshot()
    keys = {s.license_key for s in snapshot}
    by_key = {lic.license_key: lic for lic in await License.filter(license_key__in=keys)} if keys else {}
    items = []
    for s in sorted(snapshot, key=lambda s: s.remaining, reverse=True):
        lic = by_key.get(s.license_key)
        items.append({
            "ip": s.ip,
            "license_key": s.license_key,
            "license_name": lic.name if lic else "",
            "status": lic.status.value if lic else "unknown",
            "ttl_minutes": round(s.remaining / 60),
        })
    return {"success": True, "data": {"items": items, "count": len(items)}}


# ==============================================================================
# V. Security: failed logins and the IP blocklist
# ==============================================================================
@router.get("/security/failed-logins")
async def failed_logins():
    rows = await blocklist.list_failed_logins()
    return {"success": True, "data": {"items": [_failed_login_to_dict(r) for r in rows]}}


@router.get("/security/blocked-ips")
async def blocked_ips():
    rows = await blocklist.list_blocked_ips()
    return {"success": True, "data": {"items": [_blocked_ip_to_dict(r) for r in rows]}}


@router.post("/security/blocked-ips")
async def block_ip(body: BlockIpIn, request: Request, admin: Admin = Depends(get_current_admin)):
    ip = body.ip_address.strip()
    created = await blocklist.block_ip(ip, body.reason.strip())
    await _audit(request, admin, "IP_BLOCK", f"blocked {ip}")
    return {"success": True, "data": {"created": created}}


@router.delete("/security/blocked-ips/{ip}")
async def unblock_ip(ip: str, request: Request, admin: Admin = Depends(get_current_admin)):
    removed = await blocklist.unblock_ip(ip)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="IP_NOT_BLOCKED")
    await blocklist.clear_failed_logins(ip)
    await _audit(request, admin, "IP_UNBLOCK", f"unblocked {ip}")
    return {"success": True}


# ==============================================================================
# VI. Runtime settings
# ==============================================================================
@router.get("/settings")
async def get_settings():
    return {"success": True, "data": {"settings": await runtime_settings.all_settings()}}


@router.put("/settings")
async def update_settings(body: SettingsUpdateIn, request: Request, admin: Admin = Depends(get_current_admin)):
    for key, value in body.settings.items():
        await runtime_settings.set_setting(key, value)
    await _audit(request, admin, "SETTINGS_UPDATE", f"{len(body.settings)} key(s)")
    return {"success": True, "data": {"settings": await runtime_settings.all_settings()}}
