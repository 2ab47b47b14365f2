# plugin_gate/services/activity.py
"""
Access Logger and client activity tracking.

Access log rows are the audit trail of admission decisions and admin actions.
Plugin usage / playback rows are reported by the client plugins themselves.
"""
import datetime as dt
from dataclasses import dataclass
from typing import Optional

from tortoise.expressions import Q

from plugin_gate.core.timeutil import utc_now
from plugin_gate.models import AccessLog, PlaybackLog, PluginUsage
from plugin_gate.services.columns import fit

# Actions accepted from the /check-ip piggyback tracking
TRACKED_PLUGIN_ACTIONS = frozenset({"HOME", "OPEN", "SEARCH", "LOAD", "PLAY", "SWITCH", "DOWNLOAD"})


async def record_access(key: str, action: str, ip: str = "", details: str = "", device_id: str = "") -> AccessLog:
    return await AccessLog.create(
        license_key=fit(AccessLog, "license_key", key),
        device_id=fit(AccessLog, "device_id", device_id),
        action=fit(AccessLog, "action", action),
        ip_address=fit(AccessLog, "ip_address", ip),
        details=details or "",
    )


async def track_plugin_usage(key: str, device_id: str, plugin_name: str, action: str, ip: str) -> PluginUsage:
    return await PluginUsage.create(
        license_key=fit(PluginUsage, "license_key", key),
        device_id=fit(PluginUsage, "device_id", device_id),
        plugin_name=fit(PluginUsage, "plugin_name", plugin_name),
        action=fit(PluginUsage, "action", (action or "OPEN").upper()),
        ip_address=fit(PluginUsage, "ip_address", ip),
    )


async def track_playback(
    key: str,
    device_id: str,
    plugin_name: str,
    video_title: str,
    source_provider: str,
    ip: str,
) -> PlaybackLog:
    return await PlaybackLog.create(
        license_key=fit(PlaybackLog, "license_key", key),
        device_id=fit(PlaybackLog, "device_id", device_id),
        plugin_name=fit(PlaybackLog, "plugin_name", plugin_name),
        video_title=fit(PlaybackLog, "video_title", video_title),
        source_provider=fit(PlaybackLog, "source_provider", source_provider),
        ip_address=fit(PlaybackLog, "ip_address", ip),
    )


@dataclass
class LogPage:
    items: list
    total: int
    page: int
    limit: int


async def list_access_logs(page: int = 1, limit: int = 50, search: str = "", action: str = "") -> LogPage:
    qs = AccessLog.all()
    if search:
        qs = qs.filter(
            Q(license_key__icontains=search) | Q(details__icontains=search) | Q(ip_address__icontains=search)
        )
    if action:
        qs = qs.filter(action=action)
    total = await qs.count()
    rows = await qs.order_by("-created_at", "-id").offset((page - 1) * limit).limit(limit)
    return LogPage(items=rows, total=total, page=page, limit=limit)


async def list_plugin_usage(page: int = 1, limit: int = 50, search: str = "") -> LogPage:
    qs = PluginUsage.all()
    if search:
        qs = qs.filter(
            Q(plugin_name__icontains=search) | Q(license_key__icontains=search) | Q(action__icontains=search)
        )
    total = await qs.count()
    rows = await qs.order_by("-used_at", "-id").offset((page - 1) * limit).limit(limit)
    return LogPage(items=rows, total=total, page=page, limit=limit)


async def list_playback_logs(page: int = 1, limit: int = 50, search: str = "") -> LogPage:
    qs = PlaybackLog.all()
    if search:
        qs = qs.filter(
            Q(video_title__icontains=search)
            | Q(plugin_name__icontains=search)
            | Q(source_provider__icontains=search)
            | Q(license_key__icontains=search)
        )
    total = await qs.count()
    rows = await qs.order_by("-played_at", "-id").offset((page - 1) * limit).limit(limit)
    return LogPage(items=rows, total=total, page=page, limit=limit)


async def activity_counts(recent: int = 20) -> dict:
    since = utc_now() - dt.timedelta(days=1)
    return {
        "plugin_events": await PluginUsage.all().count(),
        "playbacks": await PlaybackLog.all().count(),
        "plugin_events_today": await PluginUsage.filter(used_at__gte=since).count(),
        "playbacks_today": await PlaybackLog.filter(played_at__gte=since).count(),
        "recent_activity": await AccessLog.all().order_by("-created_at", "-id").limit(recent),
    }


def tracked_action(action: Optional[str]) -> Optional[str]:
    """Normalize a piggybacked plugin action; None when it is not tracked."""
    upper = (action or "").strip().upper()
    return upper if upper in TRACKED_PLUGIN_ACTIONS else None
