# plugin_gate/services/analytics.py
"""
Admin analytics over the client activity rows (plugin usage and playback).

Grouped counts run in the database through annotate/group_by. Hour-of-day and
per-day buckets are computed here from the timestamps so the same code works on
SQLite and PostgreSQL.
"""
import datetime as dt
from collections import Counter
from typing import Dict, List, Optional

from tortoise.functions import Count, Max

from plugin_gate.core.timeutil import as_utc, to_iso, utc_now
from plugin_gate.models import AccessLog, Device, License, PlaybackLog, PluginUsage

DOWNLOAD_SOURCE = "DOWNLOAD"
TOP_CONTENT_LIMIT = 20


async def _license_names(keys) -> Dict[str, str]:
    keys = {k for k in keys if k}
    if not keys:
        return {}
    return {lic.license_key: lic.name for lic in await License.filter(license_key__in=keys)}


async def activity_feed(minutes: int = 30, limit: int = 100) -> List[dict]:
    """
    Plugin and playback events of the last ``minutes``, newest first, merged
    into one list and tagged with ``type`` ("plugin" / "playback").
    """
    since = utc_now() - dt.timedelta(minutes=minutes)
    plugin_rows = await PluginUsage.filter(used_at__gte=since).order_by("-used_at", "-id").limit(limit)
    playback_rows = await PlaybackLog.filter(played_at__gte=since).order_by("-played_at", "-id").limit(limit)
    names = await _license_names([r.license_key for r in plugin_rows] + [r.license_key for r in playback_rows])

    feed = []
    for r in plugin_rows:
        feed.append({
            "type": "plugin",
            "timestamp": as_utc(r.used_at),
            "license_key": r.license_key,
            "license_name": names.get(r.license_key, ""),
            "device_id": r.device_id,
            "plugin_name": r.plugin_name,
            "action": r.action,
            "ip_address": r.ip_address,
        })
    for r in playback_rows:
        feed.append({
            "type": "playback",
            "timestamp": as_utc(r.played_at),
            "license_key": r.license_key,
            "license_name": names.get(r.license_key, ""),
            "device_id": r.device_id,
            "plugin_name": r.plugin_name,
            "video_title": r.video_title,
            "source_provider": r.source_provider,
            "ip_address": r.ip_address,
        })

    feed.sort(key=lambda e: e["timestamp"], reverse=True)
    feed = feed[:limit]
    for event in feed:
        event["timestamp"] = to_iso(event["timestamp"])
    return feed


async def plugin_analytics(days: int = 7, now: Optional[dt.datetime] = None) -> dict:
    now = now or utc_now()
    since = now - dt.timedelta(days=days)
    usage = PluginUsage.filter(used_at__gte=since)
    playback = PlaybackLog.filter(played_at__gte=since)

    by_plugin = (
        await usage.annotate(count=Count("id"))
        .group_by("plugin_name", "action")
        .order_by("-count", "plugin_name")
        .values("plugin_name", "action", "count")
    )
    unique_users = (
        await usage.annotate(unique_users=Count("license_key", distinct=True))
        .group_by("plugin_name")
        .order_by("-unique_users", "plugin_name")
        .values("plugin_name", "unique_users")
    )
    top_content = (
        await playback.annotate(play_count=Count("id"))
        .group_by("video_title", "plugin_name")
        .order_by("-play_count", "video_title")
        .limit(TOP_CONTENT_LIMIT)
        .values("video_title", "plugin_name", "play_count")
    )
    downloads = (
        await playback.filter(source_provider=DOWNLOAD_SOURCE)
        .annotate(download_count=Count("id"))
        .group_by("plugin_name")
        .order_by("-download_count", "plugin_name")
        .values("plugin_name", "download_count")
    )

    # Hour-of-day pattern always covers the last 24 hours
    last_day = await PluginUsage.filter(used_at__gte=now - dt.timedelta(days=1)).values_list("used_at", flat=True)
    hours = Counter(f"{as_utc(t).hour:02d}" for t in last_day)

    trend_rows = await usage.values("used_at", "plugin_name", "action")
    trends = Counter((as_utc(r["used_at"]).date().isoformat(), r["plugin_name"], r["action"]) for r in trend_rows)

    return {
        "by_plugin": by_plugin,
        "unique_users": unique_users,
        "hourly_pattern": [{"hour": h, "count": c} for h, c in sorted(hours.items())],
        "top_content": top_content,
        "downloads": downloads,
        "daily_trends": [
            {"day": day, "plugin_name": plugin, "action": action, "count": c}
            for (day, plugin, action), c in sorted(trends.items(), key=lambda kv: (kv[0][0], kv[1]), reverse=True)
        ],
        "period_days": days,
    }


async def license_analytics(license_key: str, days: int = 7, recent: int = 50) -> Optional[dict]:
    """Usage of one live license; None when the key is unknown."""
    lic = await License.get_or_none(license_key=license_key, deleted_at__isnull=True)
    if lic is None:
        return None
    since = utc_now() - dt.timedelta(days=days)

    usage = (
        await PluginUsage.filter(license_key=license_key, used_at__gte=since)
        .annotate(count=Count("id"), last_used=Max("used_at"))
        .group_by("plugin_name", "action")
        .order_by("-count", "plugin_name")
        .values("plugin_name", "action", "count", "last_used")
    )
    for row in usage:
        # Max() comes back as a datetime or, on some backends, as text
        if isinstance(row["last_used"], dt.datetime):
            row["last_used"] = to_iso(row["last_used"])

    history = await PlaybackLog.filter(license_key=license_key, played_at__gte=since).order_by("-played_at", "-id").limit(100)
    return {
        "license": lic,
        "plugin_usage": usage,
        "playback_history": history,
        "devices": await Device.filter(license_key=license_key).order_by("-last_seen"),
        "recent_logs": await AccessLog.filter(license_key=license_key).order_by("-created_at", "-id").limit(recent),
        "period_days": days,
    }
