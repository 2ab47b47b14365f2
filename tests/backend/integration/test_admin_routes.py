import datetime as dt

import pytest

from plugin_gate.core.timeutil import utc_now
from plugin_gate.models import AccessLog, Device, License, LicenseStatus, PlaybackLog, PluginUsage
from plugin_gate.services import activity, blocklist, devices


pytestmark = pytest.mark.asyncio


async def test_admin_routes_require_token(client):
    resp = await client.get("/api/v1/admin/dashboard")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "AUTH_REQUIRED"

    resp = await client.get("/api/v1/admin/licenses", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


async def test_license_lifecycle(client, admin_headers):
    created = await client.post(
        "/api/v1/admin/licenses",
        headers=admin_headers,
        json={"name": "Alice", "note": "paid via transfer", "duration_days": 7, "max_devices": 1},
    )
    assert created.status_code == 200
    lic = created.json()["data"]
    assert lic["license_key"].startswith("CS-")
    assert lic["status"] == "active"
    assert lic["max_devices"] == 1

    listing = await client.get("/api/v1/admin/licenses", headers=admin_headers, params={"search": "alice"})
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["items"][0]["id"] == lic["id"]

    new_expiry = (utc_now() + dt.timedelta(days=90)).isoformat()
    updated = await client.put(
        f"/api/v1/admin/licenses/{lic['id']}",
        headers=admin_headers,
        json={"name": "Alice B.", "max_devices": 3, "expires_at": new_expiry},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "Alice B."
    assert updated.json()["data"]["max_devices"] == 3

    assert (await client.post(f"/api/v1/admin/licenses/{lic['id']}/revoke", headers=admin_headers)).status_code == 200
    assert (await License.get(id=lic["id"])).status == LicenseStatus.REVOKED
    revoked = await client.get("/api/v1/admin/licenses", headers=admin_headers, params={"status": "revoked"})
    assert revoked.json()["total"] == 1

    assert (await client.post(f"/api/v1/admin/licenses/{lic['id']}/activate", headers=admin_headers)).status_code == 200
    assert (await License.get(id=lic["id"])).status == LicenseStatus.ACTIVE

    actions = set(await AccessLog.filter(license_key__in=["", lic["license_key"]]).values_list("action", flat=True))
    assert {"LICENSE_CREATE", "LICENSE_UPDATE", "LICENSE_REVOKE", "LICENSE_ACTIVATE"} <= actions


async def test_license_list_rejects_unknown_status(client, admin_headers):
    resp = await client.get("/api/v1/admin/licenses", headers=admin_headers, params={"status": "paused"})
    assert resp.status_code == 422


async def test_soft_delete_restore_and_force_delete(client, admin_headers, create_license):
    lic = await create_license()
    await devices.upsert_device(lic.license_key, "devA", "10.0.0.1")
    await activity.record_access(lic.license_key, "VALIDATE_OK", "10.0.0.1")

    assert (await client.delete(f"/api/v1/admin/licenses/{lic.id}", headers=admin_headers)).status_code == 200
    live = await client.get("/api/v1/admin/licenses", headers=admin_headers)
    trash = await client.get("/api/v1/admin/licenses", headers=admin_headers, params={"trashed": "true"})
    assert live.json()["total"] == 0
    assert trash.json()["total"] == 1

    assert (await client.post(f"/api/v1/admin/licenses/{lic.id}/restore", headers=admin_headers)).status_code == 200
    assert (await License.get(id=lic.id)).deleted_at is None

    forced = await client.delete(f"/api/v1/admin/licenses/{lic.id}", headers=admin_headers, params={"force": "true"})
    assert forced.status_code == 200
    assert await License.filter(id=lic.id).count() == 0
    assert await Device.filter(license_key=lic.license_key).count() == 0
    assert await AccessLog.filter(license_key=lic.license_key).count() == 0
    assert await AccessLog.filter(action="LICENSE_FORCE_DELETE").count() == 1

    missing = await client.post(f"/api/v1/admin/licenses/{lic.id}/revoke", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "LICENSE_NOT_FOUND"


async def test_bulk_create_and_bulk_action(client, admin_headers):
    created = await client.post(
        "/api/v1/admin/licenses/bulk-create",
        headers=admin_headers,
        json={"count": 3, "duration_days": 14, "max_devices": 1, "note": "reseller batch"},
    )
    assert created.status_code == 200
    keys = created.json()["data"]["keys"]
    assert len({k["license_key"] for k in keys}) == 3

    too_many = await client.post("/api/v1/admin/licenses/bulk-create", headers=admin_headers, json={"count": 1000})
    assert too_many.status_code == 422

    ids = [k["id"] for k in keys]
    revoked = await client.post(
        "/api/v1/admin/licenses/bulk",
        headers=admin_headers,
        json={"ids": ids + [999999], "action": "revoke"},
    )
    assert revoked.json()["data"]["processed"] == 3
    assert await License.filter(status=LicenseStatus.REVOKED).count() == 3

    deleted = await client.post(
        "/api/v1/admin/licenses/bulk",
        headers=admin_headers,
        json={"ids": ids[:2], "action": "delete"},
    )
    assert deleted.json()["data"]["processed"] == 2
    assert await License.filter(deleted_at__isnull=False).count() == 2
    assert await AccessLog.filter(action="BULK_DELETE").count() == 1


async def test_license_details(client, admin_headers, create_license):
    lic = await create_license()
    await devices.upsert_device(lic.license_key, "devA", "10.0.0.1", name="Phone")
    await activity.track_plugin_usage(lic.license_key, "devA", "Anime", "play", "10.0.0.1")
    await activity.track_playback(lic.license_key, "devA", "Anime", "Ep 1", "", "10.0.0.1")

    resp = await client.get(f"/api/v1/admin/licenses/{lic.id}", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["license"]["device_count"] == 1
    assert data["devices"][0]["device_name"] == "Phone"
    assert data["plugin_usage"][0]["action"] == "PLAY"
    assert data["playback_logs"][0]["video_title"] == "Ep 1"

    assert (await client.get("/api/v1/admin/licenses/424242", headers=admin_headers)).status_code == 404


async def test_device_management(client, admin_headers, create_license):
    lic = await create_license(max_devices=1)
    device = await devices.upsert_device(lic.license_key, "devA", "10.0.0.1", name="Old name")

    listing = await client.get("/api/v1/admin/devices", headers=admin_headers)
    assert listing.json()["total"] == 1

    online = await client.get("/api/v1/admin/devices/online", headers=admin_headers)
    assert online.json()["data"]["count"] == 1

    renamed = await client.put(f"/api/v1/admin/devices/{device.id}", headers=admin_headers, json={"device_name": " TV "})
    assert renamed.status_code == 200
    assert (await Device.get(id=device.id)).device_name == "TV"

    assert (await client.post(f"/api/v1/admin/devices/{device.id}/block", headers=admin_headers)).status_code == 200
    assert (await Device.get(id=device.id)).is_blocked is True
    assert (await client.post(f"/api/v1/admin/devices/{device.id}/unblock", headers=admin_headers)).status_code == 200
    assert (await Device.get(id=device.id)).is_blocked is False

    assert (await client.delete(f"/api/v1/admin/devices/{device.id}", headers=admin_headers)).status_code == 200
    assert await Device.filter(license_key=lic.license_key).count() == 0

    missing = await client.delete(f"/api/v1/admin/devices/{device.id}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "DEVICE_NOT_FOUND"

    audited = await AccessLog.filter(license_key=lic.license_key).values_list("action", flat=True)
    assert {"DEVICE_RENAME", "DEVICE_BLOCK", "DEVICE_UNBLOCK", "DEVICE_DELETE"} <= set(audited)


async def test_logs_and_activity_views(client, admin_headers):
    await activity.record_access("CS-AAAA", "VALIDATE_OK", "10.0.0.1", "device: devA")
    await activity.record_access("CS-BBBB", "VALIDATE_FAIL", "10.0.0.2", "revoked")
    await PluginUsage.create(license_key="CS-AAAA", plugin_name="Anime", action="SEARCH")
    await PlaybackLog.create(license_key="CS-AAAA", plugin_name="Anime", video_title="Movie")

    logs = await client.get("/api/v1/admin/logs", headers=admin_headers, params={"action": "VALIDATE_FAIL"})
    assert logs.json()["data"]["total"] == 1
    assert logs.json()["data"]["items"][0]["details"] == "revoked"

    usage = await client.get("/api/v1/admin/plugin-usage", headers=admin_headers, params={"search": "anime"})
    assert usage.json()["data"]["total"] == 1

    playback = await client.get("/api/v1/admin/playback-logs", headers=admin_headers, params={"search": "movie"})
    assert playback.json()["data"]["items"][0]["video_title"] == "Movie"

    dashboard = await client.get("/api/v1/admin/dashboard", headers=admin_headers)
    data = dashboard.json()["data"]
    assert data["plugin_events"] == 1
    assert data["playbacks"] == 1
    assert data["recent_activity"]


async def test_sessions_view(client, admin_headers, create_license):
    lic = await create_license(name="Bob")
    resp = await client.post(
        "/api/v1/validate",
        json={"key": lic.license_key},
        headers={"X-Forwarded-For": "10.4.4.4"},
    )
    assert resp.json()["success"] is True

    sessions = await client.get("/api/v1/admin/sessions", headers=admin_headers)
    items = sessions.json()["data"]["items"]
    assert items == [{
        "ip": "10.4.4.4",
        "license_key": lic.license_key,
        "license_name": "Bob",
        "status": "active",
        "ttl_minutes": items[0]["ttl_minutes"],
    }]
    assert items[0]["ttl_minutes"] > 0

    dashboard = await client.get("/api/v1/admin/dashboard", headers=admin_headers)
    assert dashboard.json()["data"]["active_sessions"] == 1


async def test_ip_blocklist_management(client, admin_headers):
    created = await client.post(
        "/api/v1/admin/security/blocked-ips",
        headers=admin_headers,
        json={"ip_address": "198.51.100.7", "reason": "scraping"},
    )
    assert created.json()["data"]["created"] is True
    again = await client.post(
        "/api/v1/admin/security/blocked-ips",
        headers=admin_headers,
        json={"ip_address": "198.51.100.7"},
    )
    assert again.json()["data"]["created"] is False

    listing = await client.get("/api/v1/admin/security/blocked-ips", headers=admin_headers)
    assert [r["ip_address"] for r in listing.json()["data"]["items"]] == ["198.51.100.7"]

    await blocklist.record_failed_login("198.51.100.7")
    failed = await client.get("/api/v1/admin/security/failed-logins", headers=admin_headers)
    assert failed.json()["data"]["items"][0]["attempt_count"] == 1

    removed = await client.delete("/api/v1/admin/security/blocked-ips/198.51.100.7", headers=admin_headers)
    assert removed.status_code == 200
    assert not await blocklist.is_ip_blocked("198.51.100.7")
    assert (await blocklist.list_failed_logins()) == []

    missing = await client.delete("/api/v1/admin/security/blocked-ips/198.51.100.7", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "IP_NOT_BLOCKED"


async def test_runtime_settings(client, admin_headers):
    updated = await client.put(
        "/api/v1/admin/settings",
        headers=admin_headers,
        json={"settings": {"server_url": "https://gate.example.com"}},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["settings"]["server_url"] == "https://gate.example.com"

    config = await client.get("/api/v1/config")
    assert config.json()["data"]["server_url"] == "https://gate.example.com"
    assert await AccessLog.filter(action="SETTINGS_UPDATE").count() == 1


async def _seed_activity(lic_a, lic_b):
    await activity.track_plugin_usage(lic_a.license_key, "devA", "Anime", "play", "10.0.0.1")
    await activity.track_plugin_usage(lic_a.license_key, "devA", "Anime", "play", "10.0.0.1")
    await activity.track_plugin_usage(lic_b.license_key, "devB", "Anime", "search", "10.0.0.2")
    await activity.track_plugin_usage(lic_b.license_key, "devB", "Movies", "open", "10.0.0.2")
    await activity.track_playback(lic_a.license_key, "devA", "Anime", "Ep 1", "", "10.0.0.1")
    await activity.track_playback(lic_b.license_key, "devB", "Anime", "Ep 1", "", "10.0.0.2")
    await activity.track_playback(lic_b.license_key, "devB", "Movies", "Film", "DOWNLOAD", "10.0.0.2")


async def test_activity_feed(client, admin_headers, create_license):
    alice = await create_license(name="Alice")
    bob = await create_license(name="Bob")
    await _seed_activity(alice, bob)

    resp = await client.get("/api/v1/admin/activity-feed", headers=admin_headers, params={"minutes": 5})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["count"] == 7
    assert {e["type"] for e in data["items"]} == {"plugin", "playback"}
    timestamps = [e["timestamp"] for e in data["items"]]
    assert timestamps == sorted(timestamps, reverse=True)
    assert {e["license_name"] for e in data["items"]} == {"Alice", "Bob"}
    playback = next(e for e in data["items"] if e["type"] == "playback" and e["video_title"] == "Film")
    assert playback["source_provider"] == "DOWNLOAD"

    limited = await client.get("/api/v1/admin/activity-feed", headers=admin_headers, params={"limit": 3})
    assert limited.json()["data"]["count"] == 3

    too_wide = await client.get("/api/v1/admin/activity-feed", headers=admin_headers, params={"minutes": 5000})
    assert too_wide.status_code == 422


async def test_plugin_analytics(client, admin_headers, create_license):
    alice = await create_license(name="Alice")
    bob = await create_license(name="Bob")
    await _seed_activity(alice, bob)

    resp = await client.get("/api/v1/admin/analytics/plugins", headers=admin_headers, params={"days": 7})
    assert resp.status_code == 200
    data = resp.json()["data"]

    assert data["by_plugin"][0] == {"plugin_name": "Anime", "action": "PLAY", "count": 2}
    users = {row["plugin_name"]: row["unique_users"] for row in data["unique_users"]}
    assert users == {"Anime": 2, "Movies": 1}
    assert data["top_content"][0] == {"video_title": "Ep 1", "plugin_name": "Anime", "play_count": 2}
    assert data["downloads"] == [{"plugin_name": "Movies", "download_count": 1}]
    assert sum(row["count"] for row in data["hourly_pattern"]) == 4
    assert sum(row["count"] for row in data["daily_trends"]) == 4
    assert data["period_days"] == 7


async def test_license_analytics(client, admin_headers, create_license):
    alice = await create_license(name="Alice")
    bob = await create_license(name="Bob")
    await _seed_activity(alice, bob)
    await devices.upsert_device(alice.license_key, "devA", "10.0.0.1", name="Phone")
    await activity.record_access(alice.license_key, "VALIDATE_OK", "10.0.0.1", "device: devA", "devA")

    resp = await client.get(f"/api/v1/admin/analytics/user/{alice.license_key}", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["license"]["name"] == "Alice"
    assert data["license"]["device_count"] == 1
    assert [(u["plugin_name"], u["action"], u["count"]) for u in data["plugin_usage"]] == [("Anime", "PLAY", 2)]
    assert data["plugin_usage"][0]["last_used"]
    assert [p["video_title"] for p in data["playback_history"]] == ["Ep 1"]
    assert data["devices"][0]["device_name"] == "Phone"
    assert data["recent_logs"][0]["action"] == "VALIDATE_OK"

    missing = await client.get("/api/v1/admin/analytics/user/CS-0000-0000-0000-0000", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "LICENSE_NOT_FOUND"
