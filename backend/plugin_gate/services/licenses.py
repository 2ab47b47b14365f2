# plugin_gate/services/licenses.py
"""
License Store: issuing, listing, editing and deleting license keys.

Keys look like CS-07A1-9F2E-B3C4-11D0: a short prefix followed by four segments
of two cryptographically random bytes in uppercase hex. The UNIQUE constraint on
``licenses.license_key`` is the real uniqueness guarantee; a colliding insert
raises tortoise's IntegrityError instead of overwriting anything.
"""
import datetime as dt
import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

from tortoise.expressions import Q
from tortoise.functions import Count
from tortoise.transactions import in_transaction

from plugin_gate.config import settings
from plugin_gate.core.timeutil import utc_now
from plugin_gate.models import AccessLog, Device, License, LicenseStatus, PlaybackLog, PluginUsage

logger = logging.getLogger("uvicorn.error")

KEY_SEGMENTS = 4
SEGMENT_BYTES = 2


def generate_key(prefix: Optional[str] = None) -> str:
    prefix = (prefix or settings.license_key_prefix).strip().upper()
    segments = [secrets.token_hex(SEGMENT_BYTES).upper() for _ in range(KEY_SEGMENTS)]
    return "-".join([prefix, *segments])


async def create_license(
    duration_days: int,
    max_devices: int,
    name: str = "",
    note: str = "",
    key: Optional[str] = None,
) -> License:
    expires_at = utc_now() + dt.timedelta(days=duration_days)
    lic = await License.create(
        license_key=key or generate_key(),
        name=name,
        note=note,
        status=LicenseStatus.ACTIVE,
        expires_at=expires_at,
        max_devices=max_devices,
    )
    logger.info("[licenses] created %s (days=%d, max_devices=%d)", lic.license_key, duration_days, max_devices)
    return lic


async def create_bulk_licenses(count: int, duration_days: int, max_devices: int, note: str = "") -> List[License]:
    """Create ``count`` licenses sharing duration, device limit and note, all or nothing."""
    expires_at = utc_now() + dt.timedelta(days=duration_days)
    created: List[License] = []
    async with in_transaction():
        for _ in range(count):
            created.append(await License.create(
                license_key=generate_key(),
                status=LicenseStatus.ACTIVE,
                expires_at=expires_at,
                max_devices=max_devices,
                note=note,
            ))
    logger.info("[licenses] bulk-created %d license(s)", len(created))
    return created


async def get_license_by_key(key: str) -> Optional[License]:
    """Live (not soft-deleted) license for a key."""
    return await License.get_or_none(license_key=key, deleted_at__isnull=True)


async def get_license_by_id(license_id: int) -> Optional[License]:
    """Any license row, soft-deleted included (admin views)."""
    return await License.get_or_none(id=license_id)


@dataclass
class LicensePage:
    items: List[License]
    device_counts: dict
    total: int
    page: int
    limit: int


async def list_licenses(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    status: Optional[LicenseStatus] = None,
    trashed: bool = False,
) -> LicensePage:
    qs = License.filter(deleted_at__isnull=not trashed)
    if search:
        qs = qs.filter(Q(license_key__icontains=search) | Q(name__icontains=search) | Q(note__icontains=search))
    if status is not None:
        qs = qs.filter(status=status)

    total = await qs.count()
    rows = await qs.order_by("-created_at", "-id").offset((page - 1) * limit).limit(limit)

    counts = {}
    if rows:
        grouped = (
            await Device.filter(license_key__in=[r.license_key for r in rows])
            .annotate(c=Count("id"))
            .group_by("license_key")
            .values("license_key", "c")
        )
        counts = {g["license_key"]: g["c"] for g in grouped}
    return LicensePage(items=rows, device_counts=counts, total=total, page=page, limit=limit)


async def update_license(
    license_id: int,
    name: Optional[str] = None,
    note: Optional[str] = None,
    max_devices: Optional[int] = None,
    expires_at: Optional[dt.datetime] = None,
    status: Optional[LicenseStatus] = None,
) -> int:
    fields = {}
    if name is not None:
        fields["name"] = name
    if note is not None:
        fields["note"] = note
    if max_devices is not None:
        fields["max_devices"] = max_devices
    if expires_at is not None:
        fields["expires_at"] = expires_at
    if status is not None:
        fields["status"] = status
    if not fields:
        return 0
    return await License.filter(id=license_id).update(**fields)


async def set_license_status(license_id: int, status: LicenseStatus) -> int:
    return await License.filter(id=license_id).update(status=status)


async def soft_delete_license(license_id: int) -> int:
    return await License.filter(id=license_id, deleted_at__isnull=True).update(deleted_at=utc_now())


async def restore_license(license_id: int) -> int:
    return await License.filter(id=license_id).update(deleted_at=None)


async def hard_delete_license(license_id: int) -> bool:
    """Irreversible: removes the license with its devices and every log row for its key."""
    lic = await License.get_or_none(id=license_id)
    if lic is None:
        return False
    key = lic.license_key
    async with in_transaction():
        await Device.filter(license_key=key).delete()
        await PluginUsage.filter(license_key=key).delete()
        await PlaybackLog.filter(license_key=key).delete()
        await AccessLog.filter(license_key=key).delete()
        await License.filter(id=license_id).delete()
    logger.info("[licenses] hard-deleted %s", key)
    return True


async def license_details(license_id: int, recent: int = 50) -> Optional[dict]:
    lic = await License.get_or_none(id=license_id)
    if lic is None:
        return None
    key = lic.license_key
    return {
        "license": lic,
        "devices": await Device.filter(license_key=key).order_by("-last_seen"),
        "recent_logs": await AccessLog.filter(license_key=key).order_by("-created_at", "-id").limit(recent),
        "plugin_usage": await PluginUsage.filter(license_key=key).order_by("-used_at", "-id").limit(recent),
        "playback_logs": await PlaybackLog.filter(license_key=key).order_by("-played_at", "-id").limit(recent),
    }


async def license_counts() -> dict:
    live = License.filter(deleted_at__isnull=True)
    return {
        "total": await live.count(),
        "active": await License.filter(deleted_at__isnull=True, status=LicenseStatus.ACTIVE).count(),
        "expired": await License.filter(deleted_at__isnull=True, status=LicenseStatus.EXPIRED).count(),
        "revoked": await License.filter(deleted_at__isnull=True, status=LicenseStatus.REVOKED).count(),
        "trashed": await License.filter(deleted_at__isnull=False).count(),
    }
