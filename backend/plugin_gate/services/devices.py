# plugin_gate/services/devices.py
"""
Device Registry: devices bound to license keys.
"""
import datetime as dt
from dataclasses import dataclass
from typing import List, Optional

from tortoise.expressions import Q

from plugin_gate.config import settings
from plugin_gate.core.timeutil import utc_now
from plugin_gate.models import Device
from plugin_gate.services.columns import fit


async def get_device(license_key: str, device_id: str) -> Optional[Device]:
    device_id = fit(Device, "device_id", device_id)
    return await Device.get_or_none(license_key=license_key, device_id=device_id)


async def upsert_device(
    license_key: str,
    device_id: str,
    ip: str,
    name: str = "",
    user_agent: str = "",
) -> Device:
    """
    Create the (license_key, device_id) row, or touch the existing one:
    last_seen and ip_address always, name and user agent only when supplied.
    first_seen and is_blocked are never changed here.
    """
    device_id = fit(Device, "device_id", device_id)
    ip = fit(Device, "ip_address", ip)
    name = fit(Device, "device_name", name)
    user_agent = fit(Device, "user_agent", user_agent)
    now = utc_now()
    device = await Device.get_or_none(license_key=license_key, device_id=device_id)
    if device is None:
        return await Device.create(
            license_key=license_key,
            device_id=device_id,
            device_name=name,
            ip_address=ip,
            user_agent=user_agent,
            first_seen=now,
            last_seen=now,
        )

    device.last_seen = now
    device.ip_address = ip
    update_fields = ["last_seen", "ip_address"]
    if name:
        device.device_name = name
        update_fields.append("device_name")
    if user_agent:
        device.user_agent = user_agent
        update_fields.append("user_agent")
    await device.save(update_fields=update_fields)
    return device


async def count_live_devices(license_key: str) -> int:
    """Devices that consume the license's quota: blocked devices do not."""
    return await Device.filter(license_key=license_key, is_blocked=False).count()


async def list_devices_for_license(license_key: str) -> List[Device]:
    return await Device.filter(license_key=license_key).order_by("-last_seen")


@dataclass
class DevicePage:
    items: List[Device]
    total: int
    page: int
    limit: int


async def list_devices(page: int = 1, limit: int = 20, search: str = "") -> DevicePage:
    qs = Device.all()
    if search:
        qs = qs.filter(
            Q(device_id__icontains=search)
            | Q(device_name__icontains=search)
            | Q(license_key__icontains=search)
            | Q(ip_address__icontains=search)
        )
    total = await qs.count()
    rows = await qs.order_by("-last_seen", "-id").offset((page - 1) * limit).limit(limit)
    return DevicePage(items=rows, total=total, page=page, limit=limit)


async def list_online_devices(window_seconds: Optional[int] = None) -> List[Device]:
    """Presence heuristic for the dashboard only; admission never looks at this."""
    window = window_seconds if window_seconds is not None else settings.online_window_seconds
    since = utc_now() - dt.timedelta(seconds=window)
    return await Device.filter(last_seen__gte=since).order_by("-last_seen")


async def set_device_blocked(device_pk: int, blocked: bool) -> int:
    return await Device.filter(id=device_pk).update(is_blocked=blocked)


async def rename_device(device_pk: int, name: str) -> int:
    return await Device.filter(id=device_pk).update(device_name=fit(Device, "device_name", name))


async def delete_device(device_pk: int) -> int:
    return await Device.filter(id=device_pk).delete()


async def device_counts() -> dict:
    since = utc_now() - dt.timedelta(seconds=settings.online_window_seconds)
    return {
        "total": await Device.all().count(),
        "blocked": await Device.filter(is_blocked=True).count(),
        "online": await Device.filter(last_seen__gte=since).count(),
    }
