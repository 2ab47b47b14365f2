# plugin_gate/services/store.py
"""
Storage contract consumed by the admission controller, backed by Tortoise ORM.

Every call is bounded by ``timeout`` and reports infrastructure failures as
StoreUnavailableError. ``record_access`` is fire-and-forget: an audit write that
fails is logged and swallowed so it can never change an admission decision.
"""
import logging
from typing import AsyncContextManager, Optional, Protocol

from tortoise.transactions import in_transaction

from plugin_gate.config import settings
from plugin_gate.models import Device, License, LicenseStatus
from plugin_gate.services import activity, blocklist, devices, licenses
from plugin_gate.services.errors import store_call

logger = logging.getLogger("uvicorn.error")


class LicenseStore(Protocol):
    """What the admission controller needs from storage."""

    async def get_license_by_key(self, key: str) -> Optional[License]: ...
    async def get_license_by_id(self, license_id: int) -> Optional[License]: ...
    async def set_license_status(self, license_id: int, status: LicenseStatus) -> None: ...
    async def upsert_device(self, license_key: str, device_id: str, ip: str, name: str = "", user_agent: str = "") -> Device: ...
    async def get_device(self, license_key: str, device_id: str) -> Optional[Device]: ...
    async def count_live_devices(self, license_key: str) -> int: ...
    async def is_ip_blocked(self, ip: str) -> bool: ...
    async def record_access(self, key: str, action: str, ip: str, details: str = "", device_id: str = "") -> None: ...
    def atomic(self) -> AsyncContextManager: ...


class TortoiseStore:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    @store_call("get_license_by_key")
    async def get_license_by_key(self, key: str) -> Optional[License]:
        return await licenses.get_license_by_key(key)

    @store_call("get_license_by_id")
    async def get_license_by_id(self, license_id: int) -> Optional[License]:
        return await licenses.get_license_by_id(license_id)

    @store_call("set_license_status")
    async def set_license_status(self, license_id: int, status: LicenseStatus) -> None:
        await licenses.set_license_status(license_id, status)

    @store_call("upsert_device")
    async def upsert_device(self, license_key: str, device_id: str, ip: str, name: str = "", user_agent: str = "") -> Device:
        return await devices.upsert_device(license_key, device_id, ip, name, user_agent)

    @store_call("get_device")
    async def get_device(self, license_key: str, device_id: str) -> Optional[Device]:
        return await devices.get_device(license_key, device_id)

    @store_call("count_live_devices")
    async def count_live_devices(self, license_key: str) -> int:
        return await devices.count_live_devices(license_key)

    @store_call("is_ip_blocked")
    async def is_ip_blocked(self, ip: str) -> bool:
        return await blocklist.is_ip_blocked(ip)

    async def record_access(self, key: str, action: str, ip: str, details: str = "", device_id: str = "") -> None:
        try:
            await self._write_access(key, action, ip, details, device_id)
        except Exception:
            logger.exception("[access-log] dropped %s entry for %s", action, key or "-")

    @store_call("record_access")
    async def _write_access(self, key: str, action: str, ip: str, details: str, device_id: str) -> None:
        await activity.record_access(key, action, ip, details, device_id)

    def atomic(self) -> AsyncContextManager:
        """Transaction scope for the device check-then-insert."""
        return in_transaction()
