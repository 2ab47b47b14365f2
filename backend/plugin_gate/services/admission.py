# plugin_gate/services/admission.py
"""
Admission Controller: decides whether a (license key, IP, device) tuple may use
the plugin repository, and performs the side effects of that decision.

validate() is the full-weight path, run by the initial validation, heartbeat
and repo entry points:

    1. global IP blocklist (loopback exempt)        -> ip_blocked
    2. live license lookup                          -> not_found
    3. revocation                                   -> revoked
    4. expiry, persisting the status correction     -> expired
    5. device admission (only with a device id)     -> device_blocked / max_devices
    6. success: days_left, IP session refreshed

check_session() is the fast path behind /check-ip: it trusts the IP session
cache and only re-checks the license status/expiry, never the devices.

Denials are ordinary return values. Only StoreUnavailableError escapes.
"""
import datetime as dt
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from plugin_gate.core.ip_sessions import IpSession, IpSessionCache
from plugin_gate.core.locks import KeyedLock
from plugin_gate.core.timeutil import as_utc, utc_now
from plugin_gate.models import Device, License, LicenseStatus
from plugin_gate.services.blocklist import is_loopback
from plugin_gate.services.columns import fit
from plugin_gate.services.store import LicenseStore

logger = logging.getLogger("uvicorn.error")

# Values some clients send when they have no device identity
PLACEHOLDER_VALUES = frozenset({"unknown", "null", "undefined", "n/a"})

SECONDS_PER_DAY = 24 * 60 * 60


class DenialCode(str, Enum):
    IP_BLOCKED = "ip_blocked"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    DEVICE_BLOCKED = "device_blocked"
    MAX_DEVICES = "max_devices"
    NO_SESSION = "no_session"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class Outcome:
    allowed: bool
    code: Optional[DenialCode] = None
    license: Optional[License] = None
    device: Optional[Device] = None
    session: Optional[IpSession] = None
    days_left: Optional[int] = None
    current_devices: Optional[int] = None  # set with MAX_DEVICES
    max_devices: Optional[int] = None      # set with MAX_DEVICES

    @classmethod
    def deny(cls, code: DenialCode, **kwargs) -> "Outcome":
        return cls(allowed=False, code=code, **kwargs)


def normalize_device_field(value: Optional[str]) -> str:
    """Trim, and map obvious placeholders ("unknown", "null", ...) to ""."""
    value = (value or "").strip()
    if value.lower() in PLACEHOLDER_VALUES:
        return ""
    return value


def effective_status(lic: License, now: dt.datetime) -> LicenseStatus:
    """
    Authoritative status as a pure function of the stored status and expiry.
    The stored ``status`` column is only a cache of this value.
    """
    if lic.status == LicenseStatus.REVOKED:
        return LicenseStatus.REVOKED
    if now > as_utc(lic.expires_at):
        return LicenseStatus.EXPIRED
    return LicenseStatus.ACTIVE


def days_left(expires_at: dt.datetime, now: dt.datetime) -> int:
    remaining = (as_utc(expires_at) - now).total_seconds()
    return math.ceil(remaining / SECONDS_PER_DAY)


class AdmissionController:
    def __init__(
        self,
        store: LicenseStore,
        sessions: IpSessionCache,
        clock: Callable[[], dt.datetime] = utc_now,
        locks: Optional[KeyedLock] = None,
    ):
        self.store = store
        self.sessions = sessions
        self._clock = clock
        self._locks = locks or KeyedLock()

    # ------------------------------------------------------------------
    # Full path
    # ------------------------------------------------------------------
    async def validate(
        self,
        key: str,
        ip: str = "",
        device_id: Optional[str] = None,
        device_name: Optional[str] = None,
        user_agent: Optional[str] = None,
        source: str = "VALIDATE",
    ) -> Outcome:
        """
        Full admission. ``source`` names the entry point in the access log
        (VALIDATE, HEARTBEAT, REPO) as <source>_OK / <source>_FAIL.
        """
        key = (key or "").strip()
        ip = fit(Device, "ip_address", (ip or "").strip())
        device_id = fit(Device, "device_id", normalize_device_field(device_id))
        device_name = fit(Device, "device_name", normalize_device_field(device_name))
        user_agent = fit(Device, "user_agent", (user_agent or "").strip())

        outcome = await self._admit(key, ip, device_id, device_name, user_agent)

        if outcome.allowed:
            if ip:
                self.sessions.put(ip, key)
            await self.store.record_access(key, f"{source}_OK", ip, f"device: {device_id}", device_id)
        else:
            await self.store.record_access(key, f"{source}_FAIL", ip, outcome.code.value, device_id)
        return outcome

    async def _admit(self, key: str, ip: str, device_id: str, device_name: str, user_agent: str) -> Outcome:
        if await self._ip_blocked(ip):
            return Outcome.deny(DenialCode.IP_BLOCKED)

        if not key:
            return Outcome.deny(DenialCode.NOT_FOUND)
        lic = await self.store.get_license_by_key(key)
        if lic is None:
            return Outcome.deny(DenialCode.NOT_FOUND)

        now = self._clock()
        status = await self._settle_status(lic, now)
        if status == LicenseStatus.REVOKED:
            return Outcome.deny(DenialCode.REVOKED, license=lic)
        if status == LicenseStatus.EXPIRED:
            return Outcome.deny(DenialCode.EXPIRED, license=lic)

        device = None
        if device_id:
            # Count-then-insert must not interleave with another first-time
            # registration on the same license.
            async with self._locks.hold(key):
                async with self.store.atomic():
                    existing = await self.store.get_device(key, device_id)
                    if existing is not None:
                        if existing.is_blocked:
                            return Outcome.deny(DenialCode.DEVICE_BLOCKED, license=lic, device=existing)
                    else:
                        live = await self.store.count_live_devices(key)
                        if lic.max_devices > 0 and live >= lic.max_devices:
                            return Outcome.deny(
                                DenialCode.MAX_DEVICES,
                                license=lic,
                                current_devices=live,
                                max_devices=lic.max_devices,
                            )
                    device = await self.store.upsert_device(key, device_id, ip, device_name, user_agent)

        return Outcome(allowed=True, license=lic, device=device, days_left=days_left(lic.expires_at, now))

    # ------------------------------------------------------------------
    # Fast path
    # ------------------------------------------------------------------
    async def check_session(self, ip: str) -> Outcome:
        ip = fit(Device, "ip_address", (ip or "").strip())
        if await self._ip_blocked(ip):
            return Outcome.deny(DenialCode.IP_BLOCKED)

        session = self.sessions.get(ip) if ip else None
        if session is None:
            return Outcome.deny(DenialCode.NO_SESSION)

        lic = await self.store.get_license_by_key(session.license_key)
        if lic is None:
            self.sessions.evict(ip)
            return Outcome.deny(DenialCode.NOT_FOUND)

        now = self._clock()
        status = await self._settle_status(lic, now)
        if status == LicenseStatus.REVOKED:
            self.sessions.evict(ip)
            return Outcome.deny(DenialCode.REVOKED, license=lic)
        if status == LicenseStatus.EXPIRED:
            self.sessions.evict(ip)
            return Outcome.deny(DenialCode.EXPIRED, license=lic)

        return Outcome(allowed=True, license=lic, session=session, days_left=days_left(lic.expires_at, now))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _ip_blocked(self, ip: str) -> bool:
        if not ip or is_loopback(ip):
            return False
        return await self.store.is_ip_blocked(ip)

    async def _settle_status(self, lic: License, now: dt.datetime) -> LicenseStatus:
        """Compute the effective status and write it back when the stored value drifted."""
        status = effective_status(lic, now)
        if status != lic.status:
            logger.info("[admission] %s status %s -> %s", lic.license_key, lic.status.value, status.value)
            await self.store.set_license_status(lic.id, status)
            lic.status = status
        return status
