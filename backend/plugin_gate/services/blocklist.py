# plugin_gate/services/blocklist.py
"""
IP blocklist and the brute-force guard of the admin login.

Loopback addresses are never reported as blocked so a misfired block cannot
lock the operator out of a local dashboard.
"""
import datetime as dt
import logging
from typing import List, Optional

from tortoise.exceptions import IntegrityError

from plugin_gate.config import settings
from plugin_gate.core.timeutil import as_utc, utc_now
from plugin_gate.models import BlockedIp, FailedLogin
from plugin_gate.services.columns import fit

logger = logging.getLogger("uvicorn.error")

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1", "localhost"})
BRUTE_FORCE_REASON = "Brute force: too many failed login attempts"


def is_loopback(ip: str) -> bool:
    return ip in LOOPBACK_ADDRESSES


async def is_ip_blocked(ip: str) -> bool:
    if not ip or is_loopback(ip):
        return False
    return await BlockedIp.filter(ip_address=ip).exists()


async def block_ip(ip: str, reason: str = "") -> bool:
    """Idempotent; returns True when a new entry was written."""
    if await BlockedIp.filter(ip_address=ip).exists():
        return False
    try:
        await BlockedIp.create(ip_address=ip, reason=fit(BlockedIp, "reason", reason))
    except IntegrityError:
        # Lost a race with a concurrent block of the same IP
        return False
    logger.warning("[blocklist] blocked %s (%s)", ip, reason or "no reason")
    return True


async def unblock_ip(ip: str) -> bool:
    deleted = await BlockedIp.filter(ip_address=ip).delete()
    if deleted:
        logger.info("[blocklist] unblocked %s", ip)
    return bool(deleted)


async def list_blocked_ips() -> List[BlockedIp]:
    return await BlockedIp.all().order_by("-created_at", "-id")


# ---------------------------------------------------------------------------
# Brute-force guard (admin login only; independent of license admission)
# ---------------------------------------------------------------------------
async def record_failed_login(
    ip: str,
    max_failures: Optional[int] = None,
    window_seconds: Optional[int] = None,
) -> int:
    """
    Count one failed login for ``ip``. A failure after the tracking window has
    elapsed starts a new count. Reaching ``max_failures`` blocks the IP.
    Returns the current consecutive count.
    """
    ip = fit(FailedLogin, "ip_address", ip)
    max_failures = max_failures or settings.login_max_failures
    window = dt.timedelta(seconds=window_seconds or settings.login_failure_window_seconds)
    now = utc_now()

    row = await FailedLogin.get_or_none(ip_address=ip)
    if row is None:
        try:
            row = await FailedLogin.create(ip_address=ip, attempt_count=1, last_attempt=now)
        except IntegrityError:
            row = await FailedLogin.get(ip_address=ip)
            row.attempt_count += 1
            row.last_attempt = now
            await row.save(update_fields=["attempt_count", "last_attempt"])
    else:
        last = as_utc(row.last_attempt)
        row.attempt_count = 1 if last is None or now - last > window else row.attempt_count + 1
        row.last_attempt = now
        await row.save(update_fields=["attempt_count", "last_attempt"])

    if row.attempt_count >= max_failures:
        await block_ip(ip, BRUTE_FORCE_REASON)
    return row.attempt_count


async def clear_failed_logins(ip: str) -> None:
    await FailedLogin.filter(ip_address=ip).delete()


async def list_failed_logins(limit: int = 100) -> List[FailedLogin]:
    return await FailedLogin.all().order_by("-last_attempt").limit(limit)
