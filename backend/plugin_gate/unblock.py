import asyncio
import sys
from typing import List, Sequence

from plugin_gate.core.db import init_db, close_db
from plugin_gate.services import blocklist


async def unblock(ips: Sequence[str] = ()) -> List[str]:
    """
    Remove blocklist entries and failed-login counters.
    With no IPs, every blocked IP is released. Returns the IPs unblocked.
    """
    targets = [ip.strip() for ip in ips if ip.strip()]
    if not targets:
        targets = [b.ip_address for b in await blocklist.list_blocked_ips()]

    released = []
    for ip in targets:
        if await blocklist.unblock_ip(ip):
            released.append(ip)
            print(f"[OK] unblocked: {ip}")
        else:
            print(f"[SKIP] not blocked: {ip}")
        await blocklist.clear_failed_logins(ip)
    return released


async def _run(ips: Sequence[str]) -> None:
    await init_db()
    try:
        released = await unblock(ips)
        print(f"{len(released)} IP(s) unblocked.")
    finally:
        await close_db()


def main():
    if any(arg in ("-h", "--help") for arg in sys.argv[1:]):
        print("Usage: python -m plugin_gate.unblock [IP1 IP2 ...]   (no IP: unblock all)")
        sys.exit(0)
    asyncio.run(_run(sys.argv[1:]))


if __name__ == "__main__":
    main()
