"""
Unit tests for services.blocklist: IP blocklist and the brute-force guard.
"""
import datetime as dt

import pytest

from plugin_gate.core.timeutil import utc_now
from plugin_gate.models import BlockedIp, FailedLogin
from plugin_gate import unblock
from plugin_gate.services import blocklist


pytestmark = pytest.mark.asyncio


async def test_block_is_idempotent(db):
    assert await blocklist.block_ip("203.0.113.1", "spam") is True
    assert await blocklist.block_ip("203.0.113.1", "again") is False
    assert await BlockedIp.filter(ip_address="203.0.113.1").count() == 1
    assert await blocklist.is_ip_blocked("203.0.113.1") is True


async def test_unblock(db):
    await blocklist.block_ip("203.0.113.1")
    assert await blocklist.unblock_ip("203.0.113.1") is True
    assert await blocklist.unblock_ip("203.0.113.1") is False
    assert await blocklist.is_ip_blocked("203.0.113.1") is False


@pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "localhost", ""])
async def test_loopback_and_empty_are_never_blocked(db, ip):
    if ip:
        await blocklist.block_ip(ip)
    assert await blocklist.is_ip_blocked(ip) is False


async def test_fifth_failure_blocks_ip(db):
    for attempt in range(1, 5):
        assert await blocklist.record_failed_login("198.51.100.9") == attempt
        assert await blocklist.is_ip_blocked("198.51.100.9") is False

    assert await blocklist.record_failed_login("198.51.100.9") == 5
    entry = await BlockedIp.get(ip_address="198.51.100.9")
    assert entry.reason == blocklist.BRUTE_FORCE_REASON


async def test_failure_outside_window_restarts_count(db):
    for _ in range(4):
        await blocklist.record_failed_login("198.51.100.9")
    await FailedLogin.filter(ip_address="198.51.100.9").update(last_attempt=utc_now() - dt.timedelta(minutes=16))

    assert await blocklist.record_failed_login("198.51.100.9") == 1
    assert await blocklist.is_ip_blocked("198.51.100.9") is False


async def test_success_clears_counter(db):
    for _ in range(4):
        await blocklist.record_failed_login("198.51.100.9")
    await blocklist.clear_failed_logins("198.51.100.9")
    assert await blocklist.record_failed_login("198.51.100.9") == 1


async def test_list_failed_logins(db):
    await blocklist.record_failed_login("198.51.100.1")
    await blocklist.record_failed_login("198.51.100.2")
    rows = await blocklist.list_failed_logins()
    assert {r.ip_address for r in rows} == {"198.51.100.1", "198.51.100.2"}


async def test_unblock_command_releases_every_ip(db, capsys):
    await blocklist.block_ip("203.0.113.1", "manual")
    await blocklist.block_ip("203.0.113.2", "manual")
    await blocklist.record_failed_login("203.0.113.2")

    released = await unblock.unblock()

    assert sorted(released) == ["203.0.113.1", "203.0.113.2"]
    assert await blocklist.list_blocked_ips() == []
    assert await blocklist.list_failed_logins() == []
    assert "[OK] unblocked: 203.0.113.1" in capsys.readouterr().out


async def test_unblock_command_skips_unknown_ip(db, capsys):
    await blocklist.block_ip("203.0.113.1", "manual")

    assert await unblock.unblock(["198.51.100.9"]) == []
    assert await blocklist.is_ip_blocked("203.0.113.1")
    assert "[SKIP] not blocked: 198.51.100.9" in capsys.readouterr().out
