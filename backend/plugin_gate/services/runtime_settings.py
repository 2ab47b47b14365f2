# plugin_gate/services/runtime_settings.py
from typing import Dict, Optional

from plugin_gate.config import settings
from plugin_gate.models import Setting

SERVER_URL = "server_url"
UPSTREAM_PLUGINS_URL = "upstream_plugins_url"


async def get_setting(key: str) -> Optional[str]:
    row = await Setting.get_or_none(key=key)
    return row.value if row else None


async def set_setting(key: str, value) -> None:
    await Setting.update_or_create(defaults={"value": str(value)}, key=key)


async def all_settings() -> Dict[str, str]:
    return {row.key: row.value for row in await Setting.all()}


async def ensure_default_settings() -> None:
    """First-run defaults; existing values are left alone."""
    if await get_setting(SERVER_URL) is None:
        await set_setting(SERVER_URL, settings.public_server_url)


async def server_url() -> str:
    return (await get_setting(SERVER_URL) or settings.public_server_url).rstrip("/")


async def upstream_plugins_url() -> str:
    return await get_setting(UPSTREAM_PLUGINS_URL) or settings.upstream_plugins_url
