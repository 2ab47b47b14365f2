# plugin_gate/schemas/device.py
"""
Pydantic schemas for device management endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

__all__ = ["DeviceRenameIn", "DeviceOut", "DeviceListOut"]

class DeviceRenameIn(BaseModel):
    device_name: str = Field(max_length=255)

class DeviceOut(BaseModel):
    id: int
    license_key: str
    device_id: str
    device_name: str
    ip_address: str
    user_agent: str
    is_blocked: bool
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None

class DeviceListOut(BaseModel):
    items: List[DeviceOut]
    total: int
    page: int
    limit: int
