# plugin_gate/schemas/license.py
"""
Pydantic schemas for license management endpoints.
"""
import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from plugin_gate.config import settings

__all__ = [
    "LicenseCreateIn",
    "LicenseBulkCreateIn",
    "LicenseUpdateIn",
    "LicenseBulkActionIn",
    "LicenseOut",
    "LicenseListOut",
]

class LicenseCreateIn(BaseModel):
    """
    Request model for issuing a single license.
    The key itself is always generated server-side.
    """
    name: str = Field(default="", max_length=255)
    note: str = ""
    duration_days: int = Field(default=settings.default_duration_days, ge=1, le=3650)
    max_devices: int = Field(default=settings.default_max_devices, ge=0)  # 0 = unlimited

class LicenseBulkCreateIn(BaseModel):
    """
    Request model for bulk issuing.
    All keys share duration, device limit and note.
    """
    count: int = Field(ge=1, le=settings.bulk_create_max, description="Number of keys to generate")
    duration_days: int = Field(default=settings.default_duration_days, ge=1, le=3650)
    max_devices: int = Field(default=settings.default_max_devices, ge=0)
    note: str = ""

class LicenseUpdateIn(BaseModel):
    """
    Request model for editing a license.
    All fields are optional - only provided fields will be updated.
    """
    name: Optional[str] = Field(default=None, max_length=255)
    note: Optional[str] = None
    max_devices: Optional[int] = Field(default=None, ge=0)
    expires_at: Optional[dt.datetime] = None  # Naive values are read as UTC
    status: Optional[Literal["active", "revoked", "expired"]] = None

class LicenseBulkActionIn(BaseModel):
    ids: List[int] = Field(min_length=1)
    action: Literal["revoke", "activate", "delete", "force_delete"]

class LicenseOut(BaseModel):
    id: int
    license_key: str
    name: str
    note: str
    status: str
    expires_at: Optional[str] = None
    max_devices: int
    device_count: int = 0
    deleted_at: Optional[str] = None
    created_at: Optional[str] = None

class LicenseListOut(BaseModel):
    items: List[LicenseOut]
    total: int
    page: int
    limit: int
