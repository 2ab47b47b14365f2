# plugin_gate/models/license.py
"""
Database model for license keys.
A license is the admission unit: a key plus expiry, device ceiling, and status.
"""
from enum import Enum
from tortoise import fields, models


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class License(models.Model):
    """
    License key record.

    - license_key: CS-XXXX-XXXX-XXXX-XXXX, unique, never changes after issue
    - status: cached value of effective_status(); corrected lazily on validation
    - max_devices: 0 means unlimited
    - deleted_at: soft-delete marker; soft-deleted rows never validate
    """
    id = fields.IntField(pk=True)
    license_key = fields.CharField(max_length=64, unique=True, index=True)
    name = fields.CharField(max_length=255, default="")
    status = fields.CharEnumField(LicenseStatus, max_length=16, default=LicenseStatus.ACTIVE, index=True)
    expires_at = fields.DatetimeField()
    max_devices = fields.IntField(default=2)
    note = fields.TextField(default="")
    deleted_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "licenses"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
