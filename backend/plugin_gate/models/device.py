# plugin_gate/models/device.py
"""
Database model for devices bound to a license key.
"""
from tortoise import fields, models

class Device(models.Model):
    """
    One bound client installation.

    The natural key is (license_key, device_id). Rows are created lazily on the
    first successful validation from an unseen pair and removed explicitly by an
    admin or together with their license on hard delete.
    """
    id = fields.IntField(pk=True)
    license_key = fields.CharField(max_length=64, index=True)  # Owning license (by key, not FK)
    device_id = fields.CharField(max_length=255, index=True)   # Client-supplied identifier
    device_name = fields.CharField(max_length=255, default="")  # Display name, last write wins
    ip_address = fields.CharField(max_length=64, default="")
    user_agent = fields.CharField(max_length=500, default="")
    is_blocked = fields.BooleanField(default=False)
    first_seen = fields.DatetimeField(auto_now_add=True)  # Set once
    last_seen = fields.DatetimeField(auto_now_add=True)   # Touched on every successful admission

    class Meta:
        table = "devices"
        unique_together = (("license_key", "device_id"),)
