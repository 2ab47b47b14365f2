# plugin_gate/models/admin.py
"""
Database model for dashboard operators.
Admins are the only authenticated principals; license holders never log in.
"""
from tortoise import fields, models

class Admin(models.Model):
    """
    Admin account.

    Security:
    - Password is stored as an Argon2 hash (never plain text)
    - Username must be unique
    """
    id = fields.IntField(pk=True)
    username = fields.CharField(max_length=64, unique=True, index=True)  # Login name
    password_hash = fields.CharField(max_length=255)  # Argon2 hash
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "admins"
