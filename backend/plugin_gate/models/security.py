# plugin_gate/models/security.py
"""
Security tables: globally blocked IPs and the failed-login counter that feeds
the brute-force guard.
"""
from tortoise import fields, models

class BlockedIp(models.Model):
    id = fields.IntField(pk=True)
    ip_address = fields.CharField(max_length=64, unique=True, index=True)
    reason = fields.CharField(max_length=255, default="")
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "blocked_ips"


class FailedLogin(models.Model):
    id = fields.IntField(pk=True)
    ip_address = fields.CharField(max_length=64, unique=True, index=True)
    attempt_count = fields.IntField(default=1)  # Consecutive failures inside the tracking window
    last_attempt = fields.DatetimeField()

    class Meta:
        table = "failed_logins"
