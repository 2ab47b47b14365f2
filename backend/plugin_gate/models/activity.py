# plugin_gate/models/activity.py
"""
Append-only activity tables: the audit trail (access logs) and the plugin
usage / playback events reported by clients.
"""
from tortoise import fields, models

class AccessLog(models.Model):
    """Admission decisions and administrative actions (VALIDATE_OK, LICENSE_REVOKE, ...)."""
    id = fields.IntField(pk=True)
    license_key = fields.CharField(max_length=64, default="", index=True)
    device_id = fields.CharField(max_length=255, default="")
    action = fields.CharField(max_length=64, index=True)
    ip_address = fields.CharField(max_length=64, default="")
    details = fields.TextField(default="")
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "access_logs"


class PluginUsage(models.Model):
    id = fields.IntField(pk=True)
    license_key = fields.CharField(max_length=64, index=True)
    device_id = fields.CharField(max_length=255, default="")
    plugin_name = fields.CharField(max_length=255)
    action = fields.CharField(max_length=32, default="OPEN")
    ip_address = fields.CharField(max_length=64, default="")
    used_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "plugin_usage"


class PlaybackLog(models.Model):
    id = fields.IntField(pk=True)
    license_key = fields.CharField(max_length=64, index=True)
    device_id = fields.CharField(max_length=255, default="")
    plugin_name = fields.CharField(max_length=255)
    video_title = fields.CharField(max_length=500)
    source_provider = fields.CharField(max_length=255, default="")  # "DOWNLOAD" marks downloads
    ip_address = fields.CharField(max_length=64, default="")
    played_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "playback_logs"
