# plugin_gate/models/setting.py
from tortoise import fields, models

class Setting(models.Model):
    """Runtime key/value settings editable from the dashboard (server_url, upstream_plugins_url)."""
    key = fields.CharField(max_length=128, pk=True)
    value = fields.TextField()

    class Meta:
        table = "settings"
