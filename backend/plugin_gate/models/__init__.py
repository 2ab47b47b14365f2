# plugin_gate/models/__init__.py
"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports throughout the application.

Models exported:
- Admin: dashboard operator account
- License / LicenseStatus: license keys and their lifecycle status
- Device: devices bound to a license key
- BlockedIp / FailedLogin: IP blocklist and brute-force counter
- AccessLog / PluginUsage / PlaybackLog: audit trail and client activity
- Setting: runtime key/value settings
"""
from .admin import Admin
from .license import License, LicenseStatus
from .device import Device
from .security import BlockedIp, FailedLogin
from .activity import AccessLog, PluginUsage, PlaybackLog
from .setting import Setting
