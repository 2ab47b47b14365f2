# plugin_gate/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Application initialization and default admin creation
- db: Database configuration and connection management
- security: Password hashing and admin JWTs
- ip_sessions: In-memory IP session cache
- rate_limit: Sliding-window request limiter
- locks: Per-key asyncio locks
- timeutil: UTC helpers
"""
