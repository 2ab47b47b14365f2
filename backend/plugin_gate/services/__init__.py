"""
Services Module

Storage helpers and domain services of the license server:
- licenses / devices: License Store operations (Tortoise ORM)
- blocklist: IP blocklist and admin brute-force guard
- activity: access log, plugin usage and playback tracking
- runtime_settings: operator-editable key/value settings
- store: bounded, fault-translating storage adapter used by admission
- admission: the Admission Controller (validate / check_session)
- manifest: repo.json generation and upstream plugins.json fetching
- analytics: activity feed, plugin and per-license usage analytics
- columns: fit client strings to model column widths
"""
