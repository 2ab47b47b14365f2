# plugin_gate/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Plugin Gate License Server"
    VERSION: str = "2.0.0"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    # CORS origins; the plugin clients call from anywhere, so "*" by default
    CORS_ORIGINS: list[str] = _csv(os.getenv("CORS_ORIGINS", "*"))

    # Storage
    database_url: str = os.getenv("DATABASE_URL", "sqlite://./plugin_gate.db")
    # Upper bound for a single storage call before it is reported as store_unavailable
    store_timeout_seconds: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
    # Create missing tables at startup (always on for SQLite; use Aerich elsewhere)
    generate_schemas: bool = os.getenv("GENERATE_SCHEMAS", "false").lower() in ("1", "true", "yes")

    # IP session cache (fast path for /check-ip)
    ip_session_ttl_seconds: int = int(os.getenv("IP_SESSION_TTL_SECONDS", str(24 * 60 * 60)))
    session_sweep_seconds: int = int(os.getenv("SESSION_SWEEP_SECONDS", str(10 * 60)))

    # Rate limiter buckets are swept on this interval
    rate_limit_sweep_seconds: int = int(os.getenv("RATE_LIMIT_SWEEP_SECONDS", str(5 * 60)))

    # License issuing defaults
    license_key_prefix: str = os.getenv("LICENSE_KEY_PREFIX", "CS")
    default_duration_days: int = int(os.getenv("DEFAULT_DURATION_DAYS", "30"))
    default_max_devices: int = int(os.getenv("DEFAULT_MAX_DEVICES", "2"))
    bulk_create_max: int = int(os.getenv("BULK_CREATE_MAX", "100"))

    # Brute-force guard on the admin login
    login_max_failures: int = int(os.getenv("LOGIN_MAX_FAILURES", "5"))
    login_failure_window_seconds: int = int(os.getenv("LOGIN_FAILURE_WINDOW_SECONDS", str(15 * 60)))

    # Presence heuristic for the dashboard ("online" devices)
    online_window_seconds: int = int(os.getenv("ONLINE_WINDOW_SECONDS", str(5 * 60)))

    # Upstream plugin manifest
    upstream_plugins_url: str = os.getenv(
        "UPSTREAM_PLUGINS_URL",
        "https://raw.githubusercontent.com/Makairamei/CS/builds/plugins.json",
    )
    upstream_timeout_seconds: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "15"))
    public_server_url: str = os.getenv("SERVER_URL", "http://localhost:3000")

settings = Settings()  # Instantiate configuration
