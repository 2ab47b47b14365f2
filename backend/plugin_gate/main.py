# plugin_gate/main.py
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Configuration and DB
from plugin_gate.config import settings
from plugin_gate.core.db import init_db, close_db

from plugin_gate.api.v1.routers import admin, auth, public, repo

from plugin_gate.core.bootstrap import ensure_default_admin
from plugin_gate.core.ip_sessions import IpSessionCache
from plugin_gate.core.rate_limit import SlidingWindowRateLimiter
from plugin_gate.services.admission import AdmissionController
from plugin_gate.services.errors import StoreUnavailableError
from plugin_gate.services.runtime_settings import ensure_default_settings
from plugin_gate.services.store import TortoiseStore

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME, version=settings.VERSION)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Process-wide state: one session cache, one limiter, one admission controller
app.state.ip_sessions = IpSessionCache(ttl_seconds=settings.ip_session_ttl_seconds)
app.state.rate_limiter = SlidingWindowRateLimiter()
app.state.admission = AdmissionController(TortoiseStore(), app.state.ip_sessions)
app.state.started_at = time.monotonic()

@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    # No storage details in the response body
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": {"code": exc.code, "message": "Service temporarily unavailable"}},
    )

@app.on_event("startup")
async def on_startup():
    await init_db()
    # Ensure there's a default admin account on first run
    await ensure_default_admin()
    await ensure_default_settings()
    app.state.started_at = time.monotonic()
    app.state.ip_sessions.start_sweeper(settings.session_sweep_seconds)
    app.state.rate_limiter.start_sweeper(settings.rate_limit_sweep_seconds)
    logger.info("[startup] %s %s ready (env=%s)", settings.APP_NAME, settings.VERSION, settings.env)

@app.on_event("shutdown")
async def on_shutdown():
    await app.state.ip_sessions.stop_sweeper()
    await app.state.rate_limiter.stop_sweeper()
    await close_db()

# REST
app.include_router(public.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")

# Repository URLs handed to clients (no /api prefix)
app.include_router(repo.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
