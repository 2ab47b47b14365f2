# plugin_gate/api/v1/deps.py
import math

from fastapi import Header, HTTPException, Request, status
from plugin_gate.core.security import decode_access_token
from plugin_gate.models import Admin, BlockedIp
from plugin_gate.services.admission import AdmissionController
from plugin_gate.services.columns import fit

def client_ip(request: Request) -> str:
    """
    Client address as seen by the license logic.

    The first hop of X-Forwarded-For wins (the server normally runs behind a
    reverse proxy); otherwise the socket peer address. Cut to the width of
    the ip_address columns so session, blocklist and log keys agree.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if not first and request.client:
        first = request.client.host
    return fit(BlockedIp, "ip_address", first)

def get_admission(request: Request) -> AdmissionController:
    return request.app.state.admission

def rate_limit(bucket: str, max_requests: int, window_seconds: float):
    """
    Dependency factory: sliding-window limit per (client IP, bucket).

    Usage:
        @router.post("/validate", dependencies=[Depends(rate_limit("validate", 30, 60))])
    """
    async def dependency(request: Request) -> None:
        limiter = request.app.state.rate_limiter
        decision = limiter.hit(f"{client_ip(request)}:{bucket}", max_requests, window_seconds)
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"code": "RATE_LIMITED", "message": "Too many requests"},
                headers={"Retry-After": str(max(1, math.ceil(decision.retry_after)))},
            )
    return dependency

async def get_current_admin(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Admin:
    """
    FastAPI dependency to get the authenticated dashboard operator.

    This dependency extracts and validates the JWT token from either:
    1. Authorization header (Bearer token) - preferred method
    2. HttpOnly cookie (accessToken) - fallback method

    Raises:
        HTTPException (401): If no token is provided (AUTH_REQUIRED)
        HTTPException (401): If token is invalid or expired (AUTH_INVALID_TOKEN)
        HTTPException (401): If the admin no longer exists (AUTH_USER_NOT_FOUND)
    """
    token = None
    # 1) Prioritize Authorization: Bearer xxx
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    # 2) Secondly HttpOnly Cookie: accessToken
    if not token:
        token = request.cookies.get("accessToken")

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")

    try:
        payload = decode_access_token(token)
        admin_id = int(payload.get("sub"))
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_INVALID_TOKEN")

    admin = await Admin.get_or_none(id=admin_id)
    if not admin:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_USER_NOT_FOUND")
    return admin
