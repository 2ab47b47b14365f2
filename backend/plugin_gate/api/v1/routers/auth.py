# plugin_gate/api/v1/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from plugin_gate.api.v1.deps import client_ip, get_current_admin, rate_limit
from plugin_gate.core.security import create_access_token, hash_password, verify_password
from plugin_gate.models import Admin
from plugin_gate.schemas.auth import ChangePasswordIn, LoginRequest
from plugin_gate.services import activity, blocklist

router = APIRouter(prefix="/auth", tags=["auth"])

def _admin_to_dict(a: Admin) -> dict:
    return {"id": a.id, "username": a.username}

@router.post("/login", dependencies=[Depends(rate_limit("login", 20, 300))])
async def login(payload: LoginRequest, request: Request, response: Response):
    """
    Authenticate a dashboard operator and create an access token.

    Every failed attempt is counted against the caller's IP; the brute-force
    guard blocks the IP once too many failures pile up inside the tracking
    window. A blocked IP cannot log in at all. A successful login clears the
    counter.

    Returns:
        dict: success + data (admin, accessToken). The token is also set as an
        HttpOnly cookie named "accessToken".

    Raises:
        HTTPException (400): MISSING_CREDENTIALS
        HTTPException (403): IP_BLOCKED
        HTTPException (401): AUTH_INVALID_CREDENTIALS
    """
    ip = client_ip(request)
    if not payload.username or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"code": "MISSING_CREDENTIALS", "message": "username/password required"})

    if await blocklist.is_ip_blocked(ip):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail={"code": "IP_BLOCKED", "message": "IP blocked"})

    admin = await Admin.get_or_none(username=payload.username)
    if not admin or not verify_password(payload.password, admin.password_hash):
        await blocklist.record_failed_login(ip)
        await activity.record_access("", "LOGIN_FAIL", ip, f"username: {payload.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Incorrect username or password"})

    await blocklist.clear_failed_logins(ip)
    token = create_access_token(str(admin.id), admin.username)
    await activity.record_access("", "LOGIN_OK", ip, f"admin: {admin.username}")
    response.set_cookie("accessToken", token, httponly=True, secure=False, samesite="lax")
    return {"success": True, "data": {"admin": _admin_to_dict(admin), "accessToken": token}}

@router.get("/me")
async def me(admin: Admin = Depends(get_current_admin)):
    return {"success": True, "data": _admin_to_dict(admin)}

@router.post("/logout")
async def logout(response: Response):
    """Clears the cookie only; the JWT itself stays valid until it expires."""
    response.delete_cookie("accessToken")
    return {"success": True}

@router.put("/password")
async def change_password(body: ChangePasswordIn, request: Request, admin: Admin = Depends(get_current_admin)):
    """
    Change the password of the logged-in operator.

    Raises:
        HTTPException (400): AUTH_INVALID_CREDENTIALS when currentPassword is wrong
    """
    if not verify_password(body.currentPassword, admin.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Current password is incorrect"})
    admin.password_hash = hash_password(body.newPassword)
    await admin.save(update_fields=["password_hash"])
    await activity.record_access("", "PASSWORD_CHANGE", client_ip(request), f"admin: {admin.username}")
    return {"success": True, "data": {"ok": True}}
