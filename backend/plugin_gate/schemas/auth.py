# plugin_gate/schemas/auth.py
"""
Pydantic schemas for admin authentication endpoints.
"""
from pydantic import BaseModel, Field

__all__ = ["LoginRequest", "AdminOut", "LoginResponse", "ChangePasswordIn"]

class LoginRequest(BaseModel):
    """
    Request model for the admin login endpoint.
    Empty values are rejected by the router with MISSING_CREDENTIALS.
    """
    username: str = ""
    password: str = ""

class AdminOut(BaseModel):
    id: int
    username: str

class LoginResponse(BaseModel):
    """
    Response model for successful login.
    Returns the admin and the access token for subsequent /admin requests.
    """
    admin: AdminOut
    accessToken: str  # JWT access token for API authentication

class ChangePasswordIn(BaseModel):
    currentPassword: str
    newPassword: str = Field(min_length=6)  # New password (minimum 6 characters)
