# plugin_gate/schemas/security.py
"""
Pydantic schemas for the IP blocklist endpoints.
"""
from pydantic import BaseModel, Field

__all__ = ["BlockIpIn"]

class BlockIpIn(BaseModel):
    ip_address: str = Field(min_length=1, max_length=64)
    reason: str = ""
