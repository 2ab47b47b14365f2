# plugin_gate/schemas/settings.py
from typing import Dict

from pydantic import BaseModel

__all__ = ["SettingsUpdateIn"]

class SettingsUpdateIn(BaseModel):
    """Key/value pairs to upsert; values are stored as strings."""
    settings: Dict[str, str]
