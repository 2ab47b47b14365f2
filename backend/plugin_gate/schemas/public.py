# plugin_gate/schemas/public.py
"""
Pydantic schemas for the endpoints called by the client plugins.

Every string field is trimmed and truncated to 500 characters; missing fields
default to "" so the routers can answer with a business error instead of a 422.
"""
from typing import Annotated

from pydantic import BaseModel, BeforeValidator

__all__ = ["ValidateIn", "HeartbeatIn", "TrackPluginIn", "TrackPlaybackIn", "MAX_FIELD_LENGTH", "clean_input"]

MAX_FIELD_LENGTH = 500


def clean_input(value) -> str:
    """Trim and truncate; anything that is not a string becomes "". Storage cuts further to the column width."""
    if not isinstance(value, str):
        return ""
    return value.strip()[:MAX_FIELD_LENGTH]


CleanStr = Annotated[str, BeforeValidator(clean_input)]


class ValidateIn(BaseModel):
    key: CleanStr = ""
    device_id: CleanStr = ""
    device_name: CleanStr = ""


class HeartbeatIn(BaseModel):
    key: CleanStr = ""
    device_id: CleanStr = ""


class TrackPluginIn(BaseModel):
    key: CleanStr = ""
    device_id: CleanStr = ""
    plugin_name: CleanStr = ""
    action: CleanStr = "OPEN"


class TrackPlaybackIn(BaseModel):
    key: CleanStr = ""
    device_id: CleanStr = ""
    plugin_name: CleanStr = ""
    video_title: CleanStr = ""
    source_provider: CleanStr = ""  # "DOWNLOAD" marks a download instead of a stream
