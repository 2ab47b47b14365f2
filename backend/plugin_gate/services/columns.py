# plugin_gate/services/columns.py
"""
Fit client-supplied strings to the width of the column they are stored in.

Client plugins send free text (device names, titles, forwarded IPs...). It is
truncated here, against the model's own ``max_length``, so an over-long value
is stored shortened instead of failing tortoise's field validation.
"""
from typing import Optional, Type

from tortoise.models import Model


def column_width(model: Type[Model], field: str) -> Optional[int]:
    """``max_length`` of a CharField, None for unbounded columns."""
    return getattr(model._meta.fields_map[field], "max_length", None)


def fit(model: Type[Model], field: str, value: Optional[str]) -> str:
    value = value or ""
    width = column_width(model, field)
    return value[:width] if width else value
