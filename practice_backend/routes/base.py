from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from practice_backend.services.time_intervals import normalize_time


class CamelModel(BaseModel):
    """Accepts and returns the camelCase field names the web client sends."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def clean_time(value: str | None) -> str | None:
    if value is None:
        return None
    return normalize_time(value)


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None
