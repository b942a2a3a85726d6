"""Base model shared by pycctv data models.

Every model rejects unknown fields and strips surrounding whitespace
from string values, since UPnP description documents are frequently
pretty-printed with the identifiers on their own indented lines.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


def xml_text(value: Any) -> str | None:
    """Return the text content of an ``xmltodict`` node.

    Elements carrying attributes come back as ``{"@attr": ..., "#text": ...}``
    and empty elements as ``None``.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("#text")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def as_list(value: Any) -> list[Any]:
    """Normalize an ``xmltodict`` repeated element to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class CctvBaseModel(BaseModel):
    """Base for pycctv models."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
    )
