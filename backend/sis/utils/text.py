"""Small helpers for cleaning user-supplied text."""

from __future__ import annotations

from typing import Any


def clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


__all__ = ["clean_string"]
