"""Shared helpers for provider implementations."""

from __future__ import annotations

import re
from typing import Any, Optional, Tuple

import httpx

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.*)$", re.DOTALL)


def split_data_uri(url: str) -> Optional[Tuple[str, str]]:
    """Return (mime type, base64 payload) for a base64 `data:` URI, else None."""
    match = _DATA_URI_RE.match(url)
    if not match:
        return None
    return match.group("mime"), match.group("data")


def response_text(response: Any) -> str:
    """Best-effort body text of an HTTP response attached to an error."""
    if response is None:
        return ""
    try:
        return response.text
    except httpx.ResponseNotRead:
        return ""


__all__ = ["split_data_uri", "response_text"]
