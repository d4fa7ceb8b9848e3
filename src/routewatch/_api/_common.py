"""Shared helpers for provider endpoint modules.

This module centralizes the most repeated patterns:
- mapping provider status codes onto the exception hierarchy
- reading ``{"value": .., "text": ..}`` measurement objects
- turning HTML instructions into plain text

It is internal to routewatch and may change at any time.
"""

from __future__ import annotations

import html
import re
from typing import Any

from routewatch._constants import RATE_LIMIT_STATUSES
from routewatch.exceptions import ProviderApiError, ProviderRateLimitError
from routewatch.ingestion.normalize import safe_float

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")
# Block-level tags separate sentences ("Turn left<div>Destination on right</div>").
_BLOCK_RE = re.compile(r"<\s*(div|br|p)\b[^>]*>", re.IGNORECASE)


def raise_for_status(*, endpoint: str, status: str, message: str = "") -> None:
    """Raise the matching provider error for a non-``OK`` status."""
    if status == "OK":
        return
    detail = f" message={message}" if message else ""
    if status in RATE_LIMIT_STATUSES:
        raise ProviderRateLimitError(
            f"{endpoint} rate limited: status={status}{detail}",
            code=status,
            endpoint=endpoint,
        )
    raise ProviderApiError(
        f"{endpoint} failed: status={status}{detail}",
        code=status,
        endpoint=endpoint,
    )


def check_response(endpoint: str, body: dict[str, Any]) -> None:
    """Validate the top-level ``status`` field of a provider response."""
    status = str(body.get("status") or "")
    raise_for_status(
        endpoint=endpoint,
        status=status or "UNKNOWN_ERROR",
        message=str(body.get("error_message") or ""),
    )


def measure_value(obj: Any) -> float | None:
    """``value`` of a provider measurement object, or ``None``."""
    if not isinstance(obj, dict):
        return None
    return safe_float(obj.get("value"))


def measure_text(obj: Any) -> str:
    """``text`` of a provider measurement object, or ``""``."""
    if not isinstance(obj, dict):
        return ""
    text = obj.get("text")
    return text.strip() if isinstance(text, str) else ""


def strip_html(value: Any) -> str:
    """Convert HTML instruction markup to a single line of plain text."""
    if not isinstance(value, str):
        return ""
    text = _BLOCK_RE.sub(" ", value)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()
