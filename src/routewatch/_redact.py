"""Helpers for safe debug logging.

The provider API key travels as a query parameter, and broker credentials
come from configuration. Both must be masked before request parameters,
URLs or exception texts reach a log record.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_REDACTED = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "key",
        "api_key",
        "apikey",
        "client_secret",
        "signature",
        "authorization",
        "cookie",
    }
)

# key=... / signature=... inside URLs and aiohttp error messages.
_QUERY_SECRET_RE = re.compile(r"([?&](?:key|api_key|apikey|signature|client_secret)=)[^&#\s'\"]+", re.IGNORECASE)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return lowered in _SENSITIVE_KEYS or lowered.endswith(("password", "token"))


def redact_text(text: str) -> str:
    """Mask credential query parameters embedded in *text*."""
    return _QUERY_SECRET_RE.sub(rf"\1{_REDACTED}", text)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with credentials masked and long strings cut."""
    if _depth > 20:
        return "<max-depth>"

    if isinstance(value, Mapping):
        return {
            str(key): _REDACTED
            if _is_sensitive(str(key))
            else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
            for key, item in value.items()
        }

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, str):
        text = redact_text(value)
        return text if len(text) <= max_string else f"{text[:max_string]}…<truncated>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]

    return repr(value)
