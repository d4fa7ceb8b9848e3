"""Position payload ingestion.

Turns raw feed payloads (JSON bytes, text or dicts) into
:class:`routewatch.models.Position` objects.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from routewatch.exceptions import InvalidInputError
from routewatch.models.position import Position


def decode_payload(payload: bytes | str) -> dict[str, Any]:
    """Decode a JSON feed payload into an object."""
    if isinstance(payload, bytes):
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputError("Position payload is not valid UTF-8") from exc
    else:
        text = payload
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Position payload is not JSON: {text[:64]}") from exc
    if not isinstance(parsed, dict):
        raise InvalidInputError("Position payload decoded to non-object JSON")
    return parsed


def parse_position(payload: Position | dict[str, Any] | bytes | str) -> Position:
    """Build a :class:`Position` from a feed payload.

    Raises
    ------
    InvalidInputError
        When the payload has no usable latitude/longitude.
    """
    if isinstance(payload, Position):
        return payload
    if isinstance(payload, (bytes, str)):
        payload = decode_payload(payload)
    if not isinstance(payload, dict):
        raise InvalidInputError(f"Unsupported position payload type: {type(payload).__name__}")
    try:
        return Position.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise InvalidInputError(f"Malformed position payload ({fields or 'invalid'})") from exc
