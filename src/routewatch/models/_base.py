"""Base model for feed and provider payloads.

Every payload model inherits from :class:`FeedModel`. Before field
validation it lifts the contents of wrapper objects named in
``_NESTED_KEYS`` (``{"data": {"location": {"lat": ...}}}``) to the top
level and drops placeholder values (see
:func:`routewatch.ingestion.normalize.is_placeholder`) so field defaults
apply. The untouched payload is kept on ``raw``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from routewatch.ingestion.normalize import is_placeholder


def _lift_nested(values: dict[str, Any], wrappers: tuple[str, ...]) -> dict[str, Any]:
    flat = dict(values)
    pending = [key for key in wrappers if isinstance(flat.get(key), dict)]
    while pending:
        inner = flat.pop(pending.pop(0))
        # Outer keys win over wrapped ones.
        for key, value in inner.items():
            flat.setdefault(key, value)
        pending = [key for key in wrappers if isinstance(flat.get(key), dict)]
    return flat


class FeedModel(BaseModel):
    """Base for models parsed from external payloads."""

    _NESTED_KEYS: ClassVar[tuple[str, ...]] = ()
    """Wrapper keys whose dict values are merged into the top level."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _prepare_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        flat = _lift_nested(values, cls._NESTED_KEYS)
        prepared = {key: value for key, value in flat.items() if not is_placeholder(value)}
        # An explicit raw= (kwargs construction) is kept as given.
        if "raw" not in values:
            prepared["raw"] = dict(values)
        return prepared
