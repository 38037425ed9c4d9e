"""NIP-01 subscription filter.

The registry treats filters as opaque and passes them to relays verbatim,
so callers may use a plain ``dict``. [Filter][nostrview.models.filter.Filter]
is a typed builder that validates hex selectors up front and renders the
wire object with unset fields omitted.

Examples:
    ```python
    Filter(kinds=[7], tags={"e": [event_id]}, limit=50).to_dict()
    # {'kinds': [7], 'limit': 50, '#e': ['5c83...']}
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._validation import validate_hex64


class Filter(BaseModel):
    """Immutable NIP-01 filter.

    Attributes:
        ids: Event ids (64-char hex).
        authors: Author pubkeys (64-char hex).
        kinds: Event kinds.
        since: Lower bound on ``created_at`` (inclusive).
        until: Upper bound on ``created_at`` (inclusive).
        limit: Maximum number of stored events each relay returns.
        tags: Tag selectors keyed by single letter, rendered as ``#<letter>``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ids: list[str] | None = Field(default=None, description="Event ids")
    authors: list[str] | None = Field(default=None, description="Author pubkeys")
    kinds: list[int] | None = Field(default=None, description="Event kinds")
    since: int | None = Field(default=None, ge=0, description="Oldest created_at")
    until: int | None = Field(default=None, ge=0, description="Newest created_at")
    limit: int | None = Field(default=None, ge=0, description="Max stored events per relay")
    tags: dict[str, list[str]] = Field(default_factory=dict, description="Tag selectors")

    @field_validator("ids", "authors")
    @classmethod
    def _validate_hex_list(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [validate_hex64(item, "selector") for item in value]

    @field_validator("kinds")
    @classmethod
    def _validate_kinds(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(kind < 0 for kind in value):
            raise ValueError("kinds must be non-negative")
        return value

    @field_validator("tags")
    @classmethod
    def _validate_tag_names(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for name in value:
            if len(name) != 1 or not name.isascii() or not name.isalpha():
                raise ValueError(f"tag selector must be a single letter, got {name!r}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Render the filter as the JSON object sent in a ``REQ`` frame."""
        data = self.model_dump(exclude_none=True, exclude={"tags"})
        for name, values in self.tags.items():
            data[f"#{name}"] = list(values)
        return data


def filter_to_wire(value: Filter | Mapping[str, Any]) -> dict[str, Any]:
    """Return the wire object for a typed filter or a raw mapping.

    Raw mappings are copied as-is; their contents are not inspected.
    """
    if isinstance(value, Filter):
        return value.to_dict()
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"filter must be a Filter or a Mapping, got {type(value).__name__}")
