"""Shared model configuration.

Every persisted model serializes to the camelCase layout of the stored
snapshot while Python code uses snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "allow",
    }

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict in the persisted (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenModel(CamelModel):
    """Immutable computed artifact."""

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }
