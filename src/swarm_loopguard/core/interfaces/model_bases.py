"""Nominal marker base classes for model standardization.

`DomainModel` is the base for Pydantic-based domain and configuration models,
`ValueObject` for the immutable ones (turns, persisted state records), and
`InternalDTO` marks plain dataclass DTOs that never cross the process boundary.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class DomainModel(BaseModel):
    """Nominal marker for Pydantic-based domain and configuration models."""

    def __repr__(self) -> str:
        """Provide a concise, one-line summary of the object."""
        class_name = self.__class__.__name__

        # Prefer the identifiers that appear on our models
        repr_attrs = ("agent_id", "sequence_number", "name")
        for attr in repr_attrs:
            if attr in type(self).model_fields:
                attr_value = getattr(self, attr)
                if attr_value is not None:
                    return f'<{class_name} {attr}="{attr_value}">'

        return f"<{class_name}>"


class ValueObject(DomainModel):
    """Immutable domain model compared by value."""

    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert this value object to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class InternalDTO:
    """Nominal marker for internal dataclass DTOs.

    Mixed into dataclass definitions to make their intent explicit for mypy
    checks.
    """
