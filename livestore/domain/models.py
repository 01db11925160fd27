"""
Domain models for livestore.

Defines the contact record stored in the `contacts` table. The model validates
required fields at construction, so an incomplete record never reaches a
storage engine.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Contact(BaseModel):
    """
    Representation of a single row in the `contacts` table.
    """

    id: Optional[int] = Field(None, description="Generated primary key, set on first write.")
    name: str = Field(..., min_length=1, description="Display name of the contact.")
    occupation: str = Field(..., min_length=1, description="What the contact does.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def with_id(self, record_id: int) -> "Contact":
        """Return a copy carrying the generated identifier."""
        if self.id is not None:
            raise ValueError(f"Contact already has id {self.id}")
        return self.model_copy(update={"id": record_id})


__all__ = ["Contact"]
