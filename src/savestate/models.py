"""Pydantic base models for savestates.

Invariants:
- version >= 1 (schema version)
- new instances are dirty until saved
- assigning any field marks the instance dirty again
- equality compares field values only, never the dirty flag
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from typing_extensions import Self


class SavestateModel(BaseModel):
    """Base class for application savestates.

    Subclasses add their own fields. The dirty flag is private state and is
    never serialized.
    """

    model_config = ConfigDict(validate_assignment=True)

    version: int = Field(default=1, ge=1, description="Schema version for migrations")

    _dirty: bool = PrivateAttr(default=True)

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in type(self).model_fields:
            super().__setattr__("_dirty", True)

    def __eq__(self, other: object) -> bool:
        # Field values only; the dirty flag is excluded
        if not isinstance(other, BaseModel):
            return NotImplemented
        return type(self) is type(other) and self.model_dump() == other.model_dump()

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def clear_dirty(self) -> None:
        self._dirty = False

    def evolve(self, **changes: Any) -> Self:
        """Return a validated, dirty copy with ``changes`` applied.

        Migration steps use this to produce the next version.
        """
        data = self.model_dump()
        data.update(changes)
        evolved = type(self).model_validate(data)
        evolved.mark_dirty()
        return evolved


class DocumentSavestate(SavestateModel):
    """Schema-free savestate holding an arbitrary JSON document."""

    data: dict[str, Any] = Field(default_factory=dict, description="Application data")
