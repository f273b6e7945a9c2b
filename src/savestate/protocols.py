"""
Protocols for the collaborators the persistence core consumes.

The streamer never inspects payload bytes or savestate fields beyond what
is declared here; concrete serializers and migrators are injected.
"""

from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

__all__ = [
    "Migrator",
    "Savestate",
    "Serializer",
]


@runtime_checkable
class Savestate(Protocol):
    """Versioned, dirty-trackable application state."""

    @property
    def version(self) -> int:
        """Schema revision, >= 1."""
        ...

    @property
    def dirty(self) -> bool:
        """True if the in-memory state has unsaved changes."""
        ...

    def clear_dirty(self) -> None:
        """Mark the state as saved."""
        ...


S = TypeVar("S", bound=Savestate)


@runtime_checkable
class Serializer(Protocol[S]):
    """Converts a savestate to and from an opaque byte payload."""

    def serialize(self, state: S) -> bytes:
        ...

    def deserialize(self, data: bytes) -> S:
        """Decode ``data``. May raise on malformed input."""
        ...

    def to_debug_text(self, data: bytes) -> str:
        """Render a payload as human-readable text."""
        ...


@runtime_checkable
class Migrator(Protocol[S]):
    """Brings a savestate from an older schema version to ``current_version``."""

    @property
    def current_version(self) -> int:
        ...

    def try_migrate(self, state: S) -> tuple[S | None, bool]:
        """Return ``(migrated, True)`` on success or ``(None, False)`` on failure."""
        ...
