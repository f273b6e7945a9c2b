"""Concrete serializers for pydantic savestates."""

from __future__ import annotations

import json
from typing import Generic, TypeVar

from .models import SavestateModel

M = TypeVar("M", bound=SavestateModel)


class PydanticJsonSerializer(Generic[M]):
    """UTF-8 JSON payloads via pydantic.

    Deserialized savestates are returned clean: they match what is on disk.
    Malformed payloads raise ``pydantic.ValidationError``.
    """

    def __init__(self, model_cls: type[M], *, indent: int | None = None) -> None:
        self.model_cls = model_cls
        self.indent = indent

    def serialize(self, state: M) -> bytes:
        return state.model_dump_json(indent=self.indent).encode("utf-8")

    def deserialize(self, data: bytes) -> M:
        state = self.model_cls.model_validate_json(data)
        state.clear_dirty()
        return state

    def to_debug_text(self, data: bytes) -> str:
        return json.dumps(json.loads(data.decode("utf-8")), indent=2, sort_keys=True)
