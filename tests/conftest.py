"""
Shared pytest fixtures and configuration for savestate tests.

Every test that touches the file system gets its own save folder under
``tmp_path``; nothing is written to the per-user data directory.
"""

from __future__ import annotations

import os
import random
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from savestate.config import StreamerConfig
from savestate.frame import wrap_payload
from savestate.streamer import SavestateStreamer
from tests.fakes import NoteSavestate, NoteSerializer

# ============================================================
# Pytest Hooks and Configuration
# ============================================================


def pytest_configure(config: Any) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "property: marks property-based tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


_DEFAULT_SEED = 42


@pytest.fixture(autouse=True, scope="function")
def _ensure_deterministic_random_state() -> None:
    """Reset the random seed before every test."""
    random.seed(_DEFAULT_SEED)


# ============================================================
# Environment Isolation Fixtures
# ============================================================


@pytest.fixture
def isolate_environment() -> Iterator[None]:
    """Snapshot os.environ and restore it after the test."""
    saved = dict(os.environ)
    for key in [k for k in os.environ if k.startswith("SAVESTATE_")]:
        del os.environ[key]
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(saved)


# ============================================================
# Savestate Fixtures
# ============================================================


@pytest.fixture
def save_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "saves"
    folder.mkdir()
    return folder


@pytest.fixture
def fallback() -> NoteSavestate:
    return NoteSavestate(version=1, note="fallback", dirty=False)


@pytest.fixture
def serializer() -> NoteSerializer:
    return NoteSerializer()


@pytest.fixture
def make_streamer(
    save_dir: Path, fallback: NoteSavestate, serializer: NoteSerializer
) -> Callable[..., SavestateStreamer[Any]]:
    """Factory building an initialized streamer over ``save_dir``.

    Keyword arguments override StreamerConfig fields; ``migrator`` and
    ``serializer`` are passed to ``initialize``.
    """

    def _make(**overrides: Any) -> SavestateStreamer[Any]:
        migrator = overrides.pop("migrator", None)
        chosen_serializer = overrides.pop("serializer", serializer)
        options: dict[str, Any] = {
            "folder_path": str(save_dir),
            "backup_count": 0,
            "validate_files": True,
            "debug_mode": False,
            "fallback_savestate": fallback,
        }
        options.update(overrides)
        streamer: SavestateStreamer[Any] = SavestateStreamer(StreamerConfig(**options))
        streamer.initialize(chosen_serializer, migrator)
        return streamer

    return _make


@pytest.fixture
def write_frame(serializer: NoteSerializer) -> Callable[[Path, NoteSavestate], bytes]:
    """Write ``state`` to ``path`` as a valid frame and return the bytes written."""

    def _write(path: Path, state: NoteSavestate) -> bytes:
        data = wrap_payload(serializer.serialize(state), state.version)
        path.write_bytes(data)
        return data

    return _write
