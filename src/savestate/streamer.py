"""File I/O streamer for savestate persistence.

This module ties the frame codec, backup ring and migration chain into the
two public pipelines:

- ``load()`` never raises for a missing, corrupt or unmigratable save; it
  falls back through the backup slots and finally to the configured fallback
  savestate.
- ``save()`` skips clean savestates, rotates backups before writing, writes
  the main file atomically and clears the dirty flag only after the write
  succeeded. Serialize and write failures are raised as ``SaveFailedError``.

Folder layout:
    savestate.sav                  main file
    savestate.backup{0..N-1}.sav   rotating backups, 0 = newest
    savestate_debug.json           debug export (debug mode only, never read)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

from .backups import BackupRing
from .config import StreamerConfig
from .errors import (
    ConfigurationError,
    ErrorCode,
    FrameValidationError,
    NotInitializedError,
    SavestateError,
    SaveFailedError,
)
from .frame import require_valid_frame, wrap_payload
from .protocols import Migrator, Savestate, Serializer
from .storage import ensure_dir, read_file, write_file_atomic

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Savestate)

MAIN_FILE_NAME = "savestate.sav"
DEBUG_FILE_NAME = "savestate_debug.json"


class LoadOutcome(str, Enum):
    """Terminal state of a load."""

    TEST_VALUE = "test_value"
    FALLBACK = "fallback"
    LOADED = "loaded"
    MIGRATED = "migrated"


@dataclass
class LoadResult(Generic[S]):
    """Savestate returned by a load plus the diagnostics collected on the way.

    ``source`` is ``"main"``, ``"backup{i}"``, ``"test"`` or ``"fallback"``.
    """

    state: S
    outcome: LoadOutcome
    source: str
    messages: list[str] = field(default_factory=list)


class SavestateStreamer(Generic[S]):
    """Loads and saves a single savestate under a configured folder.

    Usage:
        config = StreamerConfig(folder_path="saves", fallback_savestate=GameState())
        streamer = SavestateStreamer(config)
        streamer.initialize(PydanticJsonSerializer(GameState), migrator)
        state = streamer.load()
        state.gold += 10
        streamer.save(state)
    """

    def __init__(self, config: StreamerConfig, *, log: logging.Logger | None = None) -> None:
        self.config = config
        self._log = log or logger
        self._serializer: Serializer[S] | None = None
        self._migrator: Migrator[S] | None = None
        self.backups = BackupRing(
            self.folder, self.file_path, config.backup_count, log=self._log
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def folder(self) -> Path:
        return self.config.folder

    @property
    def file_path(self) -> Path:
        return self.folder / MAIN_FILE_NAME

    @property
    def debug_file_path(self) -> Path:
        return self.folder / DEBUG_FILE_NAME

    def backup_path(self, index: int) -> Path:
        return self.backups.slot_path(index)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, serializer: Serializer[S] | None, migrator: Migrator[S] | None = None) -> None:
        """Attach the serializer and optional migrator and create the folder.

        Raises:
            ConfigurationError: If no serializer is given
        """
        if serializer is None:
            raise ConfigurationError(ErrorCode.E802_MISSING_SERIALIZER)
        self._serializer = serializer
        self._migrator = migrator
        ensure_dir(self.folder)

    @property
    def is_initialized(self) -> bool:
        return self._serializer is not None

    @property
    def serializer(self) -> Serializer[S]:
        if self._serializer is None:
            raise NotInitializedError()
        return self._serializer

    @property
    def migrator(self) -> Migrator[S] | None:
        return self._migrator

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> S:
        """Load the savestate, falling back to backups and then the fallback savestate."""
        return self.load_with_report().state

    def load_with_report(self) -> LoadResult[S]:
        """Run the load pipeline and return the savestate with its diagnostics."""
        serializer = self.serializer
        messages: list[str] = []

        if self.config.use_test_savestate:
            self._note(messages, logging.INFO, "Using test savestate (file I/O bypassed).")
            return LoadResult(self.config.test_savestate, LoadOutcome.TEST_VALUE, "test", messages)

        if not self.file_path.exists():
            self._note(messages, logging.INFO, "No savestate file found. Using fallback.")
            return self._fallback(messages)

        state = self._read_savestate(self.file_path, "main", serializer, messages, logging.ERROR)
        source = "main"

        if state is None:
            self._note(messages, logging.INFO, "Attempting backup restore...")
            for index in self.backups.restore_candidates():
                path = self.backup_path(index)
                if not path.exists():
                    continue
                label = f"backup{index}"
                state = self._read_savestate(path, label, serializer, messages, logging.WARNING)
                if state is not None:
                    self._note(messages, logging.INFO, f"Successfully restored from backup {index}.")
                    source = label
                    break
            else:
                self._note(messages, logging.ERROR, "No valid backup found. Using fallback.")
                return self._fallback(messages)

        if self._migrator is None or state.version == self._migrator.current_version:
            if self._migrator is not None:
                self._note(
                    messages, logging.INFO, f"Savestate v{state.version} is current. No migration needed."
                )
            return LoadResult(state, LoadOutcome.LOADED, source, messages)

        return self._migrate(state, source, messages)

    def _read_savestate(
        self,
        path: Path,
        label: str,
        serializer: Serializer[S],
        messages: list[str],
        failure_level: int,
    ) -> S | None:
        """Read, validate and deserialize one file. Returns None on any failure."""
        try:
            file_bytes = read_file(path)
        except OSError as e:
            self._note(messages, failure_level, f"Failed to read {label}: {e}")
            return None

        if self.config.validate_files:
            try:
                payload = require_valid_frame(file_bytes, max_version=self.config.max_version)
            except FrameValidationError as e:
                self._note(messages, failure_level, f"{label} validation failed: {e}", error=e)
                return None
        else:
            payload = file_bytes

        try:
            state = serializer.deserialize(payload)
        except Exception as e:
            self._note(messages, failure_level, f"Failed to deserialize {label}: {e}")
            return None
        if state is None:
            self._note(messages, failure_level, f"Failed to deserialize {label}: serializer returned None")
            return None

        self._log.info(f"Loaded {len(file_bytes)} bytes from {label}.")
        if self.config.debug_mode:
            self._log_debug_text(payload)
        return state

    def _migrate(self, state: S, source: str, messages: list[str]) -> LoadResult[S]:
        migrator = self._migrator
        assert migrator is not None

        self._note(
            messages,
            logging.INFO,
            f"Version mismatch. Found: v{state.version}, Expected: v{migrator.current_version}",
        )

        # Keep the last known good file before touching anything
        if self.config.backup_count > 0:
            self.create_backup()

        try:
            migrated, ok = migrator.try_migrate(state)
        except Exception as e:
            self._note(messages, logging.ERROR, f"Migrator raised {type(e).__name__}: {e}")
            migrated, ok = None, False

        if not ok or migrated is None:
            self._note(messages, logging.ERROR, "Migration failed. Using fallback savestate.")
            return self._fallback(messages)

        self._note(
            messages,
            logging.INFO,
            f"Successfully migrated v{state.version} -> v{migrated.version}",
        )
        try:
            self.save(migrated)
        except SaveFailedError as e:
            self._note(
                messages, logging.ERROR, f"Auto-save of migrated savestate failed: {e}", error=e
            )

        return LoadResult(migrated, LoadOutcome.MIGRATED, source, messages)

    def _fallback(self, messages: list[str]) -> LoadResult[S]:
        return LoadResult(self.config.fallback_savestate, LoadOutcome.FALLBACK, "fallback", messages)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save(self, state: S) -> bool:
        """Persist ``state`` if it is dirty.

        Returns:
            True if the main file was written, False if the state was clean

        Raises:
            ValueError: If ``state`` is None
            SaveFailedError: If serializing or writing the main file failed
        """
        if state is None:
            raise ValueError("savestate must not be None")
        serializer = self.serializer

        if not state.dirty:
            self._log.info("Savestate unchanged. Skipping save.")
            return False

        try:
            payload = serializer.serialize(state)
        except Exception as e:
            raise self._save_failed(
                SaveFailedError(
                    ErrorCode.E201_SERIALIZE_FAILED, f"Failed to serialize savestate: {e}"
                )
            ) from e

        file_bytes = payload
        if self.config.validate_files:
            try:
                file_bytes = wrap_payload(payload, state.version)
            except FrameValidationError as e:
                raise self._save_failed(
                    SaveFailedError(
                        ErrorCode.E203_FRAME_FAILED,
                        f"Failed to frame savestate: {e.message}",
                        details={"version": state.version},
                    )
                ) from e

        if self.config.backup_count > 0:
            self.backups.rotate()

        try:
            ensure_dir(self.folder)
            write_file_atomic(self.file_path, file_bytes)
        except OSError as e:
            raise self._save_failed(
                SaveFailedError(
                    ErrorCode.E202_WRITE_FAILED,
                    f"Failed to write {self.file_path}: {e}",
                    path=str(self.file_path),
                )
            ) from e

        if self.config.debug_mode:
            self._write_debug_export(payload)
            self._log_debug_text(payload)

        state.clear_dirty()
        self._log.info(f"Saved {len(file_bytes)} bytes to savestate (v{state.version}).")
        return True

    def _write_debug_export(self, payload: bytes) -> None:
        try:
            text = self.serializer.to_debug_text(payload)
            write_file_atomic(self.debug_file_path, text.encode("utf-8"))
        except Exception as e:
            self._log.warning(f"Debug export failed: {e}")

    def _log_debug_text(self, payload: bytes) -> None:
        try:
            self._log.debug(f"Payload:\n{self.serializer.to_debug_text(payload)}")
        except Exception as e:
            self._log.warning(f"Could not render payload as debug text: {e}")

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def create_backup(self) -> bool:
        """Rotate backups so that slot 0 holds the current main file.

        Returns:
            True if a backup was created
        """
        if not self.file_path.exists():
            self._log.warning("No savestate to backup.")
            return False
        if self.config.backup_count == 0:
            self._log.warning("Backups are disabled (backup_count=0).")
            return False

        created = self.backups.rotate()
        if created:
            self._log.info("Backup created.")
        return created

    def delete_all_saves(self) -> int:
        """Delete the main file, every backup slot and the debug export.

        Returns:
            Number of files removed
        """
        removed = 0
        if self.file_path.exists():
            self.file_path.unlink()
            removed += 1

        removed += self.backups.delete_all()

        if self.debug_file_path.exists():
            self.debug_file_path.unlink()
            removed += 1

        self._log.info(f"All save files deleted ({removed} files).")
        return removed

    def _save_failed(self, error: SaveFailedError) -> SaveFailedError:
        error.log(logging.ERROR, self._log)
        return error

    def _note(
        self,
        messages: list[str],
        level: int,
        message: str,
        *,
        error: SavestateError | None = None,
    ) -> None:
        messages.append(message)
        extra = error.error_details.to_log_dict() if error is not None else None
        self._log.log(level, message, extra=extra)


def open_streamer(
    config: StreamerConfig,
    serializer: Serializer[Any],
    migrator: Migrator[Any] | None = None,
    *,
    log: logging.Logger | None = None,
) -> SavestateStreamer[Any]:
    """Build and initialize a streamer in one call."""
    streamer: SavestateStreamer[Any] = SavestateStreamer(config, log=log)
    streamer.initialize(serializer, migrator)
    return streamer
