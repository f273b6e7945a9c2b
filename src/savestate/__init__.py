"""
savestate - versioned application state persistence.

Persists a single savestate object to a folder with a framed on-disk format,
rotating backups, recovery from corrupt files and version migrations.

Public API:
-----------
- SavestateStreamer: load/save pipelines over a configured folder
- StreamerConfig / StreamerSettings / load_settings: configuration
- ChainMigrator / StepRegistryMigrator / run_migration_chain: migrations
- PydanticJsonSerializer: JSON serializer for pydantic savestates
- SavestateModel / DocumentSavestate: pydantic savestate base models

Quick Start:
-----------
>>> from savestate import (
...     DocumentSavestate, PydanticJsonSerializer, StreamerConfig, open_streamer,
... )
>>> config = StreamerConfig(folder_path="saves", fallback_savestate=DocumentSavestate())
>>> streamer = open_streamer(config, PydanticJsonSerializer(DocumentSavestate))
>>> state = streamer.load()
"""

from __future__ import annotations

from .backups import BackupRing
from .config import StreamerConfig, StreamerSettings, load_settings
from .errors import (
    ConfigurationError,
    ErrorCode,
    FrameValidationError,
    MigrationError,
    NotInitializedError,
    SaveFailedError,
    SavestateError,
)
from .frame import FrameValidation, unwrap_payload, validate_frame, wrap_payload
from .migrations import ChainMigrator, MigrationResult, StepRegistryMigrator, run_migration_chain
from .models import DocumentSavestate, SavestateModel
from .protocols import Migrator, Savestate, Serializer
from .serializers import PydanticJsonSerializer
from .streamer import LoadOutcome, LoadResult, SavestateStreamer, open_streamer

__version__ = "0.3.0"

__all__ = [
    "__version__",
    # Streamer
    "SavestateStreamer",
    "LoadOutcome",
    "LoadResult",
    "open_streamer",
    # Configuration
    "StreamerConfig",
    "StreamerSettings",
    "load_settings",
    # Frame codec and backups
    "FrameValidation",
    "wrap_payload",
    "unwrap_payload",
    "validate_frame",
    "BackupRing",
    # Migration
    "ChainMigrator",
    "StepRegistryMigrator",
    "MigrationResult",
    "run_migration_chain",
    # Models and protocols
    "SavestateModel",
    "DocumentSavestate",
    "PydanticJsonSerializer",
    "Savestate",
    "Serializer",
    "Migrator",
    # Errors
    "ErrorCode",
    "SavestateError",
    "ConfigurationError",
    "NotInitializedError",
    "FrameValidationError",
    "SaveFailedError",
    "MigrationError",
]
