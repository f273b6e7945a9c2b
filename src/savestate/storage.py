"""File-system helpers shared by the streamer and the backup ring."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

APP_DIR_NAME = "savestate"
SAVE_HOME_ENV = "SAVESTATE_HOME"


def default_save_folder() -> Path:
    """Return the per-user folder used when no folder path is configured.

    ``SAVESTATE_HOME`` takes precedence. Otherwise:
    Linux: ~/.local/share/savestate
    macOS: ~/Library/Application Support/savestate
    Windows: %APPDATA%\\savestate
    """
    override = os.environ.get(SAVE_HOME_ENV)
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
        return root / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, max=1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def write_file_atomic(path: Path, data: bytes) -> None:
    """Write data to ``path`` atomically using a temporary file + rename.

    The previous content of ``path`` stays in place if any step fails.
    """
    temp_path = path.with_name(f"{path.name}.tmp")
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.debug(f"Could not remove temporary file {temp_path}")


def read_file(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()
