"""Rotating backup slots for the main save file.

Slot 0 always holds the most recent backup, slot ``count - 1`` the oldest.
Rotation shifts every slot one position towards the end, evicts the oldest
and copies the current main file into slot 0.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

BACKUP_FILE_TEMPLATE = "savestate.backup{index}.sav"


class BackupRing:
    """Fixed-size ring of backup files next to the main save file.

    Rotation errors never propagate: a failed rotation is logged and
    abandoned so that it cannot block the primary save.
    """

    def __init__(
        self,
        folder: Path,
        main_file: Path,
        count: int,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        if count < 0:
            raise ValueError(f"backup count must be >= 0, got {count}")
        self.folder = Path(folder)
        self.main_file = Path(main_file)
        self.count = count
        self._log = log or logger

    def slot_path(self, index: int) -> Path:
        return self.folder / BACKUP_FILE_TEMPLATE.format(index=index)

    def restore_candidates(self) -> list[int]:
        """Slot indices in recovery order, most recent first."""
        return list(range(self.count))

    def existing_slots(self) -> list[int]:
        return [i for i in self.restore_candidates() if self.slot_path(i).exists()]

    def rotate(self) -> bool:
        """Shift existing backups and copy the main file into slot 0.

        Returns:
            True if rotation completed, False if it was abandoned on an I/O error
        """
        if self.count == 0:
            return True

        try:
            # Evict oldest
            oldest = self.slot_path(self.count - 1)
            if oldest.exists():
                oldest.unlink()

            # backup0 -> backup1, backup1 -> backup2, ...
            for i in range(self.count - 2, -1, -1):
                source = self.slot_path(i)
                if source.exists():
                    os.replace(source, self.slot_path(i + 1))

            if self.main_file.exists():
                shutil.copyfile(self.main_file, self.slot_path(0))
        except OSError as e:
            self._log.warning(f"Backup rotation failed: {e}")
            return False

        self._log.debug(f"Rotated backups in {self.folder} ({self.count} slots)")
        return True

    def delete_all(self) -> int:
        """Delete every backup slot in range. Returns the number of files removed."""
        removed = 0
        for i in self.restore_candidates():
            path = self.slot_path(i)
            if path.exists():
                path.unlink()
                removed += 1
        return removed
