"""
Process-scoped scratch directory.

Holds the engine's phase-1 state file and the patch files of the
commit plan. It is recreated at the start of every run, removed on
success or cancellation, and kept after an error for diagnosis.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

LOG = logging.getLogger(__name__)

STATE_FILE = "state.json"


class ScratchDir:
    def __init__(self, path: Optional[str] = None) -> None:
        self._requested = path
        self.path: Optional[Path] = Path(path) if path else None

    def create(self) -> Path:
        """
        Create the directory, discarding anything left from a previous run.
        """

        if self._requested:
            path = Path(self._requested)
            shutil.rmtree(path, ignore_errors=True)
            path.mkdir(parents=True)
        else:
            path = Path(tempfile.mkdtemp(prefix="semsplit-"))
        self.path = path
        LOG.debug("Scratch directory: %s", path)
        return path

    @property
    def state_path(self) -> Path:
        if self.path is None:
            raise RuntimeError("scratch directory has not been created")
        return self.path / STATE_FILE

    def exists(self) -> bool:
        return self.path is not None and self.path.exists()

    def remove(self) -> None:
        if self.path is not None and self.path.exists():
            shutil.rmtree(self.path)
            LOG.debug("Removed scratch directory %s", self.path)
