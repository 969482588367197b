"""Atomic file-backed storage for the registry state.

Writes go to a temporary file next to the target and are moved over it with
``os.replace`` only once fully written and synced, so a crash mid-write leaves
the previous copy intact.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from phonereg.accounts.errors import CodecError, PersistenceError
from phonereg.accounts.models import RegistryState
from phonereg.storage.codec import StateCodec

logger = logging.getLogger(__name__)


class LoadStatus(Enum):
    """What ``DurableStore.load`` found on disk."""

    LOADED = "loaded"
    ABSENT = "absent"  # No state file yet
    CORRUPT = "corrupt"  # Unreadable, unrecognized, or malformed


@dataclass
class LoadResult:
    status: LoadStatus
    state: RegistryState | None = None

    @property
    def loaded(self) -> bool:
        return self.status == LoadStatus.LOADED


class DurableStore:
    """Loads and saves a single ``RegistryState`` blob."""

    TEMP_SUFFIX = ".tmp"

    def __init__(self, path: str | Path, codec: StateCodec) -> None:
        self.path = Path(path)
        self.codec = codec

    def load(self) -> LoadResult:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return LoadResult(LoadStatus.ABSENT)
        except OSError:
            logger.exception("Reading state file %s", self.path)
            return LoadResult(LoadStatus.CORRUPT)

        try:
            state = self.codec.decode(data)
        except CodecError:
            logger.exception("Decoding state file %s", self.path)
            return LoadResult(LoadStatus.CORRUPT)

        if state is None:
            logger.error("State file %s is not a registry state", self.path)
            return LoadResult(LoadStatus.CORRUPT)
        return LoadResult(LoadStatus.LOADED, state)

    def save(self, state: RegistryState) -> None:
        """Atomically replace the state file. Raises ``PersistenceError`` on failure."""
        data = self.codec.encode(state)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.name + ".", suffix=self.TEMP_SUFFIX, dir=self.path.parent
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(f"Writing state to {self.path}: {e}") from e
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
