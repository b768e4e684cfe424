"""
Change Store
============
Persisted mtime baselines used to decide whether a file is "new".

The store maps absolute file paths to the timestamp (whole seconds) of the
last commit that saw them. A file is new when its current mtime is strictly
greater than that baseline; a path seen for the first time gets baseline 0.

Lifecycle within one target:
- first query loads ``fileUpdates.json`` (missing or invalid means empty) and
  fires ``on_load`` so the owner can schedule the commit
- queries never write
- ``commit()`` stamps every tracked, still-existing path with
  ``now + offset``, prunes vanished paths, writes the file and unloads

The offset covers files this run writes after the commit timestamp was taken
but within the filesystem's timestamp resolution.
"""

from __future__ import annotations

import json
import math
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from filelock import FileLock, Timeout
from loguru import logger

from task_helper.config import TIMEOUTS, TRACKING
from task_helper.errors import ChangeStoreWriteError
from task_helper.utils.filesystem import LocalFileSystem
from task_helper.utils.schema_validation import validate_file_updates


class ChangeStore:
    """Lazily loaded, commit-only-mutated mtime baseline store.

    Usage:
        store = ChangeStore(store_path, on_load=lambda: deferred.append(store.commit))
        if store.is_new("src/app.js"):
            ...
        store.commit()
    """

    def __init__(
        self,
        store_path: Union[str, Path],
        *,
        offset: Optional[int] = None,
        fs: Optional[LocalFileSystem] = None,
        on_load: Optional[Callable[[], None]] = None,
        lock_timeout_seconds: int = TIMEOUTS.FILE_LOCK,
        clock: Callable[[], float] = time.time,
    ):
        self.fs = fs or LocalFileSystem()
        self._path = self.fs.resolve(store_path)
        self._offset = int(offset) if offset is not None else None
        self.on_load = on_load
        self.lock_timeout_seconds = lock_timeout_seconds
        self._clock = clock

        self._data: Optional[Dict[str, int]] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_suffix(self._path.suffix + ".lock")

    @property
    def loaded(self) -> bool:
        return self._data is not None

    @property
    def offset(self) -> int:
        """Commit offset in seconds (default until a caller fixes it)."""
        return self._offset if self._offset is not None else TRACKING.MTIME_OFFSET

    def is_new(self, path: Union[str, Path], mtime_offset: Optional[int] = None) -> bool:
        """Return True when the file's mtime is newer than its committed baseline."""
        with self._lock:
            return self.fs.mtime(path) > self._query(path, mtime_offset)

    def compare(self, path_a: Union[str, Path], path_b: Union[str, Path]) -> int:
        """Order two files by their current mtime (missing files count as 0).

        Returns -1, 0 or 1. Baselines are not consulted.
        """
        mtime_a = self.fs.mtime(path_a)
        mtime_b = self.fs.mtime(path_b)
        if mtime_a < mtime_b:
            return -1
        if mtime_a > mtime_b:
            return 1
        return 0

    def snapshot(self) -> Dict[str, int]:
        """Copy of the tracked mapping (empty when not loaded)."""
        with self._lock:
            return dict(self._data) if self._data is not None else {}

    def _query(self, path: Union[str, Path], mtime_offset: Optional[int]) -> int:
        if self._offset is None:
            self._offset = int(mtime_offset) if mtime_offset is not None else TRACKING.MTIME_OFFSET

        if self._data is None:
            self._data = self._load()
            logger.debug(f"Change store loaded from {self._path} ({len(self._data)} entries)")
            if self.on_load is not None:
                self.on_load()

        key = str(self.fs.normalize(path))
        if key not in self._data:
            self._data[key] = 0
        return self._data[key]

    def _load(self) -> Dict[str, int]:
        if not self._path.exists():
            return {}

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable change store {self._path}: {type(e).__name__}: {e}")
            return {}

        try:
            validate_file_updates(payload)
        except ValueError as e:
            logger.warning(f"Ignoring invalid change store {self._path}: {e}")
            return {}

        return {str(k): int(v) for k, v in payload.items()}

    def commit(self) -> bool:
        """Stamp tracked files with ``now + offset`` and persist the mapping.

        Returns:
            False when the store was not loaded (nothing to do), True otherwise.

        Raises:
            ChangeStoreWriteError: When the store file cannot be written.
        """
        with self._lock:
            if self._data is None:
                return False

            stamp = int(math.floor(self._clock())) + self.offset
            # The real mtime can't be used: files may still be rewritten after this point.
            committed: Dict[str, int] = {}
            for filepath in self._data:
                if self.fs.exists(filepath):
                    committed[filepath] = stamp

            pruned = len(self._data) - len(committed)
            try:
                self._write(committed)
            finally:
                # Unloaded even on failure: the next query reloads and schedules a fresh commit.
                self._data = None

            logger.debug(
                f"Change store committed to {self._path} "
                f"({len(committed)} tracked, {pruned} pruned, baseline {stamp})"
            )
            return True

    def _write(self, payload: Dict[str, int]) -> None:
        text = json.dumps(payload, sort_keys=True)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_path, timeout=self.lock_timeout_seconds):
                self.fs.write_text(self._path, text)
        except Timeout as e:
            raise ChangeStoreWriteError(
                self._path,
                f"timed out acquiring lock {self.lock_path} after {self.lock_timeout_seconds}s",
            ) from e
        except OSError as e:
            raise ChangeStoreWriteError(self._path, str(e)) from e
