"""
Filesystem Accessor
===================
The filesystem primitives the change store and the handler pipeline rely on.

Relative paths are resolved against ``base_dir`` (the task runner's working
directory), so a pipeline can be pointed at a project folder without
changing the process cwd.
"""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Optional, Union

from loguru import logger


PathLike = Union[str, Path]


class LocalFileSystem:
    """Local disk implementation of the filesystem primitives.

    Text is read and written as UTF-8 without newline translation so that
    line-break detection sees the bytes that are on disk.
    """

    def __init__(self, base_dir: Optional[PathLike] = None):
        self.base_dir = Path(base_dir).expanduser().resolve() if base_dir is not None else None

    def absolute(self, path: PathLike) -> Path:
        """Anchor ``path`` at ``base_dir`` without following symlinks."""
        p = Path(path).expanduser()
        if not p.is_absolute() and self.base_dir is not None:
            p = self.base_dir / p
        return p

    def normalize(self, path: PathLike) -> Path:
        """Absolute path with ``.`` and ``..`` collapsed lexically; symlinks are kept."""
        return Path(os.path.abspath(self.absolute(path)))

    def resolve(self, path: PathLike) -> Path:
        """Return the absolute path with symlinks followed."""
        return self.absolute(path).resolve()

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def is_symlink(self, path: PathLike) -> bool:
        return self.absolute(path).is_symlink()

    def is_file(self, path: PathLike) -> bool:
        return self.resolve(path).is_file()

    def mtime(self, path: PathLike) -> int:
        """Modification time in whole seconds; 0 when the file does not exist.

        Times before the epoch are not supported.
        """
        try:
            return int(math.floor(self.resolve(path).stat().st_mtime))
        except FileNotFoundError:
            return 0

    def size(self, path: PathLike) -> int:
        return self.resolve(path).stat().st_size

    def read_text(self, path: PathLike) -> str:
        with open(self.resolve(path), "r", encoding="utf-8", newline="") as f:
            return f.read()

    def write_text(self, path: PathLike, content: str) -> Path:
        """Write ``content`` via a temporary file and an atomic replace.

        Parent directories are created. Returns the resolved destination.
        """
        dest_path = self.resolve(path)
        tmp_path = dest_path.with_suffix(dest_path.suffix + ".tmp")
        tmp_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
            tmp_path.replace(dest_path)
        except Exception:
            try:
                if tmp_path.exists():
                    tmp_path.unlink()
            except OSError as e:
                logger.debug(f"Failed to remove temporary file {tmp_path}: {e}")
            raise

        return dest_path
