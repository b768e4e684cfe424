"""Built-in handlers selectable by name.

- handler_by_file_src "size": keep sources whose byte size is within
  [min_size, max_size] (a missing or zero bound is unbounded)
- handler_by_file "newFile" / "new_file": keep groups that changed since the
  last commit, or whose destination is older than a source
"""

from __future__ import annotations

from typing import List, Optional

from loguru import logger

from task_helper.pipeline.handlers import DROP, KEEP, HandlerClass, HandlerOutcome, register_builtin
from task_helper.pipeline.options import TaskOptions
from task_helper.utils.filesystem import LocalFileSystem


def _fs(options: TaskOptions) -> LocalFileSystem:
    if options.fs is not None:
        return options.fs
    if options.change_store is not None:
        return options.change_store.fs
    return LocalFileSystem()


@register_builtin(HandlerClass.BY_FILE_SRC, "size")
def size_filter(src: str, dest: Optional[str], options: TaskOptions) -> HandlerOutcome:
    fs = _fs(options)
    if not fs.exists(src):
        return DROP

    min_size = options.min_size
    max_size = options.max_size
    file_size = fs.size(src)

    if min_size and file_size < min_size:
        logger.warning(f'Source file "{src}" dropped: {file_size} bytes is below min_size {min_size}.')
        return DROP
    if max_size and file_size > max_size:
        logger.warning(f'Source file "{src}" dropped: {file_size} bytes is above max_size {max_size}.')
        return DROP
    return KEEP


@register_builtin(HandlerClass.BY_FILE, "newFile", "new_file")
def new_file(src_list: List[str], dest: Optional[str], options: TaskOptions) -> HandlerOutcome:
    store = options.change_store
    if store is None:
        raise RuntimeError("newFile requires a change store bound to the task options")
    offset = options.mtime_offset

    def _keep_if(flag: bool) -> HandlerOutcome:
        return KEEP if flag else DROP

    if not src_list:
        # Nothing to compare without a destination either.
        return _keep_if(isinstance(dest, str) and bool(dest) and store.is_new(dest, offset))

    if not dest:
        return _keep_if(any(store.is_new(src, offset) for src in src_list))

    if len(src_list) == 1 and store.fs.normalize(src_list[0]) == store.fs.normalize(dest):
        return _keep_if(store.is_new(dest, offset))

    # Both sides are files: keep when any source is strictly newer.
    return _keep_if(any(store.compare(src, dest) == 1 for src in src_list))
