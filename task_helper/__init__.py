"""task-helper: change tracking and a pluggable handler pipeline for build tasks.

Decides which files are new relative to a persisted mtime baseline, and
pipes source files through user-supplied stages before writing a
destination file.
"""

from task_helper.errors import ChangeStoreWriteError, FileWriteError, HandlerError, TaskHelperError
from task_helper.pipeline import (
    DROP,
    KEEP,
    FileEntry,
    FileGroup,
    HandlerClass,
    HandlerPipeline,
    Replace,
    RunContext,
    TaskOptions,
    TaskResult,
    TaskStatus,
)
from task_helper.task_runner import TaskRunner, TaskTarget
from task_helper.tracking import ChangeStore

__version__ = "0.3.0"

__all__ = [
    "DROP",
    "KEEP",
    "ChangeStore",
    "ChangeStoreWriteError",
    "FileEntry",
    "FileGroup",
    "FileWriteError",
    "HandlerClass",
    "HandlerError",
    "HandlerPipeline",
    "Replace",
    "RunContext",
    "TaskHelperError",
    "TaskOptions",
    "TaskResult",
    "TaskRunner",
    "TaskStatus",
    "TaskTarget",
]
