"""Handler pipeline.

Exports:
- HandlerPipeline: runs one target's five handler classes over its file groups
- RunContext: run-scoped owner of the change store and deferred commit
- TaskOptions: parsed per-target options
- HandlerClass, KEEP, DROP, Replace: handler classes and outcomes
"""

from task_helper.pipeline.handlers import DROP, KEEP, Drop, HandlerClass, Keep, Replace, register_builtin
from task_helper.pipeline.options import TaskOptions
from task_helper.pipeline.context import RunContext
from task_helper.pipeline.runner import FileEntry, FileGroup, HandlerPipeline, TaskResult, TaskStatus

__all__ = [
    "DROP",
    "KEEP",
    "Drop",
    "FileEntry",
    "FileGroup",
    "HandlerClass",
    "HandlerPipeline",
    "Keep",
    "Replace",
    "RunContext",
    "TaskOptions",
    "TaskResult",
    "TaskStatus",
    "register_builtin",
]
