"""Handler pipeline.

Runs one target: the task gate, then each file group through its source,
group and content handlers, then the all-files gate.

    pipeline = HandlerPipeline({"handlerByFile": "newFile"}, context=ctx)
    result = pipeline.run([{"src": ["a.txt"], "dest": "a.txt"}])
    ctx.run_deferred()  # commits the change store

The pipeline never commits the change store itself; see RunContext and
TaskRunner for the deferred commit.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

import task_helper.pipeline.builtins  # noqa: F401  registers built-in handlers
from task_helper.errors import FileWriteError, TaskHelperError
from task_helper.pipeline.context import RunContext
from task_helper.pipeline.handlers import (
    Drop,
    Handler,
    HandlerClass,
    Replace,
    call_handler,
    resolve_handlers,
)
from task_helper.pipeline.options import TaskOptions
from task_helper.tracing import get_tracer, init_tracing, safe_set_current_span_attributes
from task_helper.utils.filesystem import LocalFileSystem


# First line break in the content; LF CR is accepted as one break.
_NEWLINE_RE = re.compile(r"(\r\n?|\n\r?)")


class TaskStatus(Enum):
    """Terminal state of a pipeline invocation."""
    DONE = "done"
    SKIPPED = "skipped"
    ABORTED_BY_TASK = "aborted_by_task"
    ABORTED_BY_ALL_FILES = "aborted_by_all_files"
    FAILED = "failed"


@dataclass
class FileGroup:
    """Source list and optional destination supplied by the task runner."""
    src: List[str] = field(default_factory=list)
    dest: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "FileGroup":
        if isinstance(value, FileGroup):
            return cls(src=list(value.src), dest=value.dest)
        if isinstance(value, dict):
            raw_src = value.get("src")
            dest = value.get("dest")
        else:
            raw_src, dest = value
        if isinstance(raw_src, str):
            src = [raw_src]
        elif isinstance(raw_src, (list, tuple)):
            src = [str(s) for s in raw_src]
        else:
            src = []
        return cls(src=src, dest=str(dest) if dest is not None else None)


@dataclass
class FileEntry:
    """A group that survived filtering."""
    src: List[str]
    dest: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"src": list(self.src), "dest": self.dest}


@dataclass
class TaskResult:
    """Outcome of one pipeline invocation."""
    target: str
    status: TaskStatus = TaskStatus.DONE
    files_array: List[FileEntry] = field(default_factory=list)
    written: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is not TaskStatus.FAILED

    @property
    def aborted(self) -> bool:
        return self.status in (TaskStatus.ABORTED_BY_TASK, TaskStatus.ABORTED_BY_ALL_FILES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "success": self.success,
            "status": self.status.value,
            "files_array": [entry.to_dict() for entry in self.files_array],
            "written": list(self.written),
            "errors": list(self.errors),
        }


def detect_separator(contents: Iterable[str]) -> str:
    """Return the first line break found in ``contents``, else ``os.linesep``."""
    for content in contents:
        match = _NEWLINE_RE.search(content)
        if match:
            return match.group(1)
    return os.linesep


class HandlerPipeline:
    """One task target's handler pipeline."""

    def __init__(
        self,
        options: Union[TaskOptions, Dict[str, Any], None] = None,
        *,
        context: Optional[RunContext] = None,
        target: str = "default",
    ):
        self.context = context or RunContext()
        self.target = target
        self.options = TaskOptions.from_context(options)
        self.options.change_store = self.context.store
        self.options.fs = self.context.fs
        if self.options.mtime_offset is None:
            self.options.mtime_offset = self.context.mtime_offset

        self.handlers: Dict[HandlerClass, List[Handler]] = {
            hc: resolve_handlers(self.options.handlers_for(hc), hc) for hc in HandlerClass
        }

        init_tracing()
        self.tracer = get_tracer("task-helper-pipeline")

    @property
    def fs(self) -> LocalFileSystem:
        return self.context.fs

    def run(self, file_groups: Iterable[Any]) -> TaskResult:
        """Process ``file_groups`` and return the invocation result.

        Handler exceptions end the invocation with status FAILED; the error
        is logged and recorded on the result.
        """
        result = TaskResult(target=self.target)
        groups = [FileGroup.from_value(g) for g in file_groups]

        with self.tracer.start_as_current_span("task_helper_pipeline") as span:
            span.set_attribute("target", self.target)
            try:
                self._run(groups, result)
            except TaskHelperError as e:
                result.status = TaskStatus.FAILED
                cause = e.__cause__
                detail = ""
                if cause is not None and str(cause) not in str(e):
                    detail = f"{type(cause).__name__}: {cause}"
                result.errors.append(f"{e} {detail}".strip())
                logger.error(f"Target '{self.target}' failed: {e}")

            safe_set_current_span_attributes(
                {
                    "status": result.status.value,
                    "groups": len(groups),
                    "files_array": len(result.files_array),
                    "written": result.written,
                }
            )
        return result

    def _run(self, groups: List[FileGroup], result: TaskResult) -> None:
        if not self._task_gate():
            logger.info("Task is aborted by handler_by_task.")
            result.status = TaskStatus.ABORTED_BY_TASK
            return

        if not self._has_file_work():
            result.status = TaskStatus.SKIPPED
            return

        for group in groups:
            self._process_group(group, result)

        if not self._all_files_gate(result.files_array):
            logger.info("Task is aborted by handler_by_all_files.")
            result.status = TaskStatus.ABORTED_BY_ALL_FILES

    def _has_file_work(self) -> bool:
        file_classes = (
            HandlerClass.BY_FILE_SRC,
            HandlerClass.BY_FILE,
            HandlerClass.BY_CONTENT,
            HandlerClass.BY_ALL_FILES,
        )
        return any(self.handlers[hc] for hc in file_classes) or self.options.files_array is not None

    def _task_gate(self) -> bool:
        for handler in self.handlers[HandlerClass.BY_TASK]:
            if isinstance(call_handler(handler, [self.options], HandlerClass.BY_TASK), Drop):
                return False
        return True

    def _all_files_gate(self, files_array: List[FileEntry]) -> bool:
        for handler in self.handlers[HandlerClass.BY_ALL_FILES]:
            outcome = call_handler(handler, [files_array, self.options], HandlerClass.BY_ALL_FILES)
            if isinstance(outcome, Drop):
                return False
        return True

    def _filter_source(self, src: str, dest: Optional[str]) -> Optional[str]:
        if not self.fs.exists(src):
            logger.warning(f'Source file "{src}" not found.')
            return None

        for handler in self.handlers[HandlerClass.BY_FILE_SRC]:
            outcome = call_handler(handler, [src, dest, self.options], HandlerClass.BY_FILE_SRC)
            if isinstance(outcome, Drop):
                return None
            if isinstance(outcome, Replace) and isinstance(outcome.value, str):
                src = outcome.value
        return src

    def _process_group(self, group: FileGroup, result: TaskResult) -> None:
        dest = group.dest
        src_list: List[str] = []
        for src in group.src:
            kept = self._filter_source(src, dest)
            if kept is not None:
                src_list.append(kept)

        # Handlers receive the working list and may edit it in place.
        for handler in self.handlers[HandlerClass.BY_FILE]:
            outcome = call_handler(handler, [src_list, dest, self.options], HandlerClass.BY_FILE)
            if isinstance(outcome, Drop):
                logger.debug(f"Group -> {dest!r} dropped by handler_by_file")
                return
            if isinstance(outcome, Replace) and isinstance(outcome.value, str):
                dest = outcome.value

        if not src_list:
            return

        entry = FileEntry(src=list(src_list), dest=dest)
        result.files_array.append(entry)
        if self.options.files_array is not None:
            self.options.files_array.append(entry)

        if dest and self.handlers[HandlerClass.BY_CONTENT]:
            self._write_content(src_list, dest, result)

    def _is_writable(self, dest: str) -> bool:
        # Symlinks to regular files are written through; directories,
        # dangling links and special files are not.
        if self.fs.is_file(dest):
            return True
        return not self.fs.exists(dest) and not self.fs.is_symlink(dest)

    def _write_content(self, src_list: List[str], dest: str, result: TaskResult) -> None:
        if not self._is_writable(dest):
            logger.warning(f'Destination "{dest}" is not a regular file; skipping write.')
            return

        try:
            contents = [self.fs.read_text(src) for src in src_list]
        except (OSError, UnicodeDecodeError) as e:
            raise FileWriteError(dest, f"failed to read sources: {type(e).__name__}: {e}") from e

        # The first detected line break sticks for the rest of the target.
        if self.options.separator is None:
            self.options.separator = detect_separator(contents)
        content: str = self.options.separator.join(contents)

        for handler in self.handlers[HandlerClass.BY_CONTENT]:
            outcome = call_handler(handler, [content, self.options], HandlerClass.BY_CONTENT)
            if isinstance(outcome, Drop):
                logger.debug(f'Write of "{dest}" dropped by handler_by_content')
                return
            if isinstance(outcome, Replace) and isinstance(outcome.value, str):
                content = outcome.value

        try:
            self.fs.write_text(dest, content)
        except OSError as e:
            raise FileWriteError(dest, str(e)) from e
        result.written.append(dest)
        logger.info(f'File "{dest}" created.')
