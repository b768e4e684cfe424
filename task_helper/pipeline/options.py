"""Per-target options for the handler pipeline.

Options arrive as a plain dict (the task runner's configuration). Both the
camelCase names (``handlerByFile``, ``mtimeOffset``) and their snake_case
forms are recognized. Unrecognized keys are kept in ``extra`` and stay
readable by user handlers through ``options.get(key)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from task_helper.pipeline.handlers import HandlerClass

if TYPE_CHECKING:
    from task_helper.tracking.store import ChangeStore
    from task_helper.utils.filesystem import LocalFileSystem


_SCALAR_ALIASES = {
    "separator": "separator",
    "mtimeOffset": "mtime_offset",
    "mtime_offset": "mtime_offset",
    "minSize": "min_size",
    "min_size": "min_size",
    "maxSize": "max_size",
    "max_size": "max_size",
    "filesArray": "files_array",
    "files_array": "files_array",
}


def _as_int(val: Any) -> Optional[int]:
    if val is None or isinstance(val, bool):
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


@dataclass
class TaskOptions:
    """Effective options handed to every handler."""

    handler_by_task: Any = None
    handler_by_file_src: Any = None
    handler_by_file: Any = None
    handler_by_content: Any = None
    handler_by_all_files: Any = None

    separator: Optional[str] = None
    mtime_offset: Optional[int] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    files_array: Optional[List[Any]] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    # Runtime collaborators, bound by the pipeline before handlers run.
    change_store: Optional["ChangeStore"] = field(default=None, repr=False, compare=False)
    fs: Optional["LocalFileSystem"] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_context(cls, context: Optional[Dict[str, Any]]) -> "TaskOptions":
        if isinstance(context, TaskOptions):
            return context
        if not isinstance(context, dict):
            return cls()

        opts = cls()
        handler_keys = {}
        for hc in HandlerClass:
            handler_keys[hc.value] = hc.value
            handler_keys[hc.option_alias] = hc.value

        for key, value in context.items():
            if key in handler_keys:
                setattr(opts, handler_keys[key], value)
            elif key in _SCALAR_ALIASES:
                setattr(opts, _SCALAR_ALIASES[key], value)
            else:
                opts.extra[key] = value

        if not isinstance(opts.separator, str):
            opts.separator = None
        opts.mtime_offset = _as_int(opts.mtime_offset)
        opts.min_size = _as_int(opts.min_size)
        opts.max_size = _as_int(opts.max_size)
        # Only a real list is an accumulator the caller can observe.
        if not isinstance(opts.files_array, list):
            opts.files_array = None
        return opts

    def handlers_for(self, handler_class: HandlerClass) -> Any:
        return getattr(self, handler_class.value)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.extra:
            return self.extra[key]
        attr = _SCALAR_ALIASES.get(key, key)
        for hc in HandlerClass:
            if key == hc.option_alias:
                attr = hc.value
        if attr in self.__dataclass_fields__ and attr != "extra":
            return getattr(self, attr)
        return default

    def __getitem__(self, key: str) -> Any:
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            raise KeyError(key)
        return value
