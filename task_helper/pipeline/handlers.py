"""
Handler Classes and Registry
============================
The five handler classes of the pipeline, the typed outcomes a handler can
produce, and the registry of named built-in handlers.

Handler signatures per class:
- handler_by_task(options)
- handler_by_file_src(src, dest, options)
- handler_by_file(src_list, dest, options)
- handler_by_content(content, options)
- handler_by_all_files(files_array, options)

Handlers return an outcome (KEEP, DROP, Replace(value)). Plain return values
are accepted too: False means DROP, a string means Replace(string), anything
else means KEEP.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence, Union

from loguru import logger

from task_helper.errors import HandlerError


class HandlerClass(Enum):
    """The stage a handler belongs to."""
    BY_TASK = "handler_by_task"
    BY_FILE_SRC = "handler_by_file_src"
    BY_FILE = "handler_by_file"
    BY_CONTENT = "handler_by_content"
    BY_ALL_FILES = "handler_by_all_files"

    @property
    def option_alias(self) -> str:
        """camelCase option name (handlerByFileSrc, ...)."""
        head, *rest = self.value.split("_")
        return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class Keep:
    """Continue with the current value."""


@dataclass(frozen=True)
class Drop:
    """Abort this stage (drop the source, the group, the write or the task)."""


@dataclass(frozen=True)
class Replace:
    """Continue with ``value`` in place of the current value."""
    value: Any


HandlerOutcome = Union[Keep, Drop, Replace]
Handler = Callable[..., Any]

KEEP = Keep()
DROP = Drop()


def coerce_outcome(result: Any) -> HandlerOutcome:
    """Map a handler's return value onto an outcome."""
    if isinstance(result, (Keep, Drop, Replace)):
        return result
    if result is False:
        return DROP
    if isinstance(result, str):
        return Replace(result)
    return KEEP


# Built-in handlers by class, filled by register_builtin()
BUILTIN_HANDLERS: Dict[HandlerClass, Dict[str, Handler]] = {cls: {} for cls in HandlerClass}


def register_builtin(handler_class: HandlerClass, *names: str) -> Callable[[Handler], Handler]:
    """Decorator registering a built-in handler under one or more names."""

    def _decorator(func: Handler) -> Handler:
        for name in names:
            BUILTIN_HANDLERS[handler_class][name] = func
        return func

    return _decorator


def get_builtin(handler_class: HandlerClass, name: str) -> Handler | None:
    return BUILTIN_HANDLERS[handler_class].get(name)


def resolve_handlers(configured: Any, handler_class: HandlerClass) -> List[Handler]:
    """Turn a configured handler (or list of handlers) into callables.

    Entries that are neither callable nor the name of a built-in of this class
    are ignored so that configurations stay forward compatible.
    """
    if configured is None:
        return []

    entries: Sequence[Any]
    if isinstance(configured, (list, tuple)):
        entries = configured
    else:
        entries = [configured]

    handlers: List[Handler] = []
    for entry in entries:
        if callable(entry):
            handlers.append(entry)
        elif isinstance(entry, str) and get_builtin(handler_class, entry) is not None:
            handlers.append(get_builtin(handler_class, entry))
        else:
            logger.debug(f"Ignoring unknown {handler_class.value} entry: {entry!r}")
    return handlers


def call_handler(handler: Handler, args: Sequence[Any], handler_class: HandlerClass) -> HandlerOutcome:
    """Invoke a handler and coerce its result.

    Raises:
        HandlerError: When the handler throws; the original error is chained.
    """
    try:
        result = handler(*args)
    except Exception as e:
        logger.exception(f"{handler_class.value} {getattr(handler, '__name__', handler)!r} raised: {e}")
        raise HandlerError(handler_class.value) from e
    return coerce_outcome(result)
