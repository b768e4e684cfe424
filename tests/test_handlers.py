from __future__ import annotations

import pytest

from task_helper.errors import HandlerError
from task_helper.pipeline.builtins import new_file, size_filter
from task_helper.pipeline.handlers import (
    DROP,
    KEEP,
    HandlerClass,
    Replace,
    call_handler,
    coerce_outcome,
    resolve_handlers,
)
from task_helper.pipeline.options import TaskOptions


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [
        (False, DROP),
        (True, KEEP),
        (None, KEEP),
        (0, KEEP),
        ("", Replace("")),
        ("b.txt", Replace("b.txt")),
        (DROP, DROP),
        (Replace(3), Replace(3)),
    ],
)
def test_coerce_outcome_maps_legacy_returns(value, expected):
    assert coerce_outcome(value) == expected


@pytest.mark.unit
def test_option_alias_is_camel_case():
    assert HandlerClass.BY_FILE_SRC.option_alias == "handlerByFileSrc"
    assert HandlerClass.BY_ALL_FILES.option_alias == "handlerByAllFiles"
    assert HandlerClass.BY_TASK.option_alias == "handlerByTask"


@pytest.mark.unit
def test_resolve_handlers_accepts_single_entry_and_lists():
    def custom(*args):
        return True

    assert resolve_handlers(custom, HandlerClass.BY_TASK) == [custom]
    assert resolve_handlers([custom, custom], HandlerClass.BY_TASK) == [custom, custom]
    assert resolve_handlers(None, HandlerClass.BY_TASK) == []


@pytest.mark.unit
def test_resolve_handlers_maps_builtin_names_per_class():
    assert resolve_handlers("size", HandlerClass.BY_FILE_SRC) == [size_filter]
    assert resolve_handlers(["newFile", "new_file"], HandlerClass.BY_FILE) == [new_file, new_file]
    # A built-in name is only valid for its own class.
    assert resolve_handlers("size", HandlerClass.BY_FILE) == []


@pytest.mark.unit
def test_resolve_handlers_silently_drops_unknown_entries():
    def custom(*args):
        return True

    resolved = resolve_handlers(["noSuchHandler", 42, {"x": 1}, custom], HandlerClass.BY_FILE)
    assert resolved == [custom]


@pytest.mark.unit
def test_call_handler_wraps_exceptions():
    def boom(options):
        raise RuntimeError("kaboom")

    with pytest.raises(HandlerError) as exc_info:
        call_handler(boom, [TaskOptions()], HandlerClass.BY_TASK)

    assert exc_info.value.handler_class == "handler_by_task"
    assert "handler_by_task failed." in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.unit
def test_task_options_accepts_camel_and_snake_case():
    files_array: list = []

    opts = TaskOptions.from_context(
        {
            "handlerByFile": "newFile",
            "handler_by_content": [str.upper],
            "mtimeOffset": "5",
            "minSize": 10,
            "max_size": "nope",
            "separator": 3,
            "filesArray": files_array,
            "banner": "/* hi */",
        }
    )

    assert opts.handler_by_file == "newFile"
    assert opts.handler_by_content == [str.upper]
    assert opts.mtime_offset == 5
    assert opts.min_size == 10
    assert opts.max_size is None
    assert opts.separator is None
    assert opts.files_array is files_array
    assert opts.get("banner") == "/* hi */"
    assert opts["minSize"] == 10
    assert opts["handlerByFile"] == "newFile"
    with pytest.raises(KeyError):
        opts["missing"]


@pytest.mark.unit
def test_task_options_ignores_non_list_files_array():
    opts = TaskOptions.from_context({"filesArray": "not-a-list"})
    assert opts.files_array is None


@pytest.mark.unit
def test_task_options_from_non_dict_is_default():
    assert TaskOptions.from_context(None) == TaskOptions()
