"""
Tests for the Change Store
==========================
"""

import json
import os
import time

import pytest
from filelock import FileLock

from task_helper.errors import ChangeStoreWriteError
from task_helper.tracking.store import ChangeStore
from task_helper.utils.filesystem import LocalFileSystem


def _store(project_folder, **kwargs):
    fs = LocalFileSystem(project_folder)
    return ChangeStore(project_folder / ".cache" / "fileUpdates.json", fs=fs, **kwargs)


def _set_mtime(path, ts):
    os.utime(path, (ts, ts))


@pytest.mark.unit
def test_untracked_existing_file_is_new(temp_project_folder, write_file):
    write_file("a.txt", age=100)
    store = _store(temp_project_folder)

    assert store.is_new("a.txt") is True
    assert store.snapshot() == {str((temp_project_folder / "a.txt").resolve()): 0}


@pytest.mark.unit
def test_missing_file_is_never_new(temp_project_folder):
    store = _store(temp_project_folder)

    assert store.is_new("missing.txt") is False


@pytest.mark.unit
def test_compare_orders_by_raw_mtime(temp_project_folder, write_file):
    a = write_file("a.txt")
    b = write_file("b.txt")
    now = int(time.time())
    _set_mtime(a, now - 10)
    _set_mtime(b, now - 100)
    store = _store(temp_project_folder)

    assert store.compare("a.txt", "b.txt") == 1
    assert store.compare("b.txt", "a.txt") == -1
    assert store.compare("a.txt", "a.txt") == 0
    # compare never loads the store
    assert store.loaded is False


@pytest.mark.unit
def test_compare_treats_missing_file_as_zero(temp_project_folder, write_file):
    write_file("a.txt")
    store = _store(temp_project_folder)

    assert store.compare("a.txt", "nope.txt") == 1
    assert store.compare("nope.txt", "a.txt") == -1
    assert store.compare("nope.txt", "other.txt") == 0


@pytest.mark.unit
def test_commit_without_load_is_noop(temp_project_folder):
    store = _store(temp_project_folder)

    assert store.commit() is False
    assert store.path.exists() is False


@pytest.mark.unit
def test_commit_stamps_now_plus_offset_and_prunes_vanished(temp_project_folder, write_file):
    write_file("keep.txt", age=100)
    gone = write_file("gone.txt", age=100)
    store = _store(temp_project_folder, clock=lambda: 1_000_000.7)

    store.is_new("keep.txt")
    store.is_new("gone.txt")
    gone.unlink()

    assert store.commit() is True
    assert store.loaded is False

    payload = json.loads(store.path.read_text(encoding="utf-8"))
    assert payload == {str((temp_project_folder / "keep.txt").resolve()): 1_000_003}


@pytest.mark.unit
def test_offset_is_fixed_by_first_caller(temp_project_folder, write_file):
    write_file("a.txt")
    store = _store(temp_project_folder, clock=lambda: 500.0)

    store.is_new("a.txt", mtime_offset=10)
    store.is_new("a.txt", mtime_offset=99)
    store.commit()

    assert store.offset == 10
    payload = json.loads(store.path.read_text(encoding="utf-8"))
    assert list(payload.values()) == [510]


@pytest.mark.unit
def test_constructor_offset_wins_over_query_offset(temp_project_folder, write_file):
    write_file("a.txt")
    store = _store(temp_project_folder, offset=0)

    store.is_new("a.txt", mtime_offset=7)

    assert store.offset == 0


@pytest.mark.unit
def test_committed_file_is_not_new_until_modified(temp_project_folder, write_file):
    p = write_file("a.txt", age=100)
    store = _store(temp_project_folder)
    assert store.is_new("a.txt") is True
    store.commit()

    assert store.is_new("a.txt") is False

    future = int(time.time()) + 60
    _set_mtime(p, future)
    assert store.is_new("a.txt") is True


@pytest.mark.unit
def test_repeated_commit_is_monotonic_and_keeps_files_old(temp_project_folder, write_file):
    write_file("a.txt", age=100)
    base = time.time()
    ticks = iter([base, base, base + 5])
    store = _store(temp_project_folder, clock=lambda: next(ticks))
    key = str((temp_project_folder / "a.txt").resolve())

    store.is_new("a.txt")
    store.commit()
    first = json.loads(store.path.read_text(encoding="utf-8"))[key]

    assert store.is_new("a.txt") is False
    store.commit()
    second = json.loads(store.path.read_text(encoding="utf-8"))[key]

    assert store.is_new("a.txt") is False
    store.commit()
    third = json.loads(store.path.read_text(encoding="utf-8"))[key]

    assert first <= second <= third


@pytest.mark.unit
def test_round_trip_reload_reproduces_tracked_paths(temp_project_folder, write_file):
    write_file("a.txt", age=100)
    write_file("b.txt", age=100)
    store = _store(temp_project_folder)
    store.is_new("a.txt")
    store.is_new("b.txt")
    store.commit()
    committed = json.loads(store.path.read_text(encoding="utf-8"))

    reloaded = _store(temp_project_folder)
    assert reloaded.is_new("a.txt") is False

    a_key = str((temp_project_folder / "a.txt").resolve())
    b_key = str((temp_project_folder / "b.txt").resolve())
    assert set(committed) == {a_key, b_key}
    assert reloaded.snapshot() == committed


@pytest.mark.unit
def test_on_load_fires_once_per_load(temp_project_folder, write_file):
    write_file("a.txt")
    calls = []
    store = _store(temp_project_folder, on_load=lambda: calls.append(1))

    store.is_new("a.txt")
    store.is_new("a.txt")
    assert calls == [1]

    store.commit()
    store.is_new("a.txt")
    assert calls == [1, 1]


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    [
        "not-json",
        json.dumps(["a", "b"]),
        json.dumps({"/tmp/a.txt": "soon"}),
        json.dumps({"/tmp/a.txt": -5}),
    ],
)
def test_corrupt_or_invalid_store_loads_empty(temp_project_folder, write_file, raw):
    write_file("a.txt", age=100)
    store = _store(temp_project_folder)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(raw, encoding="utf-8")

    assert store.is_new("a.txt") is True
    assert list(store.snapshot().values()) == [0]


@pytest.mark.unit
def test_relative_and_absolute_paths_share_one_entry(temp_project_folder, write_file):
    p = write_file("sub/a.txt")
    store = _store(temp_project_folder)

    store.is_new("sub/a.txt")
    store.is_new(str(p))
    store.is_new("sub/../sub/a.txt")

    assert len(store.snapshot()) == 1


@pytest.mark.unit
def test_commit_write_failure_raises_and_unloads(temp_project_folder, write_file):
    write_file("a.txt")
    blocker = temp_project_folder / "blocker"
    blocker.write_text("i am a file", encoding="utf-8")
    store = ChangeStore(
        blocker / "fileUpdates.json",
        fs=LocalFileSystem(temp_project_folder),
    )
    store.is_new("a.txt")

    with pytest.raises(ChangeStoreWriteError, match="Can't write to file"):
        store.commit()

    assert store.loaded is False
    # The next query reloads and fires on_load again.
    calls = []
    store.on_load = lambda: calls.append(1)
    store.is_new("a.txt")
    assert calls == [1]


@pytest.mark.unit
def test_commit_times_out_when_lock_held(temp_project_folder, write_file):
    write_file("a.txt")
    store = _store(temp_project_folder, lock_timeout_seconds=0)
    store.is_new("a.txt")
    store.path.parent.mkdir(parents=True, exist_ok=True)

    with FileLock(store.lock_path, timeout=0):
        with pytest.raises(ChangeStoreWriteError, match="timed out acquiring lock"):
            store.commit()


@pytest.mark.unit
def test_symlink_is_tracked_under_its_own_path(temp_project_folder, write_file):
    write_file("dest.txt", age=100)
    (temp_project_folder / "link.txt").symlink_to(temp_project_folder / "dest.txt")
    store = _store(temp_project_folder)

    store.is_new("link.txt")
    store.is_new("dest.txt")

    assert set(store.snapshot()) == {
        str(temp_project_folder / "link.txt"),
        str(temp_project_folder / "dest.txt"),
    }
