"""Shared fixtures for task-helper tests."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from loguru import logger

from task_helper.pipeline.context import RunContext


@pytest.fixture
def temp_project_folder(tmp_path) -> Path:
    """An empty project folder acting as the task runner's working directory."""
    project_folder = tmp_path / "project"
    project_folder.mkdir()
    return project_folder


@pytest.fixture
def run_context(temp_project_folder) -> RunContext:
    return RunContext.for_project(temp_project_folder)


@pytest.fixture
def write_file(temp_project_folder) -> Callable[..., Path]:
    """Write a file under the project folder, optionally pinning its mtime.

    ``age`` is how many seconds before now the mtime is set.
    """

    def _write(relpath: str, content: str = "x", age: Optional[float] = None) -> Path:
        p = temp_project_folder / relpath
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if age is not None:
            ts = time.time() - age
            os.utime(p, (ts, ts))
        return p

    return _write


@pytest.fixture
def log_messages() -> List[str]:
    """Collect loguru messages at WARNING and above."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(str(m)), level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)
