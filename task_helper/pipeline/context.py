"""Run context.

Owns the state shared by the targets of one run: the filesystem accessor,
the change store and the deferred actions scheduled while a target runs.

The change store schedules its commit here the first time it loads. The
orchestration layer calls ``run_deferred()`` once after each target, in a
``finally`` block, so the commit happens even when the target aborted or
failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from loguru import logger

from task_helper.config import default_store_path
from task_helper.tracking.store import ChangeStore
from task_helper.utils.filesystem import LocalFileSystem


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunContext:
    """State passed by reference into every pipeline invocation of a run."""

    base_dir: Path = field(default_factory=Path.cwd)
    store_path: Optional[Path] = None
    mtime_offset: Optional[int] = None

    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)

    success: bool = True
    errors: List[str] = field(default_factory=list)
    target_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir).expanduser().resolve()
        self.fs = LocalFileSystem(self.base_dir)
        if self.store_path is None:
            self.store_path = default_store_path(self.base_dir)
        self.store = ChangeStore(
            self.store_path,
            offset=self.mtime_offset,
            fs=self.fs,
            on_load=self._schedule_commit,
        )
        self._deferred: List[Callable[[], Any]] = []

    @classmethod
    def for_project(cls, project_folder: Union[str, Path], **kwargs: Any) -> "RunContext":
        return cls(base_dir=Path(project_folder), **kwargs)

    def _schedule_commit(self) -> None:
        self.defer(self.store.commit)

    def defer(self, action: Callable[[], Any]) -> None:
        """Queue ``action`` to run after the current target (once)."""
        if action not in self._deferred:
            self._deferred.append(action)

    @property
    def pending(self) -> int:
        return len(self._deferred)

    def run_deferred(self) -> None:
        """Run and clear the queued actions in order.

        Every action runs even if an earlier one raised; the first error is
        re-raised afterwards.
        """
        actions, self._deferred = self._deferred, []
        first_error: Optional[BaseException] = None
        for action in actions:
            try:
                action()
            except Exception as e:
                logger.error(f"Deferred action {getattr(action, '__qualname__', action)!r} failed: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def record_target_result(self, target: str, result: Any) -> None:
        payload: Dict[str, Any]
        if hasattr(result, "to_dict") and callable(getattr(result, "to_dict")):
            payload = result.to_dict()
        elif isinstance(result, dict):
            payload = dict(result)
        else:
            payload = {"success": bool(getattr(result, "success", False)), "repr": repr(result)}

        self.target_results[target] = payload

        if payload.get("success") is False:
            self.success = False
            target_errors = payload.get("errors")
            if isinstance(target_errors, list):
                self.errors.extend([str(e) for e in target_errors])

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": "1.0",
            "run_id": self.run_id,
            "created_at": self.created_at,
            "base_dir": str(self.base_dir),
            "store_path": str(self.store_path),
            "success": self.success,
            "errors": list(self.errors),
            "target_results": dict(self.target_results),
        }
