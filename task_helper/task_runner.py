"""Task runner.

Runs named task-helper targets in registration order against one RunContext.
After every target, including aborted and failed ones, the deferred actions
(the change store commit) run exactly once, so the next target sees the
committed baselines.

A failed target stops the remaining targets unless ``force`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from task_helper.errors import TaskHelperError
from task_helper.pipeline.context import RunContext
from task_helper.pipeline.runner import HandlerPipeline, TaskResult, TaskStatus


@dataclass
class TaskTarget:
    """A named target: its file groups and its options."""
    name: str
    files: List[Any] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)


class TaskRunner:
    """Queue of targets sharing one RunContext.

    Usage:
        runner = TaskRunner(RunContext.for_project(project_folder))
        runner.add_target("changed", files=[{"src": ["a.txt"], "dest": "b.txt"}],
                          options={"handlerByFile": "newFile"})
        results = runner.run()
    """

    def __init__(self, context: Optional[RunContext] = None):
        self.context = context or RunContext()
        self.targets: Dict[str, TaskTarget] = {}

    def add_target(
        self,
        name: str,
        files: Optional[Iterable[Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> TaskTarget:
        target = TaskTarget(name=name, files=list(files or []), options=dict(options or {}))
        self.targets[name] = target
        return target

    def run_target(self, name: str) -> TaskResult:
        """Run one target, then its deferred commit."""
        target = self.targets[name]
        logger.info(f"Running target '{name}' ({len(target.files)} file groups)")

        result = TaskResult(target=name, status=TaskStatus.FAILED)
        try:
            pipeline = HandlerPipeline(target.options, context=self.context, target=name)
            result = pipeline.run(target.files)
        finally:
            try:
                self.context.run_deferred()
            except TaskHelperError as e:
                logger.error(f"Finalizing target '{name}' failed: {e}")
                result.status = TaskStatus.FAILED
                result.errors.append(str(e))

        self.context.record_target_result(name, result)
        return result

    def run(self, names: Optional[Iterable[str]] = None, *, force: bool = False) -> List[TaskResult]:
        """Run ``names`` (default: every target) in order.

        Args:
            names: Target names to run; unknown names raise KeyError
            force: Keep going after a failed target
        """
        selected = list(names) if names is not None else list(self.targets)
        for name in selected:
            if name not in self.targets:
                raise KeyError(f"Unknown target: {name}")

        results: List[TaskResult] = []
        for name in selected:
            result = self.run_target(name)
            results.append(result)
            if not result.success and not force:
                logger.warning(f"Target '{name}' failed; remaining targets skipped (use force to continue).")
                break
        return results
